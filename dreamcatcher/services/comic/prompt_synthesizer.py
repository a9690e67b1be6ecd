"""
Prompt Synthesizer

Turns a scene fragment into a scenery-only image prompt.

Downstream renderers cannot depict a specific person's likeness, so the
narrative is reduced to environment, weather, time, place, quality and
object keywords. The mapping is a pure function of KEYWORD_PHRASES and the
input text: the table is scanned in order, so match precedence is stable.
"""

import re
from typing import List, Tuple

MAX_PHRASES = 4
MIN_PHRASES = 2

PROMPT_PREFIX = "A dreamy landscape featuring "
FALLBACK_PROMPT = "a peaceful dreamscape with soft light and serene atmosphere"
FILLER_PHRASES = ("soft ethereal light", "peaceful atmosphere")

# (keyword, scenic phrase), scanned top to bottom
KEYWORD_PHRASES: Tuple[Tuple[str, str], ...] = (
    # Environment
    ("forest", "a mystical forest"),
    ("woods", "a mystical forest"),
    ("tree", "tall ancient trees"),
    ("ocean", "a vast shimmering ocean"),
    ("sea", "a vast shimmering ocean"),
    ("beach", "a quiet sandy beach"),
    ("river", "a winding gentle river"),
    ("lake", "a still mirror-like lake"),
    ("waterfall", "a cascading waterfall"),
    ("mountain", "majestic misty mountains"),
    ("desert", "rolling golden desert dunes"),
    ("garden", "a blooming flower garden"),
    ("flower", "fields of colorful flowers"),
    ("meadow", "a sunlit green meadow"),
    ("field", "a sunlit green meadow"),
    ("cave", "a glowing crystal cave"),
    ("island", "a small tropical island"),
    ("space", "a starry cosmic expanse"),
    ("sky", "an endless open sky"),
    ("cloud", "soft drifting clouds"),
    # Weather
    ("storm", "dramatic storm clouds"),
    ("thunder", "dramatic storm clouds"),
    ("lightning", "distant flashes of lightning"),
    ("rain", "gentle falling rain"),
    ("snow", "a quiet snowy landscape"),
    ("fog", "drifting silver fog"),
    ("mist", "drifting silver fog"),
    ("wind", "swaying windswept grass"),
    ("rainbow", "a vivid rainbow arc"),
    # Time of day
    ("sunrise", "a warm sunrise glow"),
    ("dawn", "a warm sunrise glow"),
    ("sunset", "a golden sunset horizon"),
    ("dusk", "a golden sunset horizon"),
    ("night", "a calm starlit night"),
    ("moon", "a luminous full moon"),
    ("star", "a sky full of stars"),
    ("sun", "bright warm sunlight"),
    # Places
    ("castle", "an enchanted castle"),
    ("city", "a glowing city skyline"),
    ("house", "a cozy little house"),
    ("home", "a cozy little house"),
    ("bridge", "an old stone bridge"),
    ("road", "a long winding road"),
    ("path", "a winding garden path"),
    ("tower", "a tall lonely tower"),
    ("school", "an empty quiet schoolyard"),
    ("village", "a peaceful countryside village"),
    # Qualities
    ("golden", "golden light"),
    ("bright", "radiant brightness"),
    ("dark", "deep moody shadows"),
    ("calm", "tranquil stillness"),
    ("peaceful", "tranquil stillness"),
    ("gentle", "a gentle soft glow"),
    ("magic", "sparkling magical particles"),
    ("glow", "a gentle soft glow"),
    ("colorful", "vibrant swirling colors"),
    # Objects
    ("door", "a mysterious open doorway"),
    ("window", "light streaming through a window"),
    ("boat", "a small boat on calm water"),
    ("train", "a vintage train on the tracks"),
    ("car", "an empty open road"),
    ("stairs", "a spiral staircase"),
    ("mirror", "an ornate floating mirror"),
    ("book", "an old open book"),
    ("clock", "an antique clock"),
    ("bird", "birds soaring overhead"),
    ("butterfly", "fluttering butterflies"),
    ("butterflies", "fluttering butterflies"),
)

_KEYWORD_PATTERNS = tuple(
    (re.compile(r"\b" + re.escape(keyword) + r"(?:s|es)?\b"), phrase)
    for keyword, phrase in KEYWORD_PHRASES
)


def match_phrases(text: str) -> List[str]:
    """Return up to MAX_PHRASES distinct scenic phrases matched in table order."""
    lowered = (text or "").lower()
    phrases: List[str] = []
    for pattern, phrase in _KEYWORD_PATTERNS:
        if phrase in phrases:
            continue
        if pattern.search(lowered):
            phrases.append(phrase)
            if len(phrases) == MAX_PHRASES:
                break
    return phrases


def synthesize(scene_text: str) -> str:
    """
    Convert a scene fragment into an image-generation prompt.

    Args:
        scene_text: Scene fragment or raw narrative

    Returns:
        The fixed fallback prompt when no keyword matches; otherwise the
        matched phrases (padded with filler to at least two) joined under
        PROMPT_PREFIX.
    """
    phrases = match_phrases(scene_text)
    if not phrases:
        return FALLBACK_PROMPT

    for filler in FILLER_PHRASES:
        if len(phrases) >= MIN_PHRASES:
            break
        phrases.append(filler)

    return PROMPT_PREFIX + ", ".join(phrases)


# Used when local scene planning produces nothing usable
FALLBACK_VECTOR_STYLE = (
    "flat vector comic panel, graphic design style, thick black vector outlines, "
    "simple geometric shapes, solid flat colors only, high contrast color blocks, "
    "clean poster-like composition, minimal background, no gradients, no texture"
)

FALLBACK_SCENE_PROMPTS: Tuple[str, ...] = (
    f"Open doorway glowing with light, SMASH! text, yellow and orange background, {FALLBACK_VECTOR_STYLE}",
    f"Dark cloud shape with lightning bolt, purple and blue color blocks, {FALLBACK_VECTOR_STYLE}",
    f"Explosion circle with BOOM! text, red and orange shapes, centered composition, {FALLBACK_VECTOR_STYLE}",
    f"Rising sun over hills, POW! text, gold and blue background, {FALLBACK_VECTOR_STYLE}",
    f"Crashing wave shape, CRASH! text, green and black shapes, {FALLBACK_VECTOR_STYLE}",
    f"Falling star streak, BAM! text, red and yellow color blocks, {FALLBACK_VECTOR_STYLE}",
)


def fallback_prompts(count: int) -> List[str]:
    """Cycle through the stylized fallback library to produce ``count`` prompts."""
    return [FALLBACK_SCENE_PROMPTS[i % len(FALLBACK_SCENE_PROMPTS)] for i in range(max(count, 0))]

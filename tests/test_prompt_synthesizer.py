"""
Tests for the prompt synthesizer - keyword matching, padding, and fallbacks.
"""

from dreamcatcher.services.comic.prompt_synthesizer import (
    FALLBACK_PROMPT,
    FALLBACK_SCENE_PROMPTS,
    MAX_PHRASES,
    PROMPT_PREFIX,
    fallback_prompts,
    match_phrases,
    synthesize,
)


class TestSynthesize:
    def test_single_match_is_padded_with_filler(self):
        prompt = synthesize("I walked through a forest")
        assert prompt == "A dreamy landscape featuring a mystical forest, soft ethereal light"

    def test_phrases_follow_table_order_and_cap(self):
        prompt = synthesize("The ocean at sunrise was calm and golden under a gentle rain")
        assert prompt == (
            "A dreamy landscape featuring a vast shimmering ocean, gentle falling rain, "
            "a warm sunrise glow, golden light"
        )

    def test_no_keywords_returns_fallback(self):
        assert synthesize("I talked to my friend") == FALLBACK_PROMPT

    def test_empty_text_returns_fallback(self):
        assert synthesize("") == FALLBACK_PROMPT

    def test_is_deterministic(self):
        text = "A castle by the sea in the storm"
        assert synthesize(text) == synthesize(text)

    def test_prompt_always_has_prefix_when_matched(self):
        assert synthesize("CASTLE").startswith(PROMPT_PREFIX)


class TestMatchPhrases:
    def test_synonyms_do_not_duplicate(self):
        assert match_phrases("the forest and the woods") == ["a mystical forest"]

    def test_plural_forms_match(self):
        assert match_phrases("tall trees") == ["tall ancient trees"]

    def test_keywords_match_whole_words_only(self):
        assert match_phrases("a cartoon") == []

    def test_caps_at_max_phrases(self):
        text = "forest ocean river lake mountain desert garden"
        assert len(match_phrases(text)) == MAX_PHRASES


class TestFallbackPrompts:
    def test_cycles_library(self):
        prompts = fallback_prompts(len(FALLBACK_SCENE_PROMPTS) + 2)
        assert prompts[0] == FALLBACK_SCENE_PROMPTS[0]
        assert prompts[-1] == FALLBACK_SCENE_PROMPTS[1]

    def test_non_positive_count_is_empty(self):
        assert fallback_prompts(0) == []

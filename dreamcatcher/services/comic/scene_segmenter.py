"""
Scene Segmenter

Splits narrative text into ordered scene fragments, one per comic panel.
"""

import re
from dataclasses import dataclass
from typing import List

from ...core.errors import InvalidArgument

# Sentence terminals; runs like "?!" or "..." count as one boundary
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

SCENE_JOINER = ". "


@dataclass(frozen=True)
class Scene:
    """A text fragment assigned to exactly one panel. Never persisted."""
    text: str
    index: int


def split_sentences(text: str) -> List[str]:
    """Split text on sentence terminals, trimming and dropping empty fragments."""
    if not text:
        return []
    return [part.strip() for part in _SENTENCE_SPLIT.split(text) if part.strip()]


def segment(text: str, desired_count: int) -> List[str]:
    """
    Split narrative text into at most ``desired_count`` scene fragments.

    With no more sentences than requested, each sentence becomes a scene.
    Otherwise sentences are grouped into ``desired_count`` contiguous groups
    of ``total // desired_count`` sentences, the last group absorbing the
    remainder, and each group is joined with ". ". Text without sentence
    terminals is a single scene.

    Args:
        text: Narrative text
        desired_count: Maximum number of scenes (must be positive)

    Returns:
        Ordered list of 1..desired_count non-empty fragments

    Raises:
        InvalidArgument: If desired_count <= 0 or the text has no content
    """
    if desired_count <= 0:
        raise InvalidArgument(f"desired_count must be positive, got {desired_count}")

    sentences = split_sentences(text)
    if not sentences:
        raise InvalidArgument("Narrative text contains no scene content")

    total = len(sentences)
    if total <= desired_count:
        return sentences

    group_size = total // desired_count
    scenes = []
    for group in range(desired_count):
        start = group * group_size
        end = total if group == desired_count - 1 else start + group_size
        scenes.append(SCENE_JOINER.join(sentences[start:end]))
    return scenes


def build_scenes(text: str, desired_count: int) -> List[Scene]:
    """Segment text and attach position indexes."""
    return [Scene(text=fragment, index=i) for i, fragment in enumerate(segment(text, desired_count))]

"""Narrator output parsing into narration, dialogue, summary and text segments.

Tag format (case-insensitive, may span lines):
  <Narration>...</Narration>
  <CharacterDialogue>Speaker | "line"</CharacterDialogue>
  <Summary>...</Summary>

Each tag family is scanned independently and the matches are merged by start
offset. Untagged spans between tags become ``text`` segments when they hold
anything but whitespace.
"""

import re

from storyteller.models import Segment

TAG_PATTERNS: dict[str, re.Pattern[str]] = {
    "narration": re.compile(r"<Narration>([\s\S]*?)</Narration>", re.IGNORECASE),
    "dialogue": re.compile(r"<CharacterDialogue>([\s\S]*?)</CharacterDialogue>", re.IGNORECASE),
    "summary": re.compile(r"<Summary>([\s\S]*?)</Summary>", re.IGNORECASE),
}

_SPEAKER = re.compile(r"([^|]+)\s*\|\s*([\s\S]+)")

_TAG_NAMES = {
    "narration": "Narration",
    "dialogue": "CharacterDialogue",
    "summary": "Summary",
}


def _find_matches(text: str) -> list[tuple[int, int, str, str]]:
    matches = []
    for seg_type, pattern in TAG_PATTERNS.items():
        for m in pattern.finditer(text):
            matches.append((m.start(), m.end(), seg_type, m.group(1)))
    matches.sort(key=lambda item: item[0])
    return matches


def _tagged_segment(seg_type: str, inner: str) -> Segment:
    if seg_type == "dialogue":
        speaker = _SPEAKER.fullmatch(inner)
        if speaker:
            return Segment(
                type="dialogue",
                character=speaker.group(1).strip(),
                content=speaker.group(2).strip(),
            )
        return Segment(type="dialogue", content=inner)
    return Segment(type=seg_type, content=inner.strip())


def parse_story_segments(text: str) -> list[Segment]:
    """Split an unwrapped narrative string into ordered, non-overlapping segments.

    A tag nested inside another tag's span is skipped; the outer tag wins.
    With no tags at all the whole (trimmed) string is one ``text`` segment.
    """
    matches = _find_matches(text)
    if not matches:
        return [Segment(type="text", content=text.strip())]

    segments: list[Segment] = []
    cursor = 0
    for start, end, seg_type, inner in matches:
        if start < cursor:
            continue
        gap = text[cursor:start].strip()
        if gap:
            segments.append(Segment(type="text", content=gap))
        segments.append(_tagged_segment(seg_type, inner))
        cursor = end

    tail = text[cursor:].strip()
    if tail:
        segments.append(Segment(type="text", content=tail))
    return segments


def segments_to_text(segments: list[Segment]) -> str:
    """Convert segments back to tagged text for prompt history."""
    parts: list[str] = []
    for seg in segments:
        if seg.type == "text":
            parts.append(seg.content)
            continue
        inner = seg.content
        if seg.type == "dialogue" and seg.character:
            inner = f"{seg.character} | {seg.content}"
        tag = _TAG_NAMES[seg.type]
        parts.append(f"<{tag}>{inner}</{tag}>")
    return "\n".join(parts)

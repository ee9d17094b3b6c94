"""Per-line speaker formatting for dialogue segments."""

import re

from storyteller.models import DialogueLine, Segment

# The speaker never starts with a quote, so a quoted line containing "|" stays a quote.
_LINE_SPEAKER = re.compile(r'([^"|\s][^|]*?)\s*\|\s*"?(.+?)"?')


def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def format_dialogue(segment: Segment) -> list[DialogueLine]:
    """Split a dialogue segment into display lines.

    A line carrying its own ``Speaker | quote`` is attributed to that speaker.
    Other lines belong to the segment-level ``character`` when there is one,
    otherwise they are unattributed quotes. Blank lines are dropped.
    """
    lines: list[DialogueLine] = []
    for raw in segment.content.split("\n"):
        line = raw.strip()
        if not line:
            continue
        match = _LINE_SPEAKER.fullmatch(line)
        if match:
            lines.append(DialogueLine(speaker=match.group(1), quote=match.group(2)))
        else:
            lines.append(DialogueLine(speaker=segment.character, quote=_strip_quotes(line)))
    return lines

"""Segments → render blocks.

The same transform runs on the live streaming buffer after every text frame
and once on each stored message. It never raises: on any failure the raw,
unsegmented text is shown instead.
"""

import logging

from storyteller.models import RenderBlock, Segment

from .dialogue import format_dialogue
from .envelope import unwrap_stored, unwrap_streamed
from .segments import parse_story_segments

logger = logging.getLogger(__name__)

SUMMARY_LABEL = "state info"


def _block(segment: Segment) -> RenderBlock:
    if segment.type == "dialogue":
        return RenderBlock(
            kind="dialogue",
            text=segment.content,
            speaker=segment.character,
            lines=format_dialogue(segment),
        )
    if segment.type == "summary":
        return RenderBlock(kind="summary", text=segment.content, label=SUMMARY_LABEL)
    return RenderBlock(kind="prose", text=segment.content)


def compose(segments: list[Segment], streaming: bool = False) -> list[RenderBlock]:
    """Map segments to blocks; while streaming the last block carries the cursor."""
    blocks = [_block(seg) for seg in segments if seg.content or seg.type != "text"]
    if streaming:
        if not blocks:
            blocks.append(RenderBlock(kind="prose"))
        blocks[-1].cursor = True
    return blocks


def _render(text: str, unwrap, streaming: bool) -> list[RenderBlock]:
    try:
        return compose(parse_story_segments(unwrap(text)), streaming=streaming)
    except Exception:
        logger.warning("Falling back to raw text rendering", exc_info=True)
        return [RenderBlock(kind="raw", text=text, cursor=streaming)]


def render_message(content: str) -> list[RenderBlock]:
    """Render a finalized, stored message."""
    return _render(content, unwrap_stored, streaming=False)


def render_preview(buffer: str) -> list[RenderBlock]:
    """Render the in-flight accumulated response with a typing cursor."""
    return _render(buffer, unwrap_streamed, streaming=True)

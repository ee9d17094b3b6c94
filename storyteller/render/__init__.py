"""Streaming response decoding and structured-tag rendering.

Data flow for one turn:
  1. frames: bytes from the chat-stream endpoint → text / error / done frames.
  2. envelope: accumulated answer → narrative string, unwrapping an optional
     ```json {"nextStory": ...}``` envelope, tolerant of truncation.
  3. segments: narrative string → ordered narration / dialogue / summary /
     text segments.
  4. dialogue: dialogue segment → display lines with optional speakers.
  5. composer: segments → render blocks, used for the live preview (with a
     typing cursor) and for stored messages alike.

Narrator output format (parsed by parse_story_segments):
  <Narration>밤이 깊었다.</Narration>
  <CharacterDialogue>미라 | "거기 누구야?"</CharacterDialogue>
  <Summary>HP 10/10</Summary>
"""

from .composer import SUMMARY_LABEL, compose, render_message, render_preview  # noqa: F401
from .dialogue import format_dialogue  # noqa: F401
from .envelope import (  # noqa: F401
    ENVELOPE_FIELDS,
    extract_field,
    repair_json,
    strip_code_fence,
    unescape_entities,
    unwrap_stored,
    unwrap_streamed,
)
from .frames import FrameDecoder, decode_stream, encode_frame, parse_line  # noqa: F401
from .segments import parse_story_segments, segments_to_text  # noqa: F401

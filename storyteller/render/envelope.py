"""Envelope unwrapping for model answers.

Models inconsistently wrap their answer in a markdown code fence holding a
JSON object whose story field carries the real narrative:

    ```json
    {"nextStory": "<Narration>...</Narration>", "aiAnswer": "..."}
    ```

The answer is routinely truncated, so nothing here assumes well-formed JSON.
Every path falls back to the entity-unescaped input; unwrapping never raises
and never drops content.

Two spellings of the story field exist in the wild (``nextStory`` and
``nextStrory``). Both are accepted on every path until the producer settles
on one.
"""

import json
import logging
import re

logger = logging.getLogger(__name__)

ENVELOPE_FIELDS = ("nextStory", "nextStrory")

_FENCE_OPEN = re.compile(r"^\s*```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```\s*$")
_FIELD_VALUE = re.compile(
    r'"(?:%s)"\s*:\s*"((?:\\.|[^"\\])*)' % "|".join(ENVELOPE_FIELDS),
    re.DOTALL,
)
_LITERAL_ESCAPE = re.compile(r"\\([n\"'])")
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')
_JSON_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|[\"\\/bfnrt'])")
_ESCAPE_MAP = {
    '"': '"', "\\": "\\", "/": "/", "'": "'",
    "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t",
}


def unescape_entities(text: str) -> str:
    """Turn ``&lt;``/``&gt;`` back into tag brackets."""
    return text.replace("&lt;", "<").replace("&gt;", ">")


def strip_code_fence(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence, then trim."""
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


def has_envelope(text: str) -> bool:
    """True only for a leading ``{`` plus a known story-field name."""
    if not text.startswith("{"):
        return False
    return any(f'"{name}"' in text for name in ENVELOPE_FIELDS)


def extract_field(text: str) -> str | None:
    """Capture the raw story-field value, tolerating a truncated tail.

    ``{"nextStrory": "part of a line`` yields ``part of a line``.
    """
    match = _FIELD_VALUE.search(text)
    if match is None:
        return None
    return match.group(1)


def repair_json(text: str) -> str:
    """Close a truncated envelope so json.loads has a chance.

    An odd number of unescaped quotes means a string was cut mid-value; it is
    closed, then a placeholder ``aiAnswer`` field and the closing brace are
    appended.
    """
    stripped = text.rstrip()
    if stripped.endswith("}"):
        return stripped
    if len(_UNESCAPED_QUOTE.findall(stripped)) % 2:
        stripped += '"'
    stripped = stripped.rstrip(", \n\t")
    return stripped + ', "aiAnswer": ""}'


def _parse_field(text: str) -> str | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    for name in ENVELOPE_FIELDS:
        value = data.get(name)
        if isinstance(value, str):
            return value
    return None


def _decode_escapes(raw: str) -> str:
    """Decode JSON string escapes in a raw regex capture.

    A capture cut mid-escape is not valid JSON; the escape map then decodes
    every complete escape and leaves a dangling backslash as-is.
    """
    try:
        return json.loads(f'"{raw}"', strict=False)
    except json.JSONDecodeError:
        return _JSON_ESCAPE.sub(_escape_char, raw)


def _escape_char(match: re.Match) -> str:
    code = match.group(1)
    if code.startswith("u"):
        return chr(int(code[1:], 16))
    return _ESCAPE_MAP[code]


def _clean_value(value: str) -> str:
    value = _LITERAL_ESCAPE.sub(
        lambda m: "\n" if m.group(1) == "n" else m.group(1), value
    )
    return unescape_entities(value)


def unwrap_streamed(text: str) -> str:
    """Unwrap a just-completed streamed answer.

    Regex capture first (survives truncation), full JSON parse second.
    """
    processed = unescape_entities(text)
    candidate = strip_code_fence(processed)
    if not has_envelope(candidate):
        return processed

    value = extract_field(candidate)
    if value is not None:
        value = _decode_escapes(value)
    if value is None:
        value = _parse_field(candidate)
    if value is None:
        logger.warning("Could not unwrap streamed envelope (len=%d)", len(candidate))
        return processed
    return _clean_value(value)


def unwrap_stored(text: str) -> str:
    """Unwrap an already-stored message for display.

    Incomplete JSON is repaired and parsed first; the tolerant regex capture
    is the second chance.
    """
    processed = unescape_entities(text)
    candidate = strip_code_fence(processed)
    if not has_envelope(candidate):
        return processed

    value = _parse_field(repair_json(candidate))
    if value is None:
        value = extract_field(candidate)
        if value is not None:
            value = _decode_escapes(value)
    if value is None:
        logger.warning("Could not unwrap stored envelope (len=%d)", len(candidate))
        return processed
    return _clean_value(value)

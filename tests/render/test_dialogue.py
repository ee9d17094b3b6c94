"""Tests for format_dialogue."""

from storyteller.models import DialogueLine, Segment
from storyteller.render import format_dialogue


def test_segment_character_is_speaker_of_every_line():
    seg = Segment(type="dialogue", character="미라", content='"거기 누구야?"\n"대답해!"')
    assert format_dialogue(seg) == [
        DialogueLine(speaker="미라", quote="거기 누구야?"),
        DialogueLine(speaker="미라", quote="대답해!"),
    ]


def test_per_line_speakers_without_segment_character():
    seg = Segment(type="dialogue", content='진 | "가자."\n미라 | 싫어.')
    assert format_dialogue(seg) == [
        DialogueLine(speaker="진", quote="가자."),
        DialogueLine(speaker="미라", quote="싫어."),
    ]


def test_unattributed_line():
    seg = Segment(type="dialogue", content='"누구냐!"')
    assert format_dialogue(seg) == [DialogueLine(quote="누구냐!")]


def test_blank_lines_dropped():
    seg = Segment(type="dialogue", content='\n  \n진 | "응"\n\n')
    lines = format_dialogue(seg)
    assert len(lines) == 1
    assert lines[0].speaker == "진"


def test_mixed_attributed_and_unattributed():
    seg = Segment(type="dialogue", content='진 | "가자."\n"...그래."')
    lines = format_dialogue(seg)
    assert lines[0] == DialogueLine(speaker="진", quote="가자.")
    assert lines[1] == DialogueLine(quote="...그래.")


def test_line_speaker_overrides_segment_character():
    seg = Segment(type="dialogue", character="A", content='"x"\nB | "y"')
    assert format_dialogue(seg) == [
        DialogueLine(speaker="A", quote="x"),
        DialogueLine(speaker="B", quote="y"),
    ]


def test_pipe_inside_quote_is_not_a_speaker():
    seg = Segment(type="dialogue", character="진", content='"왼쪽 | 오른쪽?"')
    assert format_dialogue(seg) == [DialogueLine(speaker="진", quote="왼쪽 | 오른쪽?")]

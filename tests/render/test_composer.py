"""Tests for the render composer (segments → blocks, live preview, fallback)."""

import json
from unittest.mock import patch

from storyteller.models import RenderBlock, Segment
from storyteller.render import SUMMARY_LABEL, compose, render_message, render_preview


def test_compose_maps_segment_types():
    blocks = compose([
        Segment(type="narration", content="밤이 깊었다."),
        Segment(type="dialogue", character="미라", content='"누구야?"'),
        Segment(type="summary", content="HP 10"),
        Segment(type="text", content="덧붙임"),
    ])
    assert [b.kind for b in blocks] == ["prose", "dialogue", "summary", "prose"]
    assert blocks[1].speaker == "미라"
    assert blocks[1].lines[0].quote == "누구야?"
    assert blocks[2].label == SUMMARY_LABEL
    assert not any(b.cursor for b in blocks)


def test_compose_streaming_cursor_on_last_block_only():
    blocks = compose(
        [Segment(type="narration", content="a"), Segment(type="text", content="b")],
        streaming=True,
    )
    assert [b.cursor for b in blocks] == [False, True]


def test_preview_of_empty_buffer_shows_cursor():
    blocks = render_preview("")
    assert len(blocks) == 1
    assert blocks[0].cursor


def test_preview_of_partial_tag():
    blocks = render_preview("<Narration>완성.</Narration><Narration>진행")
    assert [b.kind for b in blocks] == ["prose", "prose"]
    assert blocks[-1].text == "<Narration>진행"
    assert blocks[-1].cursor


def test_preview_unwraps_partial_envelope():
    blocks = render_preview('```json\n{"nextStrory": "<Narration>비가 내린다</Narration><Narr')
    assert blocks[0].kind == "prose"
    assert blocks[0].text == "비가 내린다"


def test_render_message_unwraps_stored_envelope():
    content = json.dumps({"nextStory": "<Summary>HP 3</Summary>", "aiAnswer": ""})
    blocks = render_message(content)
    assert blocks == [RenderBlock(kind="summary", text="HP 3", label=SUMMARY_LABEL)]


def test_render_message_empty_content():
    assert render_message("") == []


def test_composer_failure_falls_back_to_raw_text():
    with patch(
        "storyteller.render.composer.parse_story_segments",
        side_effect=RuntimeError("boom"),
    ):
        blocks = render_message("<Narration>x</Narration>")
    assert blocks == [RenderBlock(kind="raw", text="<Narration>x</Narration>")]


def test_to_html_escapes_and_formats():
    block = RenderBlock(kind="prose", text="**경고** <b>\n*속삭임*")
    html = block.to_html()
    assert "<strong>경고</strong>" in html
    assert "&lt;b&gt;" in html
    assert "<br>" in html
    assert "<em>속삭임</em>" in html


def test_to_html_dialogue_and_cursor():
    block = compose([Segment(type="dialogue", character="미라", content="안녕")], streaming=True)[0]
    html = block.to_html()
    assert "<b>미라</b>" in html
    assert '"안녕"' in html
    assert 'class="cursor"' in html

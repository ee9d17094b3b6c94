"""Tests for narrator and summary prompt rendering."""

import pytest

from storyteller.models import Message, SessionSettings
from storyteller.prompts import (
    PromptError,
    build_context,
    build_narrator_prompt,
    build_summary_prompt,
    render_prompt,
)

STORY = {
    "title": "무림영웅전",
    "genre": "무협",
    "world_settings": "정파와 사파가 대립한다.",
    "prologue": "",
}


def _msg(i: int, role: str, content: str) -> Message:
    return Message(id=i, session_id=1, role=role, content=content, created_at="t")


def test_render_prompt_basic():
    assert render_prompt("Hello {{name}}", {"name": "미라"}) == "Hello 미라"


def test_render_prompt_bad_template_raises():
    with pytest.raises(PromptError):
        render_prompt("{{#if}}", {})


def test_last_helper():
    out = render_prompt("{{#last items 2}}{{this}},{{/last}}", {"items": [1, 2, 3]})
    assert out == "2,3,"


def test_narrator_prompt_includes_story_and_settings():
    settings = SessionSettings(user_note="존댓말을 쓴다", summary_memory="[1턴] 낙양 도착")
    prompt = build_narrator_prompt(STORY, settings, [], "객잔에 들어간다")
    assert "무림영웅전" in prompt
    assert "정파와 사파가 대립한다." in prompt
    assert "존댓말을 쓴다" in prompt
    assert "[1턴] 낙양 도착" in prompt
    assert "객잔에 들어간다" in prompt
    assert "대화 프로필" not in prompt  # empty sections omitted


def test_tags_in_history_are_not_html_escaped():
    history = [_msg(1, "assistant", "<Narration>비가 온다.</Narration>")]
    prompt = build_narrator_prompt(STORY, SessionSettings(), history, "우산을 편다")
    assert "<Narration>비가 온다.</Narration>" in prompt
    assert "&lt;" not in prompt


def test_trailing_current_user_message_not_duplicated():
    history = [_msg(1, "assistant", "서막"), _msg(2, "user", "문을 연다")]
    ctx = build_context(STORY, SessionSettings(), history, "문을 연다")
    assert [m["content"] for m in ctx["msgs"]] == ["서막"]


def test_recent_limits_history():
    history = [_msg(i, "assistant", f"장면{i}") for i in range(1, 6)]
    prompt = build_narrator_prompt(STORY, SessionSettings(), history, "다음", recent=2)
    assert "장면3" not in prompt
    assert "장면4" in prompt
    assert "장면5" in prompt


def test_story_prompt_template_overrides_default():
    story = dict(STORY, prompt_template="{{{story.title}}} / {{{message}}}")
    assert build_narrator_prompt(story, SessionSettings(), [], "가자") == "무림영웅전 / 가자"


def test_summary_prompt():
    prompt = build_summary_prompt(["첫 응답", "둘째 응답"], "[1턴] 시작")
    assert "[기존 요약]" in prompt
    assert "[1턴] 시작" in prompt
    assert "[최근 AI 응답 2개]" in prompt
    assert "첫 응답\n\n둘째 응답" in prompt


def test_summary_prompt_without_existing_summary():
    assert "[기존 요약]" not in build_summary_prompt(["응답"], None)


def test_enveloped_history_is_retagged():
    stored = '```json\n{"nextStory": "<Narration>문이 열린다.</Narration><CharacterDialogue>진 | \\"누구냐\\"</CharacterDialogue>"}\n```'
    ctx = build_context(STORY, SessionSettings(), [_msg(1, "assistant", stored)], "들어간다")
    assert ctx["msgs"][0]["content"] == (
        '<Narration>문이 열린다.</Narration>\n<CharacterDialogue>진 | "누구냐"</CharacterDialogue>'
    )


def test_user_history_kept_verbatim():
    history = [_msg(1, "user", '{"nextStory": "장난"}')]
    ctx = build_context(STORY, SessionSettings(), history, "다음")
    assert ctx["msgs"][0]["content"] == '{"nextStory": "장난"}'


def test_story_examples_and_starting_situation_in_prompt():
    story = dict(
        STORY,
        description="정통 무협",
        starting_situation="낙양 객잔 앞",
        example_user_input="검을 뽑는다",
        example_ai_response="<Narration>칼날이 빛난다.</Narration>",
    )
    prompt = build_narrator_prompt(story, SessionSettings(), [], "가자")
    assert "소개: 정통 무협" in prompt
    assert "낙양 객잔 앞" in prompt
    assert "> 검을 뽑는다" in prompt
    assert "<Narration>칼날이 빛난다.</Narration>" in prompt


def test_missing_example_response_omits_section():
    prompt = build_narrator_prompt(STORY, SessionSettings(), [], "가자")
    assert "응답 예시" not in prompt
    assert "시작 상황" not in prompt

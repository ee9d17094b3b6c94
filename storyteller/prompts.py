"""Handlebars prompt rendering for the narrator and the summary memory."""

from collections.abc import Callable
from typing import Any

import pybars

from storyteller.models import Message, SessionSettings
from storyteller.render import parse_story_segments, segments_to_text, unwrap_stored

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


DEFAULT_NARRATOR_PROMPT = """\
당신은 인터랙티브 스토리의 내레이터입니다.

## 작품
제목: {{{story.title}}}
{{#if story.genre}}장르: {{{story.genre}}}
{{/if}}
{{#if story.description}}소개: {{{story.description}}}
{{/if}}
{{#if story.world_settings}}
## 세계관
{{{story.world_settings}}}
{{/if}}
{{#if story.prologue}}
## 프롤로그
{{{story.prologue}}}
{{/if}}
{{#if story.starting_situation}}
## 시작 상황
{{{story.starting_situation}}}
{{/if}}
{{#if story.example_ai_response}}
## 응답 예시
{{#if story.example_user_input}}> {{{story.example_user_input}}}
{{/if}}
{{{story.example_ai_response}}}
{{/if}}
{{#if settings.conversation_profile}}
## 대화 프로필
{{{settings.conversation_profile}}}
{{/if}}
{{#if settings.user_note}}
## 유저 노트
{{{settings.user_note}}}
{{/if}}
{{#if settings.summary_memory}}
## 요약 메모리
{{{settings.summary_memory}}}
{{/if}}
## 최근 대화
{{#last msgs recent}}
{{#if is_user}}> {{{content}}}{{else}}{{{content}}}{{/if}}

{{/last}}
## 유저 입력
{{{message}}}

다음 이야기를 이어서 작성하세요. 반드시 아래 태그만 사용합니다:
<Narration>서술</Narration>
<CharacterDialogue>인물 이름 | "대사"</CharacterDialogue>
<Summary>현재 상태 정보</Summary>
태그 밖에는 아무것도 쓰지 마세요.\
"""

DEFAULT_SUMMARY_PROMPT = """\
당신은 인터랙티브 스토리의 타임라인을 작성하는 AI입니다.
다음 규칙을 반드시 따르세요:
1. **형식**: [시간] 사건 요약 한 줄
2. **시간 표기**: [1턴], [5턴], [12턴] 등 턴 번호 사용
3. **각 사건은 한 줄로**: 간결하게 핵심만 표현 (20-30자 내외)
4. **기존 타임라인에 추가**: 기존 내용은 그대로 유지하고 새로운 사건만 추가
5. **중요한 사건만**: 의미 있는 선택, 결정, 전개만 포함

{{#if existing_summary}}
[기존 요약]
{{{existing_summary}}}

{{/if}}
[최근 AI 응답 {{message_count}}개]
{{{ai_messages}}}

위 내용을 바탕으로 타임라인을 작성하세요.
중요:
- 기존 타임라인을 그대로 유지하고 새로운 사건만 추가
- 각 줄은 [턴수] 사건 형식으로 20-30자 이내
- 타임라인은 길이 제한 없이 계속 쌓임\
"""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}}: iterate over the last N items."""
    result = []
    count = int(count)
    if count <= 0:
        return result
    for item in list(items)[-count:]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def _retag(content: str) -> str:
    """Stored assistant text as clean tagged narrative, envelope removed."""
    return segments_to_text(parse_story_segments(unwrap_stored(content)))


def build_context(
    story: dict[str, Any],
    settings: SessionSettings,
    messages: list[Message],
    user_message: str,
    recent: int = 20,
) -> dict[str, Any]:
    """Assemble narrator template variables.

    The user message of the current turn is already persisted when the
    stream is opened, so a trailing copy of it is dropped from the history.
    """
    history = list(messages)
    if history and history[-1].role == "user" and history[-1].content == user_message:
        history.pop()

    msgs = [
        {
            "role": m.role,
            "content": m.content if m.role == "user" else _retag(m.content),
            "character": m.character or "",
            "is_user": m.role == "user",
        }
        for m in history
    ]
    return {
        "story": {
            "title": story.get("title", ""),
            "genre": story.get("genre", ""),
            "world_settings": story.get("world_settings", ""),
            "prologue": story.get("prologue", ""),
            "description": story.get("description") or "",
            "starting_situation": story.get("starting_situation") or "",
            "example_user_input": story.get("example_user_input") or "",
            "example_ai_response": story.get("example_ai_response") or "",
        },
        "settings": settings.model_dump(),
        "msgs": msgs,
        "recent": recent,
        "message": user_message,
    }


def build_narrator_prompt(
    story: dict[str, Any],
    settings: SessionSettings,
    messages: list[Message],
    user_message: str,
    recent: int = 20,
) -> str:
    template = story.get("prompt_template") or DEFAULT_NARRATOR_PROMPT
    return render_prompt(
        template, build_context(story, settings, messages, user_message, recent)
    )


def build_summary_prompt(
    ai_messages: list[str],
    existing_summary: str | None,
    template: str | None = None,
) -> str:
    context = {
        "existing_summary": existing_summary or "",
        "message_count": len(ai_messages),
        "ai_messages": "\n\n".join(ai_messages),
    }
    return render_prompt(template or DEFAULT_SUMMARY_PROMPT, context)

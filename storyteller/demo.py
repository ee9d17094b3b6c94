"""Create demo stories for development/testing."""

import shutil

from storyteller import storage

DEMO_STORIES = [
    {
        "title": "무림영웅전",
        "genre": "무협",
        "world_settings": "정파와 사파가 대립하는 강호. 하오문은 정보를 사고팔며 "
        "만월루는 낙양 제일의 객잔이다.",
        "prologue": "<Narration>낙양에 도착한 당신은 소매치기에게 전낭을 잃었다. "
        "골목 끝에서 누군가 당신을 지켜보고 있다.</Narration>"
        "<CharacterDialogue>조설연 | \"찾는 물건이 있나 보군요.\"</CharacterDialogue>",
    },
    {
        "title": "국가의 시대",
        "genre": "판타지 전략",
        "world_settings": "대륙은 일곱 왕국으로 나뉘어 있고, 당신은 변방 영지의 영주다.",
    },
]


def create_demo_data() -> None:
    """Wipe existing stories/sessions and create fresh demo data."""
    for directory in (storage.stories_dir(), storage.sessions_dir()):
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)

    for story in DEMO_STORIES:
        created = storage.create_story(**story)
        session = storage.create_session(created["id"], created["title"])
        if created["prologue"]:
            storage.append_message(session["id"], "assistant", created["prologue"])

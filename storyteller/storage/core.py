"""Storage initialization, path helpers, and id allocation."""

import json
from pathlib import Path

_data_dir: Path | None = None


def init_storage(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    stories_dir().mkdir(exist_ok=True)
    sessions_dir().mkdir(exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def stories_dir() -> Path:
    return data_dir() / "stories"


def sessions_dir() -> Path:
    return data_dir() / "sessions"


def next_id(directory: Path) -> int:
    """Next integer id for a directory of ``<id>.json`` files."""
    ids = [int(p.stem) for p in directory.glob("*.json") if p.stem.isdigit()]
    return max(ids, default=0) + 1


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

"""Storyteller: dev launcher and terminal play client."""

import argparse
import asyncio
import os
import subprocess
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def _print_blocks(blocks) -> None:
    for block in blocks:
        if block.kind == "dialogue":
            for line in block.lines:
                speaker = f"{line.speaker}: " if line.speaker else ""
                print(f'  {speaker}"{line.quote}"')
        elif block.kind == "summary":
            print(f"  [{block.label}]")
            for line in block.text.splitlines():
                print(f"  | {line}")
        else:
            print(block.text)
        print()


async def play(base_url: str, session_id: int) -> None:
    """Terminal chat against a running server; Enter on an empty line retries."""
    from storyteller.client import ConversationController

    streamed = 0

    def on_update(ctrl: ConversationController) -> None:
        nonlocal streamed
        if ctrl.preview and len(ctrl.preview) > streamed:
            sys.stdout.write(ctrl.preview[streamed:])
            sys.stdout.flush()
        streamed = len(ctrl.preview)

    async with httpx.AsyncClient(base_url=base_url, timeout=None) as client:
        resp = await client.get(f"/api/sessions/{session_id}")
        if resp.status_code != 200:
            print(resp.json().get("error", f"HTTP {resp.status_code}"))
            return
        ctrl = ConversationController(
            client, session_id, resp.json()["story_id"], on_update=on_update,
        )
        for message in await ctrl.load_transcript():
            if message.role == "user":
                print(f"> {message.content}\n")
            else:
                _print_blocks(ctrl.blocks_for(message))

        while True:
            try:
                text = input("\n> ")
            except EOFError:
                break
            if not text.strip() and ctrl.failed_input:
                ok = await ctrl.retry()
            else:
                ok = await ctrl.send(text)
            print("\n")
            if ok:
                _print_blocks(ctrl.blocks_for(ctrl.transcript[-1]))
            elif ctrl.last_error:
                print(f"[오류] {ctrl.last_error} (빈 줄을 입력하면 다시 시도합니다)")


def main():
    parser = argparse.ArgumentParser(description="Storyteller dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean and create demo stories")
    parser.add_argument("--play", type=int, metavar="SESSION_ID", default=None,
                        help="Play a session in the terminal against a running server")
    args = parser.parse_args()

    if args.play is not None:
        asyncio.run(play(f"http://localhost:{BACKEND_PORT}", args.play))
        return

    if args.demo or args.data_dir:
        from storyteller import storage
        data_dir = args.data_dir or Path("data")
        storage.init_storage(data_dir)
        if args.demo:
            from storyteller.demo import create_demo_data
            create_demo_data()

    # Build env for the subprocess so the backend picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "storyteller.app:app", "--reload",
         "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()

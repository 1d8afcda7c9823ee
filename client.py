from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import httpx


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="chatgate client")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print raw event-stream lines instead of decoded text.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Stream a completion through /chat.")
    chat.add_argument("message", help="User message to send.")
    chat.add_argument("--system", default=None, help="Optional system prompt.")

    upload = sub.add_parser("upload", help="Upload a file through /upload.")
    upload.add_argument("path", type=Path)
    upload.add_argument("--content-type", default=None)
    return parser.parse_args()


def extract_delta(line: str) -> str | None:
    """Return the content delta carried by one event-stream line, if any."""
    if not line.startswith("data:"):
        return None
    data = line[len("data:") :].strip()
    if not data or data == "[DONE]":
        return None
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        return None
    choices = chunk.get("choices") or [{}]
    return choices[0].get("delta", {}).get("content")


def _chat(args: argparse.Namespace) -> None:
    messages = []
    if args.system:
        messages.append({"role": "system", "content": args.system})
    messages.append({"role": "user", "content": args.message})

    with httpx.Client(timeout=None) as client:
        with client.stream("POST", f"{args.url}/chat", json={"messages": messages}) as resp:
            if resp.status_code >= 400:
                resp.read()
                print(resp.text)
                raise SystemExit(1)

            for line in resp.iter_lines():
                if args.debug:
                    print(line)
                    continue
                text = extract_delta(line)
                if text:
                    sys.stdout.write(text)
                    sys.stdout.flush()
    print("\n\n[done]")


def _upload(args: argparse.Namespace) -> None:
    content_type = args.content_type or "application/octet-stream"
    with args.path.open("rb") as fh:
        files = {"file": (args.path.name, fh, content_type)}
        resp = httpx.post(f"{args.url}/upload", files=files, timeout=60.0)
    print(json.dumps(resp.json(), indent=2, ensure_ascii=False))
    if resp.status_code >= 400:
        raise SystemExit(1)


def main() -> None:
    args = _parse_args()
    if args.command == "chat":
        _chat(args)
    else:
        _upload(args)


if __name__ == "__main__":
    main()

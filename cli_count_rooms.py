"""
--------------------
Simple command-line entrypoint to check how many rooms a message asks for,
without opening WhatsApp.

Usage example:
    python cli_count_rooms.py --category ECONOMY --file request.txt
    pbpaste | python cli_count_rooms.py
"""

import argparse
import sys
from pathlib import Path

from room_counter import extract_room_count, room_lines
from vacancy_bot import config
from vacancy_bot.datastore import load_json


def default_category() -> str:
    """room_category from config.json if there is one, else empty (bare counts only)."""
    return load_json(config.CONFIG_JSON, {}).get("room_category", "")


def main(argv=None) -> None:
    ap = argparse.ArgumentParser(description="Extract the requested room count from a message.")
    ap.add_argument(
        "--category",
        default=None,
        help="Room category label, e.g. ECONOMY (default: room_category from config.json)",
    )
    ap.add_argument("--file", help="Read the message from this file instead of stdin")
    ap.add_argument("--verbose", action="store_true", help="Also print the lines that mention rooms")
    args = ap.parse_args(argv)

    category = args.category if args.category is not None else default_category()
    message = Path(args.file).read_text(encoding="utf-8") if args.file else sys.stdin.read()

    if args.verbose:
        for line in room_lines(message):
            print(f"  | {line.strip()}")

    print(extract_room_count(message, category))


if __name__ == "__main__":
    main()

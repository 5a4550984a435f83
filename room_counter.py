"""
---------------
Tiny library to pull the requested room count out of a free-form
room-availability request, as posted in the hotel's WhatsApp group.

Typical message:

    NEW DELAYED SQ ARR
    SQ351/CPH/18SEP/ETA 0658
    NO. OF ROOMS
    03 ROOMS (ECONOMY)
    02 ROOMS (BUSINESS)

Strategy:
1) Keep only the lines that mention ROOM / ROOMS.
2) The first of those lines that also names the wanted category wins
   ("03 ROOMS (ECONOMY)" -> 3). No summing across lines.
3) Otherwise fall back to the first bare count ("5 ROOMS" with nothing after).
4) Nothing usable -> 0.

The function never raises and keeps no state, so the dispatch loop can call it
as often as it likes.
"""

from __future__ import annotations

import re
from typing import List, Optional

# ---- Patterns ----------------------------------------------------------------

LINE_BREAK_RE = re.compile(r"\r?\n")

# Any mention of ROOM / ROOMS, not word-bounded ("NO. OF ROOMS" counts too)
ROOM_TOKEN_RE = re.compile(r"ROOMS?", re.IGNORECASE)

# "10 ROOMS", "10ROOM", "03 ROOMS (ECONOMY)" -> ASCII digits right before the token
COUNT_RE = re.compile(r"([0-9]+)\s*ROOMS?", re.IGNORECASE)

# Bare count only: nothing but whitespace may follow the token
BARE_COUNT_RE = re.compile(r"([0-9]+)\s*ROOMS?\s*$", re.IGNORECASE)


# ---- Line helpers ------------------------------------------------------------

def split_lines(message: str) -> List[str]:
    """Split on \\n or \\r\\n and drop lines that are blank once trimmed."""
    return [line for line in LINE_BREAK_RE.split(message or "") if line.strip()]


def room_lines(message: str) -> List[str]:
    """Lines (in original order) that mention ROOM or ROOMS anywhere."""
    return [line for line in split_lines(message) if ROOM_TOKEN_RE.search(line)]


# ---- Passes ------------------------------------------------------------------

def _category_count(lines: List[str], category: str) -> Optional[int]:
    wanted = category.upper()
    for line in lines:
        if wanted not in line.upper():
            continue
        m = COUNT_RE.search(line)
        if m:
            return int(m.group(1))
    return None


def _bare_count(lines: List[str]) -> Optional[int]:
    for line in lines:
        m = BARE_COUNT_RE.search(line)
        if m:
            return int(m.group(1))
    return None


# ---- Public API --------------------------------------------------------------

def extract_room_count(message: str, category: Optional[str] = None) -> int:
    """
    Return how many rooms of `category` the message asks for.

    message : raw chat text, any case, any line endings.
    category: room class label such as "ECONOMY" (case-insensitive). Empty or
              None skips the category pass and only bare counts are used.

    returns: the count from the first category line with a number, else the
             first bare "<n> ROOM(S)" line, else 0.
    """
    lines = room_lines(message)

    if category:
        count = _category_count(lines, category)
        if count is not None:
            return count

    # A category line without a usable number still ends up here
    count = _bare_count(lines)
    return count if count is not None else 0


__all__ = ["extract_room_count", "room_lines", "split_lines"]

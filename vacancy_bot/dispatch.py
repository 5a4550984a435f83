
"""
One step of the poll-and-reply loop, kept free of browser code.

- `handle_message` decides what to do with the latest message and updates
  the BotState (vacancy, response window, processed hashes).
- `poll_once` wires it to a MessageSource: fetch, decide, persist, reply.

The browser side lives in vacancy_bot/whatsapp.py; tests use a fake source.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Set

from dateutil import tz

from room_counter import extract_room_count
from vacancy_bot.config import BotConfig
from vacancy_bot.criteria import meets_criteria_to_respond


# Outcome actions / skip reasons
REPLY = "reply"
SKIP = "skip"

NO_MESSAGE = "no-message"
DUPLICATE = "duplicate"
CRITERIA = "criteria"
LIMIT = "limit"
NO_ROOMS = "no-rooms"
INSUFFICIENT = "insufficient"


class VacancyPersistError(RuntimeError):
    """The new vacancy counter could not be saved; the reply was not sent."""


class MessageSource(Protocol):
    """Anything that can hand us the newest inbound message and post a reply."""

    def fetch_latest_message(self) -> Optional[str]: ...

    def send_reply(self, text: str) -> None: ...


@dataclass
class BotState:
    vacant_rooms: int
    response_count: int = 0
    last_response_at: float = 0.0   # epoch seconds; 0 -> first message opens a fresh window
    processed: Set[str] = field(default_factory=set)

    @classmethod
    def from_config(cls, cfg: BotConfig) -> "BotState":
        return cls(vacant_rooms=cfg.number_of_vacant_rooms)


@dataclass
class Outcome:
    action: str
    reason: str = ""
    rooms: int = 0
    reply_text: str = ""


def message_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def fmt_local(epoch: float, tz_name: str) -> str:
    """Format epoch seconds in the configured timezone for log lines."""
    zone = tz.gettz(tz_name) or tz.tzlocal()
    return dt.datetime.fromtimestamp(epoch, tz=zone).strftime("%a %d %b %Y %H:%M:%S")


def handle_message(text: Optional[str], cfg: BotConfig, state: BotState, now: float) -> Outcome:
    """
    Decide how to answer `text` and update `state` accordingly. No I/O.

    Messages that were answered, had no usable room count, or could not be
    served are remembered by hash. Messages refused by the response limit are
    not, so they get another chance once the window rolls over.
    """
    if text is None:
        return Outcome(SKIP, NO_MESSAGE)

    digest = message_hash(text)
    if digest in state.processed:
        return Outcome(SKIP, DUPLICATE)

    if not meets_criteria_to_respond(text, cfg.base_criteria, cfg.room_category, cfg.is_optimistic):
        state.processed.add(digest)
        return Outcome(SKIP, CRITERIA)

    if now - state.last_response_at > cfg.response_window_seconds:
        state.response_count = 0
        state.last_response_at = now

    if state.response_count >= cfg.response_limit:
        return Outcome(SKIP, LIMIT)

    rooms = extract_room_count(text, cfg.room_category)
    if rooms == 0:
        state.processed.add(digest)
        return Outcome(SKIP, NO_ROOMS)

    state.processed.add(digest)
    if state.vacant_rooms < rooms:
        return Outcome(SKIP, INSUFFICIENT, rooms=rooms)

    state.vacant_rooms -= rooms
    state.response_count += 1
    state.last_response_at = now
    return Outcome(REPLY, rooms=rooms, reply_text=cfg.response_text)


def poll_once(
    source: MessageSource,
    cfg: BotConfig,
    state: BotState,
    persist: Callable[[int], None],
    now: Optional[float] = None,
) -> Outcome:
    """
    Fetch the latest message, decide, and act on it.
    `persist(vacant_rooms)` is called before the reply goes out so a crash
    mid-send never hands out the same rooms twice. If it fails, `state` is
    put back the way it was and VacancyPersistError is raised.
    """
    if now is None:
        now = time.time()

    text = source.fetch_latest_message()
    before = (state.vacant_rooms, state.response_count, state.last_response_at)
    outcome = handle_message(text, cfg, state, now)

    if outcome.action == REPLY:
        try:
            persist(state.vacant_rooms)
        except Exception as e:
            state.vacant_rooms, state.response_count, state.last_response_at = before
            state.processed.discard(message_hash(text))
            raise VacancyPersistError(f"Could not save vacancy counter: {e}") from e
        source.send_reply(outcome.reply_text)
        print(f"[reply] {fmt_local(now, cfg.timezone)}: {outcome.rooms} room(s) taken, "
              f"{state.vacant_rooms} left ({state.response_count}/{cfg.response_limit} in window)")
    elif outcome.reason == LIMIT:
        print("[dispatch] Response limit reached. Waiting for the next window...")
    elif outcome.reason == INSUFFICIENT:
        print(f"[dispatch] Insufficient vacant rooms ({state.vacant_rooms} < {outcome.rooms}). Not responding.")
    elif outcome.reason == NO_ROOMS:
        print("[dispatch] Request matched but no room count found. Not responding.")
    elif outcome.reason == CRITERIA:
        print("[dispatch] Message does not meet criteria. Ignoring.")

    return outcome

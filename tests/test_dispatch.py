"""
------------------
Dispatch loop behaviour with a fake message source (no browser):
criteria, dedupe by hash, response window/limit, vacancy bookkeeping.
"""

from typing import List, Optional

import pytest

from vacancy_bot.config import BotConfig
from vacancy_bot.criteria import meets_criteria_to_respond
from vacancy_bot.dispatch import (
    CRITERIA, DUPLICATE, INSUFFICIENT, LIMIT, NO_MESSAGE, NO_ROOMS, REPLY,
    BotState, VacancyPersistError, handle_message, message_hash, poll_once, fmt_local,
)
from vacancy_bot.main import run_loop

REQUEST = "NEW DELAYED SQ ARR\nNO. OF ROOMS\n03 ROOMS (ECONOMY)\nDEPARTURE"


class FakeSource:
    def __init__(self, messages: List[Optional[str]]):
        self.messages = list(messages)
        self.sent: List[str] = []

    def fetch_latest_message(self) -> Optional[str]:
        if len(self.messages) > 1:
            return self.messages.pop(0)
        return self.messages[0] if self.messages else None

    def send_reply(self, text: str) -> None:
        self.sent.append(text)


def make_config(**overrides) -> BotConfig:
    values = dict(
        number_of_vacant_rooms=10,
        chat_group_name="Ops",
        base_criteria="NO. OF ROOMS",
        room_category="ECONOMY",
        message_check_interval_ms=0,
        response_text="Noted, we can take them.",
        response_limit=2,
        response_window_minutes=10,
        is_optimistic=False,
        input_selector="div[contenteditable='true']",
    )
    values.update(overrides)
    return BotConfig(**values)


def test_criteria() -> None:
    assert meets_criteria_to_respond(REQUEST, "NO. OF ROOMS", "ECONOMY", False) is True
    assert meets_criteria_to_respond(REQUEST.lower(), "no. of rooms", "economy", False) is True
    assert meets_criteria_to_respond(REQUEST, "NO. OF ROOMS", "BUSINESS", False) is False
    assert meets_criteria_to_respond(REQUEST, "NO. OF ROOMS", "BUSINESS", True) is True
    assert meets_criteria_to_respond("5 ROOMS\nNO. OF ROOMS", "NO. OF ROOMS", "", False) is True
    assert meets_criteria_to_respond("hello", "NO. OF ROOMS", "", False) is False


def test_reply_decrements_vacancy() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    out = handle_message(REQUEST, cfg, state, now=1000.0)
    assert out.action == REPLY
    assert out.rooms == 3
    assert out.reply_text == cfg.response_text
    assert state.vacant_rooms == 7
    assert state.response_count == 1
    assert state.last_response_at == 1000.0
    assert message_hash(REQUEST) in state.processed


def test_duplicate_and_empty() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    handle_message(REQUEST, cfg, state, now=1000.0)
    assert handle_message(REQUEST, cfg, state, now=1001.0).reason == DUPLICATE
    assert handle_message(None, cfg, state, now=1001.0).reason == NO_MESSAGE
    assert state.vacant_rooms == 7


def test_criteria_unmet_is_remembered() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    msg = "NO. OF ROOMS\n02 ROOMS (BUSINESS)"
    assert handle_message(msg, cfg, state, now=1.0).reason == CRITERIA
    assert handle_message(msg, cfg, state, now=2.0).reason == DUPLICATE


def test_optimistic_uses_bare_count() -> None:
    cfg = make_config(is_optimistic=True)
    state = BotState.from_config(cfg)
    out = handle_message("Need 4 ROOMS", cfg, state, now=1.0)
    assert out.action == REPLY and out.rooms == 4
    assert state.vacant_rooms == 6


def test_no_room_count() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    out = handle_message("NO. OF ROOMS\nECONOMY TBC", cfg, state, now=1.0)
    assert out.reason == NO_ROOMS
    assert state.vacant_rooms == 10


def test_insufficient_vacancy() -> None:
    cfg = make_config(number_of_vacant_rooms=2)
    state = BotState.from_config(cfg)
    out = handle_message(REQUEST, cfg, state, now=1.0)
    assert out.reason == INSUFFICIENT
    assert out.rooms == 3
    assert state.vacant_rooms == 2
    assert state.response_count == 0
    assert message_hash(REQUEST) in state.processed


def test_exact_vacancy_is_served() -> None:
    cfg = make_config(number_of_vacant_rooms=3)
    state = BotState.from_config(cfg)
    assert handle_message(REQUEST, cfg, state, now=1.0).action == REPLY
    assert state.vacant_rooms == 0


def test_response_limit_and_window() -> None:
    cfg = make_config(response_limit=1, response_window_minutes=10, number_of_vacant_rooms=50)
    state = BotState.from_config(cfg)
    first = REQUEST
    second = REQUEST.replace("03 ROOMS", "02 ROOMS")

    assert handle_message(first, cfg, state, now=1000.0).action == REPLY

    # inside the 10 minute window: refused and NOT remembered
    out = handle_message(second, cfg, state, now=1000.0 + 60)
    assert out.reason == LIMIT
    assert message_hash(second) not in state.processed

    # window rolled over: the same message goes through
    out = handle_message(second, cfg, state, now=1000.0 + 601)
    assert out.action == REPLY and out.rooms == 2
    assert state.response_count == 1
    assert state.vacant_rooms == 45


def test_poll_once_persists_before_reply() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    source = FakeSource([REQUEST])
    calls = []

    def persist(vacant: int) -> None:
        calls.append(("persist", vacant, list(source.sent)))

    out = poll_once(source, cfg, state, persist, now=1000.0)
    assert out.action == REPLY
    assert calls == [("persist", 7, [])]
    assert source.sent == [cfg.response_text]


def test_poll_once_skip_does_not_persist() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    source = FakeSource([None])
    calls = []
    out = poll_once(source, cfg, state, calls.append, now=1.0)
    assert out.reason == NO_MESSAGE
    assert calls == [] and source.sent == []


def test_run_loop_answers_each_new_message_once() -> None:
    cfg = make_config(response_limit=5)
    state = BotState.from_config(cfg)
    other = REQUEST.replace("03 ROOMS", "01 ROOM")
    source = FakeSource([None, REQUEST, REQUEST, other])
    saved = []
    sleeps = []

    run_loop(source, cfg, state, saved.append, sleep=sleeps.append, max_iterations=6)

    assert source.sent == [cfg.response_text, cfg.response_text]
    assert saved == [7, 6]
    assert state.vacant_rooms == 6
    assert len(sleeps) == 5


def test_run_loop_survives_source_errors() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)

    class Flaky(FakeSource):
        def fetch_latest_message(self):
            raise RuntimeError("page crashed")

    run_loop(Flaky([]), cfg, state, lambda v: None, sleep=lambda s: None, max_iterations=2)
    assert state.vacant_rooms == 10


def test_fmt_local() -> None:
    # 2020-09-13 12:26:40 UTC
    assert fmt_local(1600000000, "UTC") == "Sun 13 Sep 2020 12:26:40"
    assert fmt_local(1600000000, "Asia/Singapore") == "Sun 13 Sep 2020 20:26:40"


def _failing_persist(vacant: int) -> None:
    raise OSError("disk full")


def test_poll_once_rolls_back_when_save_fails() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    source = FakeSource([REQUEST])

    with pytest.raises(VacancyPersistError, match="disk full"):
        poll_once(source, cfg, state, _failing_persist, now=1000.0)

    assert source.sent == []
    assert state.vacant_rooms == 10
    assert state.response_count == 0
    assert state.last_response_at == 0.0
    assert message_hash(REQUEST) not in state.processed

    # once saving works again the same request is answered
    saved = []
    out = poll_once(source, cfg, state, saved.append, now=1001.0)
    assert out.action == REPLY
    assert saved == [7] and source.sent == [cfg.response_text]


def test_run_loop_stops_when_save_fails() -> None:
    cfg = make_config()
    state = BotState.from_config(cfg)
    source = FakeSource([REQUEST])
    sleeps = []

    with pytest.raises(VacancyPersistError):
        run_loop(source, cfg, state, _failing_persist, sleep=sleeps.append, max_iterations=2)

    assert source.sent == []
    assert sleeps == []
    assert state.vacant_rooms == 10
    assert message_hash(REQUEST) not in state.processed

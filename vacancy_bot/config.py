
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

from vacancy_bot.datastore import load_json, save_json

# Folders
ROOT = Path(__file__).resolve().parents[1]
SECRETS = ROOT / ".secrets"

# Files
CONFIG_JSON = ROOT / "config.json"                  # see config.example.json
USER_DATA_DIR = SECRETS / "chrome-user-data"        # persistent Chromium profile (WhatsApp login lives here)

# WhatsApp defaults
WHATSAPP_URL = "https://web.whatsapp.com"
LOGIN_TIMEOUT_MS = 60000
DEFAULT_TIMEZONE = "Asia/Singapore"


class ConfigError(RuntimeError):
    """Raised when config.json is missing or has a bad/missing key."""


# key -> accepted python types. bool is checked separately (it is an int subclass).
REQUIRED_KEYS: Dict[str, tuple] = {
    "number_of_vacant_rooms": (int,),
    "chat_group_name": (str,),
    "base_criteria": (str,),
    "room_category": (str,),
    "message_check_interval_ms": (int,),
    "response_text": (str,),
    "response_limit": (int,),
    "response_window_minutes": (int, float),
    "is_optimistic": (bool,),
    "input_selector": (str,),
}

OPTIONAL_KEYS: Dict[str, tuple] = {
    "timezone": (str,),
    "headless": (bool,),
}

NON_NEGATIVE = ("number_of_vacant_rooms", "message_check_interval_ms", "response_limit", "response_window_minutes")


@dataclass
class BotConfig:
    number_of_vacant_rooms: int
    chat_group_name: str
    base_criteria: str
    room_category: str
    message_check_interval_ms: int
    response_text: str
    response_limit: int
    response_window_minutes: float
    is_optimistic: bool
    input_selector: str
    timezone: str = DEFAULT_TIMEZONE
    headless: bool = False

    @property
    def response_window_seconds(self) -> float:
        return self.response_window_minutes * 60

    @property
    def check_interval_seconds(self) -> float:
        return self.message_check_interval_ms / 1000


def _type_ok(value: Any, types: tuple) -> bool:
    if isinstance(value, bool):
        return bool in types
    return isinstance(value, types)


def validate_config(data: Dict[str, Any]) -> None:
    """
    Check every required key is present with the right type.
    Raises ConfigError naming the first offending key.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration error: config must be a JSON object")

    for key, types in REQUIRED_KEYS.items():
        if key not in data:
            raise ConfigError(f'Configuration error: Missing required config key "{key}"')
        if not _type_ok(data[key], types):
            names = " or ".join(t.__name__ for t in types)
            raise ConfigError(f'Configuration error: Config key "{key}" should be of type "{names}"')

    for key, types in OPTIONAL_KEYS.items():
        if key in data and not _type_ok(data[key], types):
            names = " or ".join(t.__name__ for t in types)
            raise ConfigError(f'Configuration error: Config key "{key}" should be of type "{names}"')

    for key in NON_NEGATIVE:
        if data[key] < 0:
            raise ConfigError(f'Configuration error: Config key "{key}" must not be negative')


def config_from_dict(data: Dict[str, Any]) -> BotConfig:
    validate_config(data)
    known = {f.name for f in fields(BotConfig)}
    return BotConfig(**{k: v for k, v in data.items() if k in known})


def load_config(path: Path = CONFIG_JSON) -> BotConfig:
    """Read + validate config.json. Unknown keys are ignored."""
    data = load_json(path, None)
    if data is None:
        raise ConfigError(f"Missing {path}. Copy config.example.json and fill it in.")
    return config_from_dict(data)


def save_vacancy(path: Path, vacant_rooms: int) -> None:
    """Write the new vacancy counter back into config.json, leaving other keys as they are."""
    data = load_json(path, {})
    data["number_of_vacant_rooms"] = vacant_rooms
    save_json(path, data)

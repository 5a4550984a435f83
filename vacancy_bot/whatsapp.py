"""
WhatsApp Web message source using Playwright.

- Launches Chromium with a persistent profile (.secrets/chrome-user-data), so
  the QR login only has to be scanned once
- Opens the configured group chat and keeps it selected
- Reads the newest inbound message and types replies into the chat box
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from playwright.sync_api import TimeoutError as PWTimeout
from playwright.sync_api import sync_playwright

from vacancy_bot import config
from vacancy_bot.config import BotConfig

# ---- Selectors ---------------------------------------------------------------

INBOUND_MESSAGE_SEL = "div.message-in span.selectable-text"
CURRENT_CHAT_TITLE_SEL = "div._amif span._ao3e"
CHAT_LIST_SEL = "#pane-side"


def group_title_selector(name: str) -> str:
    escaped = name.replace('"', '\\"')
    return f'span[title="{escaped}"]'


class WhatsAppWebSource:
    """
    Context manager around a persistent Chromium session on web.whatsapp.com.

        with WhatsAppWebSource(cfg) as wa:
            text = wa.fetch_latest_message()
            wa.send_reply("OK")
    """

    def __init__(self, cfg: BotConfig, user_data_dir: Path = config.USER_DATA_DIR,
                 login_timeout_ms: int = config.LOGIN_TIMEOUT_MS):
        self.cfg = cfg
        self.user_data_dir = Path(user_data_dir)
        self.login_timeout_ms = login_timeout_ms
        self._pw = None
        self._ctx = None
        self.page = None

    # ---- lifecycle -----------------------------------------------------------

    def __enter__(self) -> "WhatsAppWebSource":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def start(self) -> None:
        self.user_data_dir.mkdir(parents=True, exist_ok=True)
        self._pw = sync_playwright().start()
        self._ctx = self._pw.chromium.launch_persistent_context(
            str(self.user_data_dir), headless=self.cfg.headless
        )
        self.page = self._ctx.pages[0] if self._ctx.pages else self._ctx.new_page()
        self.page.goto(config.WHATSAPP_URL)
        self.wait_for_login()
        self.select_chat_group()

    def stop(self) -> None:
        if self._ctx is not None:
            self._ctx.close()
        if self._pw is not None:
            self._pw.stop()
        self._ctx = None
        self._pw = None
        self.page = None

    # ---- login / navigation --------------------------------------------------

    def wait_for_login(self) -> None:
        """Wait for the chat list; if it doesn't show up, ask for a QR scan and wait again."""
        try:
            self.page.wait_for_selector(CHAT_LIST_SEL, state="visible", timeout=self.login_timeout_ms)
            print("[chat] Logged in successfully.")
        except PWTimeout:
            print("[chat] Please scan the QR code to log in.")
            self.page.wait_for_selector(CHAT_LIST_SEL, state="visible", timeout=self.login_timeout_ms)
            print("[chat] Logged in successfully after scanning QR code.")

    def select_chat_group(self) -> None:
        sel = group_title_selector(self.cfg.chat_group_name)
        self.page.wait_for_selector(sel)
        self.page.click(sel)
        print(f"[chat] Opened group chat: {self.cfg.chat_group_name}")

    def current_chat_title(self) -> Optional[str]:
        el = self.page.query_selector(CURRENT_CHAT_TITLE_SEL)
        return el.text_content() if el else None

    def ensure_group_selected(self) -> None:
        current = self.current_chat_title()
        if current != self.cfg.chat_group_name:
            print(f"[chat] Current group ({current}) is not the specified group "
                  f"({self.cfg.chat_group_name}). Re-selecting...")
            self.select_chat_group()

    # ---- MessageSource -------------------------------------------------------

    def fetch_latest_message(self) -> Optional[str]:
        """Text of the newest inbound message in the group, or None if there is none yet."""
        self.ensure_group_selected()
        try:
            self.page.wait_for_selector(INBOUND_MESSAGE_SEL, state="visible", timeout=self.login_timeout_ms)
        except PWTimeout:
            return None
        texts = self.page.eval_on_selector_all(
            INBOUND_MESSAGE_SEL, "els => els.map(el => el.textContent)"
        )
        return texts[-1] if texts else None

    def send_reply(self, text: str) -> None:
        sel = self.cfg.input_selector
        self.page.wait_for_selector(sel)
        self.page.type(sel, text)
        self.page.keyboard.press("Enter")

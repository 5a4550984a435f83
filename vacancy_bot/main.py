
import argparse
import time
from functools import partial
from pathlib import Path
from typing import Callable, Optional

from vacancy_bot import config
from vacancy_bot.config import BotConfig, ConfigError, load_config, save_vacancy
from vacancy_bot.dispatch import BotState, MessageSource, VacancyPersistError, poll_once


def run_loop(
    source: MessageSource,
    cfg: BotConfig,
    state: BotState,
    persist: Callable[[int], None],
    *,
    sleep: Callable[[float], None] = time.sleep,
    max_iterations: Optional[int] = None,
) -> BotState:
    """
    Poll `source` forever (or `max_iterations` times), one message snapshot per pass.
    A failed pass is logged and the loop carries on at the next interval,
    except when the vacancy counter can't be saved: that stops the loop.
    """
    done = 0
    while max_iterations is None or done < max_iterations:
        try:
            poll_once(source, cfg, state, persist)
        except VacancyPersistError:
            raise
        except Exception as e:
            print(f"[dispatch] poll error: {e}")
        done += 1
        if max_iterations is None or done < max_iterations:
            sleep(cfg.check_interval_seconds)
    return state


# ------------- Run -----------------
def main(argv=None) -> None:
    ap = argparse.ArgumentParser(description="Auto-reply to room requests in a WhatsApp group.")
    ap.add_argument(
        "--config",
        default=str(config.CONFIG_JSON),
        help="Path to config.json (vacancy counter is written back here)",
    )
    ap.add_argument("--once", action="store_true", help="Handle a single message snapshot and exit")
    args = ap.parse_args(argv)

    config_path = Path(args.config)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        raise SystemExit(str(e))

    state = BotState.from_config(cfg)
    print(f"[config] {cfg.number_of_vacant_rooms} vacant rooms, category '{cfg.room_category or '-'}', "
          f"group '{cfg.chat_group_name}'")

    # Imported here so the rest of the bot (and its tests) runs without a browser
    from vacancy_bot.whatsapp import WhatsAppWebSource

    persist = partial(save_vacancy, config_path)
    try:
        with WhatsAppWebSource(cfg) as wa:
            run_loop(wa, cfg, state, persist, max_iterations=1 if args.once else None)
    except KeyboardInterrupt:
        print(f"\n[dispatch] Stopped. {state.vacant_rooms} vacant rooms left.")
    except VacancyPersistError as e:
        raise SystemExit(f"[dispatch] {e}")


if __name__ == "__main__":
    main()

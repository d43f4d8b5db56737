from __future__ import annotations

import argparse
import logging

from campaign_agent.config.settings import Settings
from campaign_agent.runtime.loop import CampaignRunner
from campaign_agent.runtime.notifier import ChatMessage
from campaign_agent.storage.memory import InMemoryCampaignStorage
from campaign_agent.storage.postgres import PostgresCampaignStorage
from campaign_agent.tools.fetch import build_fetcher
from campaign_agent.tools.oracle import build_oracle


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Chat with a campaign runtime from the terminal. "
        "Type /stop, /resume or /quit to control it."
    )
    parser.add_argument(
        "--oracle-mode",
        choices=("llm", "deterministic"),
        default=None,
        help="Override CAMPAIGN_AGENT_ORACLE_MODE.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Persist to PostgreSQL instead of process memory.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable INFO logging.")
    return parser.parse_args()


def _print_message(message: ChatMessage) -> None:
    print(f"[{message.timestamp:%H:%M:%S}] {message.role}: {message.content}")


def main() -> None:
    args = _parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    settings = Settings()
    if args.oracle_mode:
        settings = settings.model_copy(update={"oracle_mode": args.oracle_mode})

    if args.database_url:
        storage = PostgresCampaignStorage(args.database_url)
    else:
        storage = InMemoryCampaignStorage()
    storage.migrate()

    runner = CampaignRunner.from_ports(
        storage=storage,
        oracle=build_oracle(settings),
        fetcher=build_fetcher(settings),
        step_interval_s=settings.step_interval_s,
    )
    runner.subscribe(_print_message)
    runner.start()

    try:
        while True:
            line = input().strip()
            if not line:
                continue
            if line == "/quit":
                break
            if line == "/stop":
                runner.stop()
            elif line == "/resume":
                runner.resume()
            else:
                runner.send_user_message(line)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        runner.shutdown()


if __name__ == "__main__":
    main()

"""Command line helpers for Carmcards."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .abstractions import SimpleBotConfig, run_simple_bot_sync
from .app import BotApp
from .config import CarmcardsConfig
from .loaders import load_catalog_from_json, validate_catalog_file
from .validators import validate_app


def run_validate() -> None:
    parser = argparse.ArgumentParser(description="Carmcards catalog and configuration validator")
    parser.add_argument("catalog", help="Path to catalog JSON file for validation")
    args = parser.parse_args()

    errors = validate_catalog_file(Path(args.catalog))
    if errors:
        print("Catalog errors:")
        for err in errors:
            print(f"- {err}")
        sys.exit(1)

    app = BotApp(CarmcardsConfig.from_env())
    load_catalog_from_json(app, args.catalog)
    issues = validate_app(app)
    if issues:
        print("Configuration errors:")
        for issue in issues:
            print(f"- {issue}")
        sys.exit(1)
    print("Catalog and configuration are valid ✅")


def run_bot() -> None:
    parser = argparse.ArgumentParser(description="Run the Carmcards Telegram bot")
    parser.add_argument("--catalog", help="Path to catalog JSON file (or CARMCARDS_CATALOG_PATH)")
    parser.add_argument(
        "--storage",
        default="memory",
        help="'memory' or a path to a SQLite database file",
    )
    args = parser.parse_args()

    config = CarmcardsConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    catalog_path = args.catalog or config.catalog_path
    if not catalog_path:
        parser.error("a catalog is required: pass --catalog or set CARMCARDS_CATALOG_PATH")
    token = config.bot_token or os.getenv("BOT_TOKEN", "")
    if not token:
        parser.error("CARMCARDS_BOT_TOKEN is not set")

    run_simple_bot_sync(
        SimpleBotConfig(bot_token=token, catalog_path=Path(catalog_path), storage=args.storage)
    )

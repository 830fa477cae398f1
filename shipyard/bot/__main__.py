"""
shipyard.bot.__main__ — Entry point for ``python -m shipyard.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (identity settings).
3. Create the SQLAlchemy engine, ensure tables exist and seed defaults.
4. Build and warm the PolicyCache.
5. Create the ShipyardBot and hand it config + engine + cache.
6. Start the bot (blocking — runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from shipyard.bot.core import ShipyardBot
from shipyard.config import load_config
from shipyard.database.engine import create_db_engine, init_db
from shipyard.engine.cache import PolicyCache

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("shipyard")


def main() -> None:
    """Bootstrap and run the Shipyard bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Identity configuration.
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Database (create_all + idempotent seed).
    engine = create_db_engine()
    init_db(engine)

    # 4. Policy cache.
    cache = PolicyCache(engine)
    cache.load_all()

    # 5. Bot.
    bot = ShipyardBot(cfg=cfg, engine=engine, cache=cache)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Shipyard bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()

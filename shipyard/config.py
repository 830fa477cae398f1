"""
shipyard.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **infrastructure-only** settings (Discord
identity, admin role, announcement channel).  Every scoring knob (points,
caps, season length, weekly goal, timezone) lives in the ``policies``
table and is read through :class:`~shipyard.engine.cache.PolicyCache`.

Usage::

    from shipyard.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "ShipYard"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class ShipyardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    community_name: str
    bot_prefix: str
    guild_id: int  # Primary guild snowflake (single community)
    admin_role_id: int  # Role required for /policy, /grant-badge, /end-season

    announce_channel_id: int | None = None  # Badges, promotions, seasons, digests


def load_config(path: str | Path = "config.yaml") -> ShipyardConfig:
    """Read *path* and return a :class:`ShipyardConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return ShipyardConfig(
        community_name=raw["community_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]),
        admin_role_id=int(raw["admin_role_id"]),
        announce_channel_id=(
            int(raw["announce_channel_id"]) if raw.get("announce_channel_id") else None
        ),
    )

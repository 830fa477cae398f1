"""
Shipyard — Engagement Scoring for a Builder Community
=======================================================
Turns recorded community actions (check-ins, meeting attendance, demos,
helpful feedback, solved help requests) into season-scoped points,
badges, weekly streaks, and role-progression grants.

Package layout::

    shipyard/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Presentation constants shared by bot embeds
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default policies + badge catalogue
    ├── engine/
    │   ├── cache.py       # PolicyCache — injected configuration service
    │   ├── events.py      # Notification event dataclasses
    │   ├── points.py      # Points calculation + weekly cap
    │   ├── weeks.py       # Week-key helpers (community timezone)
    │   ├── streaks.py     # Weekly streak arithmetic
    │   ├── badges.py      # Declarative badge rule evaluation
    │   ├── progression.py # Role tier thresholds
    │   └── schedule.py    # Recurring job calendar
    ├── services/
    │   ├── ledger_service.py       # log_action + user stats
    │   ├── season_service.py       # Season lifecycle + rollover
    │   ├── streak_service.py       # Weekly rollup
    │   ├── badge_service.py        # Badge awarding
    │   ├── progression_service.py  # Role grants via RoleGateway
    │   ├── digest_service.py       # Weekly digest payload
    │   ├── policy_service.py       # Policy CRUD
    │   ├── embeds.py               # Discord embed builders
    │   ├── schedule_service.py     # Durable "due at" jobs
    │   ├── scheduler.py            # JobRunner (tick + per-kind guard)
    │   └── notification_service.py # Notifier fan-out
    └── bot/
        ├── core.py        # Bot subclass, cog loader, role gateway
        ├── announcements.py # Notifier → Discord embeds
        └── cogs/          # Slash commands + scheduler loop
"""

__version__ = "0.1.0"

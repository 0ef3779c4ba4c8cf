"""
perfboard — IT Performance Leaderboard
=======================================
Employees earn points granted by an admin, climb a leaderboard, and
unlock threshold achievements.  Every point change is pushed to connected
browsers over a WebSocket channel.

Package layout::

    perfboard/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Domain error taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # Employees, points history, achievements
    │   └── seed.py        # Default achievement catalogue
    ├── engine/
    │   ├── achievements.py # Threshold check (pure)
    │   └── events.py      # Broadcast event envelopes
    ├── services/
    │   ├── ledger_service.py      # Award / edit / delete points
    │   ├── achievement_service.py # Evaluate + record unlocks
    │   └── employee_service.py    # Employee CRUD + leaderboard
    ├── realtime/
    │   ├── broadcaster.py # Server-side connection registry + fan-out
    │   ├── client.py      # Reconnecting notification client
    │   └── __main__.py    # ``python -m perfboard.realtime``
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Password login → JWT cookie
        └── routes/        # Public, admin, and WebSocket endpoints
"""

__version__ = "0.1.0"

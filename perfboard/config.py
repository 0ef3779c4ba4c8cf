"""
perfboard.config — YAML Configuration Loader
=============================================

Soft settings (display name, token lifetime, reconnect policy) live in
``config.yaml``.  Secrets (``DATABASE_URL``, ``JWT_SECRET``,
``ADMIN_PASSWORD``) stay in the environment / ``.env``.

Usage::

    from perfboard.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.app_name)              # "IT Performance"
    print(cfg.reconnect_max_attempts)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = "config.yaml"


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PerfboardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str

    # Dashboard
    dashboard_port: int

    # Admin session
    token_ttl_hours: int = 24

    # Populate the default achievement catalogue on startup
    seed_achievements: bool = True

    # Notification client reconnect policy
    ws_url: str = "ws://localhost:8000/ws"
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    reconnect_max_attempts: int = 5


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def config_path_from_env() -> Path:
    """Resolve the config file path (``PERFBOARD_CONFIG`` or ``config.yaml``)."""
    return Path(os.getenv("PERFBOARD_CONFIG", DEFAULT_CONFIG_PATH))


def load_config(path: str | Path | None = None) -> PerfboardConfig:
    """Read *path* and return a :class:`PerfboardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$PERFBOARD_CONFIG`` or ``config.yaml`` in the working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path) if path is not None else config_path_from_env()
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = PerfboardConfig(app_name="", dashboard_port=0)
    return PerfboardConfig(
        app_name=raw["app_name"],
        dashboard_port=int(raw["dashboard_port"]),
        token_ttl_hours=int(raw.get("token_ttl_hours", defaults.token_ttl_hours)),
        seed_achievements=bool(raw.get("seed_achievements", defaults.seed_achievements)),
        ws_url=str(raw.get("ws_url", defaults.ws_url)),
        reconnect_base_delay=float(
            raw.get("reconnect_base_delay", defaults.reconnect_base_delay)
        ),
        reconnect_max_delay=float(
            raw.get("reconnect_max_delay", defaults.reconnect_max_delay)
        ),
        reconnect_max_attempts=int(
            raw.get("reconnect_max_attempts", defaults.reconnect_max_attempts)
        ),
    )

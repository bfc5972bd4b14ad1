"""
Exporter configuration file support.

Reads/writes ``~/.speedtest-exporter/config.json``.  Command-line flags
override whatever the file provides.

Supported keys::

    listen_address = "0.0.0.0"  # scrape endpoint bind address
    port = 9798                 # scrape endpoint port
    backend = "speedtest"       # speedtest, bbk or all
    bbk_binary = "bbk_cli"      # path to the BBK binary
    server_id = -1              # speedtest.net server ID, -1 = nearest
    server_fallback = false     # accept another server if the ID is gone
    server_limit = 10
    ping_count = 10
    download_duration = 10.0
    upload_duration = 10.0
    connections = 4
    log_level = "INFO"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from provider.constants import (
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    DEFAULT_PING_COUNT,
    DEFAULT_SERVER_LIMIT,
    MAX_CONNECTIONS,
    MAX_DURATION,
    MAX_PING_COUNT,
    MIN_CONNECTIONS,
    MIN_DURATION,
    MIN_PING_COUNT,
)

from .speedtest import SERVER_ID_NEAREST

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedtest-exporter")
_CONFIG_FILE = "config.json"

BACKENDS = ("speedtest", "bbk", "all")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "listen_address": "0.0.0.0",
    "port": 9798,
    "backend": "speedtest",
    "bbk_binary": "bbk_cli",
    "server_id": SERVER_ID_NEAREST,
    "server_fallback": False,
    "server_limit": DEFAULT_SERVER_LIMIT,
    "ping_count": DEFAULT_PING_COUNT,
    "download_duration": DEFAULT_DURATION,
    "upload_duration": DEFAULT_DURATION,
    "connections": DEFAULT_CONNECTIONS,
    "log_level": "INFO",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = path or _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, IOError) as exc:
        LOGGER.warning("ignoring unreadable config file %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        unknown = sorted(set(user) - set(DEFAULTS))
        if unknown:
            LOGGER.warning("ignoring unknown config keys: %s", ", ".join(unknown))
        config.update({k: v for k, v in user.items() if k in DEFAULTS})

    return config


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = path or _config_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def config_path() -> str:
    """Return the default config file path (for display purposes)."""
    return _config_path()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_config(config: Dict[str, Any]) -> None:
    """Raise ``ValueError`` if any setting is out of range."""
    if config["backend"] not in BACKENDS:
        raise ValueError(f"Backend must be one of {', '.join(BACKENDS)}")
    if not 0 < int(config["port"]) < 65536:
        raise ValueError("Port must be between 1 and 65535")
    if config["backend"] in ("bbk", "all") and not config["bbk_binary"]:
        raise ValueError("A BBK binary path is required for the bbk backend")
    if int(config["server_id"]) < SERVER_ID_NEAREST or int(config["server_id"]) == 0:
        raise ValueError(f"Server ID must be a positive ID or {SERVER_ID_NEAREST} for the nearest server")
    if int(config["server_limit"]) < 1:
        raise ValueError("Server limit must be at least 1")
    if not MIN_PING_COUNT <= int(config["ping_count"]) <= MAX_PING_COUNT:
        raise ValueError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    for key in ("download_duration", "upload_duration"):
        if not MIN_DURATION <= float(config[key]) <= MAX_DURATION:
            label = key.replace("_", " ").capitalize()
            raise ValueError(f"{label} must be between {MIN_DURATION} and {MAX_DURATION} s")
    if not MIN_CONNECTIONS <= int(config["connections"]) <= MAX_CONNECTIONS:
        raise ValueError(f"Connections must be between {MIN_CONNECTIONS} and {MAX_CONNECTIONS}")
    if str(config["log_level"]).upper() not in LOG_LEVELS:
        raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")

"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides
  3. Environment vars    -- set at deploy time

``load_config()`` reads the YAML file first, then deep-merges the
Settings-derived ``app`` block on top.  Tunables that live on Settings
(webhook retries, chunking, embedding model, log level) are read from
Settings directly and are not mirrored here.
"""

from pathlib import Path

import yaml

from vectorhub.config.settings import Settings

# Requests per window, keyed by route category.
DEFAULT_RATE_LIMITS: dict[str, dict[str, int]] = {
    "default": {"window_seconds": 60, "max_requests": 100},
    "search": {"window_seconds": 60, "max_requests": 30},
    "write": {"window_seconds": 60, "max_requests": 50},
    "webhooks": {"window_seconds": 60, "max_requests": 1000},
    "health": {"window_seconds": 60, "max_requests": 60},
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override the YAML ``app`` block.
    Rate limits are not part of Settings, so the YAML values win for those
    and ``DEFAULT_RATE_LIMITS`` fills any category the file leaves out.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read otherwise.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    base: dict = {"rate_limits": {k: dict(v) for k, v in DEFAULT_RATE_LIMITS.items()}}
    _deep_merge(base, yaml_config)

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
    }

    _deep_merge(base, env_overrides)
    return base


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value

import copy
import logging
import os

import yaml

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Environment variables that override a config entry: (section, key).
ENV_OVERRIDES = {
    "DATABASE_URL": ("database", "url"),
    "REDIS_URL": ("cache", "redis_url"),
    "LEDGER_LOG_LEVEL": ("logging", "level"),
    "LEDGER_REALTIME_BACKEND": ("realtime", "backend"),
}


def load_config(path: str | None = None, overrides: dict | None = None) -> dict:
    """Read the YAML config, then apply environment and explicit overrides.

    *overrides* is a ``{section: {key: value}}`` dict merged last.
    """
    with open(path or CONFIG_PATH, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            config.setdefault(section, {})[key] = value
    for section, values in (overrides or {}).items():
        config.setdefault(section, {}).update(copy.deepcopy(values))
    return config


def configure_logging(config: dict) -> None:
    level = str(config.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

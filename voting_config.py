import json
import logging
import os

from data_models import ContestPolicy, OptionFreeze
from voting_errors import InvalidArgument

# --- CONFIGURATION ---
CONFIG_PATH = 'contest_config.json'
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULTS = {
    "requires_registration": False,
    "option_freeze": OptionFreeze.AT_EXPLICIT_END,
    "deferred_start": False,
    "end_buffer_seconds": 0,
    "require_signatures": False,
    "audit_path": None,
    "log_level": "INFO"
}

logger = logging.getLogger(__name__)


def load_config(path=CONFIG_PATH):
    data = {}
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except ValueError as e:
            raise InvalidArgument(f"config file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidArgument(f"config file {path} must hold a JSON object")
    else:
        logger.info("no config at %s, using defaults", path)
    unknown = sorted(set(data) - set(DEFAULTS))
    if unknown:
        raise InvalidArgument(f"unknown config keys: {unknown}")
    config = dict(DEFAULTS)
    config.update(data)
    return config


def save_config(config, path=CONFIG_PATH):
    with open(path, 'w') as f:
        json.dump(config, f, indent=4)


def config_flag(config, key):
    value = config.get(key, DEFAULTS[key])
    if not isinstance(value, bool):
        raise InvalidArgument(f"{key} must be true or false, got {value!r}")
    return value


def policy_from_config(config):
    return ContestPolicy(
        requires_registration=config_flag(config, "requires_registration"),
        option_freeze=config.get("option_freeze", OptionFreeze.AT_EXPLICIT_END),
        deferred_start=config_flag(config, "deferred_start"),
        end_buffer_seconds=config.get("end_buffer_seconds", 0)
    )


def configure_logging(level="INFO"):
    """Attach a console handler to the root logger (once)."""
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise InvalidArgument(f"unknown log level {level!r}")
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, '_contest_console', False) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console._contest_console = True
        root.addHandler(console)
    return root

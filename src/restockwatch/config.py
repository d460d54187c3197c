from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from restockwatch.models import AppConfig

TOKEN_ENV = "TG_TOKEN"
CHAT_ID_ENV = "TG_CHAT_ID"
INTERVAL_ENV = "CHECK_INTERVAL"

# credentials and interval only ever come from the environment
FILE_KEYS = frozenset({"target", "render", "notify_on_error"})

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class ConfigError(ValueError):
    pass


def parse_interval(value: str) -> float:
    """Parse a Go-style duration ("30m", "1h30m", "45s", "1.5h") into seconds."""
    text = value.strip()
    if not text:
        raise ConfigError("interval is empty")

    pos = 0
    total = 0.0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ConfigError(
                f"invalid interval {value!r}; expected e.g. '5m', '1h30m'"
            )
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if total <= 0:
        raise ConfigError(f"interval must be positive, got {value!r}")
    return total


def load_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    require_credentials: bool = True,
) -> AppConfig:
    env = os.environ if environ is None else environ
    payload: dict[str, object] = {}

    if config_path is not None:
        path = Path(config_path)
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"config file {path} must contain a mapping")
        payload.update(
            (key, val) for key, val in (loaded or {}).items() if key in FILE_KEYS
        )

    token = env.get(TOKEN_ENV, "").strip()
    chat_id = env.get(CHAT_ID_ENV, "").strip()
    if token and chat_id:
        payload["telegram"] = {"bot_token": token, "chat_id": chat_id}
    elif require_credentials:
        raise ConfigError(f"{TOKEN_ENV} or {CHAT_ID_ENV} environment variable not set")

    interval = env.get(INTERVAL_ENV, "")
    if not interval.strip():
        raise ConfigError(f"{INTERVAL_ENV} environment variable not set")
    payload["check_interval_seconds"] = parse_interval(interval)

    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc

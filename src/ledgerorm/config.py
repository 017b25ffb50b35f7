"""
Process-level settings read from the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .errors import AdapterConfigurationError

SLOW_QUERY_ENV = "LEDGERORM_SLOW_QUERY_MS"
LOG_LEVEL_ENV = "LEDGERORM_LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise AdapterConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def parse_float(value: str, *, key: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise AdapterConfigurationError(f"Invalid float value for '{key}': {value!r}") from exc


def parse_int(value: str, *, key: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise AdapterConfigurationError(f"Invalid integer value for '{key}': {value!r}") from exc


def _parse_level(value: str) -> int:
    candidate = value.strip().upper()
    if candidate.isdigit():
        return int(candidate)
    level = logging.getLevelName(candidate)
    if not isinstance(level, int):
        raise AdapterConfigurationError(f"Invalid log level for '{LOG_LEVEL_ENV}': {value!r}")
    return level


@dataclass(frozen=True)
class Settings:
    """
    Tunables shared by adapters and the logging setup.
    """

    slow_query_ms: int = 100
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        slow_query_ms = cls.slow_query_ms
        log_level = cls.log_level
        if env.get(SLOW_QUERY_ENV):
            slow_query_ms = parse_int(env[SLOW_QUERY_ENV], key=SLOW_QUERY_ENV)
        if env.get(LOG_LEVEL_ENV):
            log_level = _parse_level(env[LOG_LEVEL_ENV])
        return cls(slow_query_ms=slow_query_ms, log_level=log_level)


def resolve_slow_query_ms(*, default: int = 100, override: int | None = None) -> int:
    if override is not None:
        return override
    raw = os.getenv(SLOW_QUERY_ENV)
    if not raw:
        return default
    return parse_int(raw, key=SLOW_QUERY_ENV)

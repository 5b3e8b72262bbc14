"""
Configuration for ddsend: intake constants and frozen config dataclasses.
"""

import math
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from .errors import ConfigError

# Datadog intake hosts
DATADOG_US_HOST = "http-intake.logs.datadoghq.com"
DATADOG_EU_HOST = "http-intake.logs.datadoghq.eu"

BASE_PATH = "/v1/input"
API_KEY_HEADER = "DD-API-KEY"

CONTENT_TYPE_PLAIN = "text/plain"
CONTENT_TYPE_JSON = "application/json"

# Maximum content size per payload: 5 MB minus the two array brackets
MAX_CONTENT_BYTE_SIZE = 5 * 1024 * 1024 - 2

# Maximum size for a single log: 256 kB (not enforced, lines are never split)
MAX_ENTRY_BYTE_SIZE = 256 * 1024

# Maximum number of entries in one payload
MAX_ARRAY_SIZE = 500

DEFAULT_BATCH_INTERVAL = 30.0
DEFAULT_MAX_RETRY = 3
DEFAULT_TIMEOUT = 10.0


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _parse_tags(value: str) -> Tuple[str, ...]:
    return tuple(t.strip() for t in value.split(",") if t.strip())


def normalize_interval(value: Optional[float]) -> float:
    """Return the batch interval to use, falling back to the default."""
    if value is None or not math.isfinite(value) or value <= 0:
        return DEFAULT_BATCH_INTERVAL
    return float(value)


def validate_timeout(value: Optional[float]) -> Optional[float]:
    """Return the request timeout, None meaning no timeout.

    Raises:
        ConfigError: If the timeout is not a positive finite number
    """
    if value is None:
        return None
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"timeout must be a positive number, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class Options:
    """Metadata attached to every request as query parameters."""

    source: str = ""
    service: str = ""
    hostname: str = ""
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class HookConfig:
    """Settings for one DatadogHandler, immutable once built."""

    api_key: str
    host: str = DATADOG_US_HOST
    is_json: bool = True
    max_retry: int = DEFAULT_MAX_RETRY
    batch_interval: float = DEFAULT_BATCH_INTERVAL
    timeout: Optional[float] = DEFAULT_TIMEOUT
    debug: bool = False
    options: Options = field(default_factory=Options)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigError("api_key is required")
        if not self.host:
            raise ConfigError("host is required")
        # frozen: normalize through object.__setattr__
        object.__setattr__(
            self, "batch_interval", normalize_interval(self.batch_interval)
        )
        object.__setattr__(self, "timeout", validate_timeout(self.timeout))


def _env_number(environ: Mapping[str, str], name: str, cast, default):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a {cast.__name__}, got {raw!r}") from exc


def load_config(environ: Optional[Mapping[str, str]] = None) -> HookConfig:
    """Build a HookConfig from environment variables.

    Pass ``environ`` for testability; when None, ``os.environ`` is used.
    """
    env = os.environ if environ is None else environ

    api_key = env.get("DATADOG_APIKEY", "")
    if not api_key:
        raise ConfigError("DATADOG_APIKEY is not set")

    options = Options(
        source=env.get("DATADOG_SOURCE", ""),
        service=env.get("DATADOG_SERVICE", ""),
        hostname=env.get("DATADOG_HOSTNAME", ""),
        tags=_parse_tags(env.get("DATADOG_TAGS", "")),
    )

    return HookConfig(
        api_key=api_key,
        host=env.get("DATADOG_HOST") or DATADOG_US_HOST,
        is_json=_parse_bool(env.get("DATADOG_JSON", "true")),
        max_retry=_env_number(env, "DATADOG_MAX_RETRY", int, DEFAULT_MAX_RETRY),
        batch_interval=_env_number(
            env, "DATADOG_BATCH_INTERVAL", float, DEFAULT_BATCH_INTERVAL
        ),
        timeout=_env_number(env, "DATADOG_TIMEOUT", float, DEFAULT_TIMEOUT),
        debug=_parse_bool(env.get("DATADOG_DEBUG", "false")),
        options=options,
    )

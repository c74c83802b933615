"""Daemon configuration — loaded from environment / .env file, overridable by CLI flags."""

from __future__ import annotations

import math
import re
from typing import Any, Literal

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigurationError(Exception):
    """Raised when the daemon cannot start with the given configuration."""


def parse_duration(value: Any) -> float:
    """Parse seconds (``2.5``) or a Go-style duration (``500ms``, ``1m30s``) into seconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass

    sign = 1.0
    if text[:1] in ("-", "+"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    pos = 0
    total = 0.0
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()

    if not text or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return sign * total


def parse_targets(raw: str) -> list[str]:
    """Split a comma-separated target list, dropping blanks and duplicates (first wins)."""
    seen: set[str] = set()
    cleaned: list[str] = []
    for part in raw.split(","):
        target = part.strip()
        if target and target not in seen:
            seen.add(target)
            cleaned.append(target)
    return cleaned


def parse_listen(listen: str) -> tuple[str, int]:
    """Split ``host:port`` (``:8080`` binds every interface) into a (host, port) pair."""
    host, sep, port_str = listen.strip().rpartition(":")
    if not sep or not port_str.isdigit():
        raise ValueError(f"invalid listen address: {listen!r}")
    port = int(port_str)
    if not 0 < port < 65536:
        raise ValueError(f"listen port out of range: {port}")
    host = host.strip("[]") or "0.0.0.0"
    return host, port


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SYSCHECK_",
        "extra": "ignore",
    }

    # Comma-separated HTTP targets
    targets: str = "https://example.com"

    # Seconds; accepts "5s", "500ms", "1m30s" too
    timeout: float = 5.0
    interval: float = 30.0

    # HTTP server address
    listen: str = ":8080"

    # "text" renders the two counter lines from the store,
    # "prometheus" exports prometheus_client counters
    metrics_backend: Literal["text", "prometheus"] = "text"

    # Logging
    log_level: str = "INFO"

    @field_validator("targets", mode="before")
    @classmethod
    def _join_target_list(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return ",".join(str(t) for t in v)
        return v

    @field_validator("targets")
    @classmethod
    def _require_target(cls, v: str) -> str:
        if not parse_targets(v):
            raise ValueError("at least one target URL is required")
        return v

    @field_validator("timeout", "interval", mode="before")
    @classmethod
    def _parse_duration(cls, v: Any) -> float:
        return parse_duration(v)

    @field_validator("timeout", "interval")
    @classmethod
    def _require_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError("must be a finite duration greater than zero")
        return v

    @field_validator("listen")
    @classmethod
    def _check_listen(cls, v: str) -> str:
        parse_listen(v)
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v!r}")
        return level

    @property
    def target_list(self) -> list[str]:
        return parse_targets(self.targets)

    @property
    def listen_host(self) -> str:
        return parse_listen(self.listen)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen(self.listen)[1]


def load_settings(**overrides: Any) -> Settings:
    """Build validated settings; ``None`` overrides fall back to env / defaults.

    Raises ConfigurationError instead of pydantic's ValidationError so callers
    only deal with one startup failure type.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(problems) from e

# ./src/dnsaccel/utils/config.py
"""Configuration loader and coercion utilities for dnsaccel.

Used by ``DNSAccelerator`` and the CLI to merge defaults, JSON config, dotenv, and environment.
Run path: internal import via ``dnsaccel.accel`` or direct helper import in tests.
Inputs: optional JSON config path, optional local ``.env``, and ``DNSACCEL_*`` variables.
Outputs: populated ``Config`` dataclass with normalized types.
Side effects: may read local files and mutate process env when a ``.env`` file is present.
Operational notes: malformed overrides are safely ignored to preserve deterministic defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

_LOG_LEVELS = {
    "CRITICAL": 50,
    "ERROR": 40,
    "WARNING": 30,
    "INFO": 20,
    "DEBUG": 10,
    "NOTSET": 0,
}

_MIN_JANITOR_INTERVAL = 0.05


def _default_home_dir() -> str:
    return str(Path.home() / ".config" / "dnsaccel")


@dataclass
class Config:
    log_level: int = 20
    logger_name: str = "dnsaccel"

    home_dir: str = field(default_factory=_default_home_dir)
    snapshot_filename: str = "dnscache"
    persist_enabled: bool = True

    janitor_interval_seconds: float = 60.0
    stale_after_seconds: float = 72 * 3600.0

    fake_ip_enabled: bool = False
    fake_ip_range: str = "198.18.0.1/16"

    upstream_servers: Tuple[str, ...] = ("1.1.1.1", "8.8.8.8")
    upstream_timeout_seconds: float = 2.0
    serve_stale: bool = True
    min_ttl: int = 60
    max_ttl: int = 3600

    hosts: Dict[str, str] = field(default_factory=dict)

    redact_domains: bool = False
    redact_style: str = "mask"  # mask | none


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except Exception:
        return default


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except Exception:
        return default


def _to_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _to_int(value: Any, default: int) -> int:
    try:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str) and value.strip():
            return int(value.strip())
    except Exception:
        return default
    return default


def _to_float(value: Any, default: float) -> float:
    try:
        if isinstance(value, bool):
            return float(value)
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str) and value.strip():
            return float(value.strip())
    except Exception:
        return default
    return default


def _to_string_tuple(value: Any, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        return default
    parsed = [str(item).strip() for item in value if str(item).strip()]
    return tuple(parsed) if parsed else default


def _to_hosts(value: Any, default: Dict[str, str]) -> Dict[str, str]:
    if not isinstance(value, dict):
        return default
    return {
        str(host).strip(): str(address).strip()
        for host, address in value.items()
        if str(host).strip() and str(address).strip()
    }


def _apply_json_overrides(cfg: Config, data: dict[str, Any]) -> None:
    bool_fields = {
        "persist_enabled",
        "fake_ip_enabled",
        "serve_stale",
        "redact_domains",
    }
    int_fields = {"min_ttl", "max_ttl"}
    float_fields = {
        "janitor_interval_seconds",
        "stale_after_seconds",
        "upstream_timeout_seconds",
    }

    for key, value in data.items():
        if not hasattr(cfg, key):
            continue

        if key == "log_level":
            if isinstance(value, str):
                cfg.log_level = _LOG_LEVELS.get(
                    value.upper(), _to_int(value, cfg.log_level)
                )
            else:
                cfg.log_level = _to_int(value, cfg.log_level)
            continue

        if key in bool_fields:
            setattr(cfg, key, _to_bool(value, getattr(cfg, key)))
            continue

        if key in int_fields:
            setattr(cfg, key, _to_int(value, getattr(cfg, key)))
            continue

        if key in float_fields:
            setattr(cfg, key, _to_float(value, getattr(cfg, key)))
            continue

        if key == "upstream_servers":
            cfg.upstream_servers = _to_string_tuple(value, cfg.upstream_servers)
            continue

        if key == "hosts":
            cfg.hosts = _to_hosts(value, cfg.hosts)
            continue

        if key == "redact_style":
            if isinstance(value, str) and value in {"mask", "none"}:
                cfg.redact_style = value
            continue

        if isinstance(getattr(cfg, key), str):
            setattr(cfg, key, str(value))


def _load_json_config(config_path: str) -> dict[str, Any]:
    path = Path(config_path)
    if not path.is_file():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return payload if isinstance(payload, dict) else {}


def _load_dotenv_if_present() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    try:
        load_dotenv(dotenv_path=env_path, override=True)
    except Exception:
        return


def _clamp(cfg: Config) -> None:
    cfg.janitor_interval_seconds = max(
        _MIN_JANITOR_INTERVAL, cfg.janitor_interval_seconds
    )
    cfg.upstream_timeout_seconds = max(0.1, cfg.upstream_timeout_seconds)
    cfg.min_ttl = max(0, cfg.min_ttl)
    cfg.max_ttl = max(cfg.min_ttl, cfg.max_ttl)


def load_config(config_path: Optional[str]) -> Config:
    """Load runtime config with precedence: defaults -> JSON -> dotenv -> env."""
    cfg = Config()

    if config_path:
        _apply_json_overrides(cfg, _load_json_config(config_path))

    _load_dotenv_if_present()
    env = os.environ.get

    level = env("DNSACCEL_LOG_LEVEL")
    if level:
        cfg.log_level = _LOG_LEVELS.get(level.upper(), cfg.log_level)

    cfg.home_dir = env("DNSACCEL_HOME_DIR") or cfg.home_dir
    cfg.snapshot_filename = (
        env("DNSACCEL_SNAPSHOT_FILENAME") or cfg.snapshot_filename
    )
    cfg.persist_enabled = _bool(env("DNSACCEL_PERSIST"), cfg.persist_enabled)

    cfg.janitor_interval_seconds = _float(
        env("DNSACCEL_JANITOR_INTERVAL"), cfg.janitor_interval_seconds
    )
    cfg.stale_after_seconds = _float(
        env("DNSACCEL_STALE_AFTER_SECONDS"), cfg.stale_after_seconds
    )

    cfg.fake_ip_enabled = _bool(env("DNSACCEL_FAKE_IP"), cfg.fake_ip_enabled)
    cfg.fake_ip_range = env("DNSACCEL_FAKE_IP_RANGE") or cfg.fake_ip_range

    upstreams = env("DNSACCEL_UPSTREAMS")
    if upstreams is not None:
        cfg.upstream_servers = _to_string_tuple(upstreams, cfg.upstream_servers)
    cfg.upstream_timeout_seconds = _float(
        env("DNSACCEL_UPSTREAM_TIMEOUT"), cfg.upstream_timeout_seconds
    )
    cfg.serve_stale = _bool(env("DNSACCEL_SERVE_STALE"), cfg.serve_stale)
    cfg.min_ttl = _int(env("DNSACCEL_MIN_TTL"), cfg.min_ttl)
    cfg.max_ttl = _int(env("DNSACCEL_MAX_TTL"), cfg.max_ttl)

    cfg.redact_domains = _bool(env("DNSACCEL_REDACT_DOMAINS"), cfg.redact_domains)
    redaction_style = env("DNSACCEL_REDACT_STYLE")
    if redaction_style in {"mask", "none"}:
        cfg.redact_style = redaction_style

    _clamp(cfg)
    return cfg

from __future__ import annotations

"""Management endpoint configuration and logging setup.

Purpose: Load settings from a single JSON file (`settings/config.json`),
including the structured `encryption_options` block for the management
listener. Configure root logging with a concise format.

"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


class ConfigurationError(ValueError):
    """Raised when the management endpoint configuration is unusable."""


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    log_level: str
    local_only: bool = False
    password: Optional[str] = None
    # Raw structured encryption block; resolved by encryption.resolve_encryption_options
    encryption_options: Mapping[str, Any] = field(default_factory=dict)


def as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    try:
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    except Exception:
        return default


def load_settings(path: Path | str = Path("settings/config.json")) -> Settings:
    """Load settings strictly from the JSON config file.

    No environment variables are consulted here; the legacy TLS switch is
    read separately by `properties.is_legacy_tls_requested`.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"{cfg_path} not found")
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except Exception as e:
        raise RuntimeError(f"failed to parse {cfg_path}: {e}")
    if not isinstance(data, dict):
        raise RuntimeError(f"{cfg_path} must contain a JSON object")

    required_keys = ["host", "port", "log_level"]
    missing = [k for k in required_keys if k not in data]
    if missing:
        raise KeyError(f"{cfg_path} missing required keys: {', '.join(missing)}")

    block = data.get("encryption_options")
    if block is None:
        block = {}
    if not isinstance(block, dict):
        raise ConfigurationError("encryption_options must be an object")

    password = data.get("password")
    return Settings(
        host=str(data["host"]),
        port=int(data["port"]),
        log_level=str(data["log_level"]).upper(),
        local_only=as_bool(data.get("local_only"), False),
        password=str(password) if password else None,
        encryption_options=dict(block),
    )


def settings_from_dict(data: Dict[str, Any]) -> Settings:
    """Build settings from an in-memory mapping (embedding and tests)."""
    block = data.get("encryption_options") or {}
    if not isinstance(block, dict):
        raise ConfigurationError("encryption_options must be an object")
    password = data.get("password")
    return Settings(
        host=str(data.get("host", "127.0.0.1")),
        port=int(data.get("port", 0)),
        log_level=str(data.get("log_level", "INFO")).upper(),
        local_only=as_bool(data.get("local_only"), False),
        password=str(password) if password else None,
        encryption_options=dict(block),
    )


def configure_logging(log_level: str) -> None:
    """Configure root logger with a concise, structured-ish format."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

"""Configuration management for the newsroom site."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .sessions import DEFAULT_SESSION_TTL, DEFAULT_SWEEP_INTERVAL

PROJECT_ROOT = Path(__file__).resolve().parent.parent

_KNOWN_KEYS = {
    "host",
    "port",
    "data_dir",
    "session_ttl_minutes",
    "sweep_interval_seconds",
    "secure_cookies",
    "log_level",
    "site_name",
}


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_path(raw: str, base_path: Optional[Path]) -> Path:
    candidate = Path(raw).expanduser()
    if candidate.is_absolute() or base_path is None:
        return candidate.resolve(strict=False)
    return (base_path / candidate).resolve(strict=False)


@dataclass(frozen=True)
class SiteConfig:
    """Runtime settings for the site."""

    host: str = "::1"
    port: int = 8080
    data_dir: Path = PROJECT_ROOT / "data"
    session_ttl: timedelta = DEFAULT_SESSION_TTL
    sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL
    secure_cookies: bool = False
    log_level: str = "info"
    site_name: str = "Newsroom"

    @property
    def accounts_path(self) -> Path:
        return self.data_dir / "accounts.json"

    @property
    def articles_dir(self) -> Path:
        return self.data_dir / "articles"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "SiteConfig":
        """Create a :class:`SiteConfig` from raw dictionary data."""
        unknown = set(data.keys()) - _KNOWN_KEYS
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        defaults = SiteConfig()
        session_ttl = defaults.session_ttl
        if data.get("session_ttl_minutes") is not None:
            session_ttl = timedelta(minutes=float(data["session_ttl_minutes"]))  # type: ignore[arg-type]
        sweep_interval = defaults.sweep_interval
        if data.get("sweep_interval_seconds") is not None:
            sweep_interval = timedelta(seconds=float(data["sweep_interval_seconds"]))  # type: ignore[arg-type]
        if session_ttl <= timedelta(0):
            raise ValueError("session_ttl_minutes must be positive")
        if sweep_interval <= timedelta(0):
            raise ValueError("sweep_interval_seconds must be positive")

        data_dir = defaults.data_dir
        if data.get("data_dir"):
            data_dir = _resolve_path(str(data["data_dir"]), base_path)

        return SiteConfig(
            host=str(data.get("host", defaults.host)),
            port=int(data.get("port", defaults.port)),  # type: ignore[arg-type]
            data_dir=data_dir,
            session_ttl=session_ttl,
            sweep_interval=sweep_interval,
            secure_cookies=bool(data.get("secure_cookies", defaults.secure_cookies)),
            log_level=str(data.get("log_level", defaults.log_level)).lower(),
            site_name=str(data.get("site_name", defaults.site_name)),
        )

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "SiteConfig":
        env = os.environ if environ is None else environ
        updates: Dict[str, object] = {}
        data_dir = env.get("NEWSROOM_DATA_DIR")
        if data_dir:
            updates["data_dir"] = _resolve_path(data_dir, None)
        secure = env.get("NEWSROOM_SESSION_SECURE")
        if secure is not None:
            updates["secure_cookies"] = _env_flag(secure)
        return replace(self, **updates) if updates else self


def load_site_config(config_path: Path) -> SiteConfig:
    """Load site settings from a YAML file; a missing file yields defaults."""
    if not config_path.exists():
        return SiteConfig()
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")

    return SiteConfig.from_dict(raw, base_path=config_path.parent)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (PROJECT_ROOT / "config" / "site.yaml").resolve(strict=False)
    return candidate


__all__ = ["SiteConfig", "load_site_config", "resolve_config_path"]

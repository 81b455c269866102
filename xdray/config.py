"""Runtime settings, read from the environment (and a local .env file)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel

DEFAULT_URL_PREFIX = "https://security.microsoft.com/apiproxy"
DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "cmdlet_mapping.json"

_ENV_FIELDS = {
    "XDRAY_URL_PREFIX": "url_prefix",
    "XDRAY_RULES": "rules_path",
    "XDRAY_GRACE_SECONDS": "grace_seconds",
    "XDRAY_MAX_AGE_SECONDS": "max_age_seconds",
    "XDRAY_SWEEP_INTERVAL_SECONDS": "sweep_interval_seconds",
    "XDRAY_CHANNEL_TIMEOUT_SECONDS": "channel_timeout_seconds",
}


class Settings(BaseModel):
    url_prefix: str = DEFAULT_URL_PREFIX
    rules_path: Path = DEFAULT_RULES_PATH
    grace_seconds: float = 5.0
    max_age_seconds: float = 300.0
    sweep_interval_seconds: float = 60.0
    channel_timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``XDRAY_*`` variables; unset ones keep defaults."""
        env = os.environ if environ is None else environ
        values = {field: env[var] for var, field in _ENV_FIELDS.items() if env.get(var)}
        return cls.model_validate(values)

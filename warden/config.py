"""Runtime configuration.

Values come from the environment and can be overridden by CLI flags through
``Settings.with_overrides``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_HOST = "github.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_SPEC_PATH = ".github/branch-protection.yml"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool, environ) -> bool:
    value = environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    """Process-wide settings for talking to the hosting platform."""

    api_url: str = DEFAULT_API_URL
    host: str = DEFAULT_HOST
    timeout: float = DEFAULT_TIMEOUT
    token: str = field(default="", repr=False)
    use_gh_cli: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        timeout_raw = env.get("WARDEN_TIMEOUT", "")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            raise ValueError(f"WARDEN_TIMEOUT must be a number, got {timeout_raw!r}")
        return cls(
            api_url=env.get("WARDEN_API_URL", "") or DEFAULT_API_URL,
            host=env.get("WARDEN_HOST", "") or DEFAULT_HOST,
            timeout=timeout,
            token=env.get("GITHUB_TOKEN", "") or env.get("GH_TOKEN", ""),
            use_gh_cli=_env_flag("WARDEN_USE_GH_CLI", True, env),
            log_level=(env.get("WARDEN_LOG_LEVEL", "") or "WARNING").upper(),
        )

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-empty override applied."""
        changes = {k: v for k, v in overrides.items() if v not in (None, "")}
        if "log_level" in changes:
            changes["log_level"] = str(changes["log_level"]).upper()
        return replace(self, **changes)

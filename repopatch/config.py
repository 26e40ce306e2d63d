"""Runtime settings, with environment overrides.

Malformed values in the environment never raise; they fall back to the
defaults below.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from platformdirs import user_data_dir

from .transport import DEFAULT_ORIGIN

APP_NAME = "repopatch"
STATE_FILENAME = "state.sqlite3"
DEFAULT_STATE_PATH = Path(user_data_dir(APP_NAME, appauthor=False)) / STATE_FILENAME

_TRUE = {"1", "true", "yes", "on"}


def _env_float(env: Mapping[str, str], key: str, default: float, scale: float = 1.0) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw) * scale
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


@dataclass
class Settings:
    endpoint: str = "/"
    # Root-rooted endpoints ("/", "/proxy") resolve against this origin.
    origin: str = DEFAULT_ORIGIN
    state_path: Path = field(default_factory=lambda: DEFAULT_STATE_PATH)
    debounce_seconds: float = 0.5
    request_timeout: float = 30.0
    discard_stale_previews: bool = False
    strip_archive_root: bool = True
    log_enabled: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        """Build settings from ``REPOPATCH_*`` variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        defaults = cls()
        settings = cls(
            endpoint=(env.get("REPOPATCH_ENDPOINT") or "").strip() or defaults.endpoint,
            origin=(env.get("REPOPATCH_ORIGIN") or "").strip() or defaults.origin,
            state_path=Path(env["REPOPATCH_STATE_PATH"]).expanduser()
            if env.get("REPOPATCH_STATE_PATH")
            else defaults.state_path,
            debounce_seconds=_env_float(env, "REPOPATCH_DEBOUNCE_MS", defaults.debounce_seconds, scale=0.001),
            request_timeout=_env_float(env, "REPOPATCH_TIMEOUT", defaults.request_timeout),
            discard_stale_previews=_env_bool(env, "REPOPATCH_DISCARD_STALE", defaults.discard_stale_previews),
            strip_archive_root=defaults.strip_archive_root,
            log_enabled=_env_bool(env, "REPOPATCH_LOG", defaults.log_enabled),
        )
        for key, value in overrides.items():
            if not hasattr(settings, key):
                raise TypeError(f"Unknown setting: {key}")
            setattr(settings, key, value)
        return settings

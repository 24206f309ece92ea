"""Runtime settings for the keyword engine.

Every value can be overridden through an environment variable so scripts
do not need to be edited to point at another binding directory or to slow
down a flaky page.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_NAMESPACE = "default"
DEFAULT_PATH_DIR = "path"
DEFAULT_TIMEOUT = 10.0
DEFAULT_SETTLE_MS = 500
DEFAULT_POLL_MS = 100
DEFAULT_BROWSER = "chromium"

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process level configuration.

    ``timeout`` is in seconds, ``settle_ms`` and ``poll_ms`` in
    milliseconds.  ``debug`` turns on tracing of every resolved locator.
    """

    path_dir: Path = Path(DEFAULT_PATH_DIR)
    debug: bool = False
    timeout: float = DEFAULT_TIMEOUT
    settle_ms: int = DEFAULT_SETTLE_MS
    poll_ms: int = DEFAULT_POLL_MS
    browser: str = DEFAULT_BROWSER
    headless: bool = True
    proxy: Optional[str] = None
    profile: Optional[str] = None
    run_dir: Optional[Path] = None


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE


def _number(value: Optional[str], default, cast=float):
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError:
        return default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``)."""

    env = os.environ if environ is None else environ
    run_dir = env.get("KEYFLOW_RUN_DIR") or env.get("RUN_DIR")
    return Settings(
        path_dir=Path(env.get("KEYFLOW_PATH") or DEFAULT_PATH_DIR),
        debug=_flag(env.get("KEYFLOW_DEBUG"), False),
        timeout=_number(env.get("KEYFLOW_TIMEOUT"), DEFAULT_TIMEOUT),
        settle_ms=_number(env.get("KEYFLOW_SPEED"), DEFAULT_SETTLE_MS, int),
        poll_ms=_number(env.get("KEYFLOW_POLL_MS"), DEFAULT_POLL_MS, int),
        browser=env.get("KEYFLOW_BROWSER") or DEFAULT_BROWSER,
        headless=_flag(env.get("KEYFLOW_HEADLESS"), True),
        proxy=env.get("KEYFLOW_PROXY") or None,
        profile=env.get("KEYFLOW_PROFILE") or None,
        run_dir=Path(run_dir) if run_dir else None,
    )


__all__ = [
    "Settings",
    "load_settings",
    "DEFAULT_NAMESPACE",
    "DEFAULT_TIMEOUT",
    "DEFAULT_SETTLE_MS",
    "DEFAULT_POLL_MS",
    "DEFAULT_BROWSER",
]

"""Runtime configuration loaded from the environment and an optional .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from flowwright.compiler.types import BuildMode


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass
class AppConfig:
    mode: BuildMode = BuildMode.API
    api_key: str = ""
    api_revision: str = "2024-10-15.pre"
    base_url: str = "https://a.klaviyo.com/api"
    email: str = ""  # sender address for generated emails
    from_label: str = "Store"
    headless: bool = True
    slow_mo: int = 0  # ms
    screenshot_dir: str = "./screenshots"
    storage_state: str | None = None  # saved Playwright session file
    log_level: str = "info"
    max_retries: int = 3
    page_timeout: int = 30000  # ms
    pacing_delay: float = 0.4  # seconds between paced remote calls


def load_config(env_file: str | None = None, **overrides: Any) -> AppConfig:
    """
    Build an :class:`AppConfig` from the process environment.

    ``.env`` in the working directory (or ``env_file``) is read first without
    replacing variables that are already set. Overrides whose value is None
    are ignored, so unset CLI options never clobber the environment.
    """
    load_dotenv(env_file or Path.cwd() / ".env", override=False)

    config = AppConfig(
        mode=BuildMode(os.getenv("BUILD_MODE") or BuildMode.API.value),
        api_key=os.getenv("KLAVIYO_API_KEY", ""),
        api_revision=os.getenv("KLAVIYO_API_REVISION") or "2024-10-15.pre",
        base_url=os.getenv("KLAVIYO_BASE_URL") or "https://a.klaviyo.com/api",
        email=os.getenv("KLAVIYO_EMAIL", ""),
        from_label=os.getenv("KLAVIYO_FROM_LABEL") or "Store",
        headless=_env_bool("HEADLESS", True),
        slow_mo=_env_int("SLOW_MO", 0),
        screenshot_dir=os.getenv("SCREENSHOT_DIR") or "./screenshots",
        storage_state=os.getenv("STORAGE_STATE") or None,
        log_level=os.getenv("LOG_LEVEL") or "info",
        max_retries=_env_int("MAX_RETRIES", 3),
        page_timeout=_env_int("PAGE_TIMEOUT", 30000),
        pacing_delay=_env_float("PACING_DELAY", 0.4),
    )

    known = {f.name for f in fields(AppConfig)}
    for key, value in overrides.items():
        if value is None:
            continue
        if key not in known:
            raise TypeError(f"Unknown config field: {key}")
        if key == "mode":
            value = BuildMode(value)
        setattr(config, key, value)
    return config


def validate_config(config: AppConfig) -> list[str]:
    """Return the problems that would stop a build in ``config.mode``."""
    errors: list[str] = []
    if config.mode in (BuildMode.API, BuildMode.HYBRID) and not config.api_key:
        errors.append(
            f"KLAVIYO_API_KEY is required for {config.mode.value} mode. "
            "Set it in .env or pass --api-key."
        )
    if config.mode in (BuildMode.BROWSER, BuildMode.HYBRID):
        if not config.storage_state:
            errors.append(
                f"STORAGE_STATE is required for {config.mode.value} mode. "
                "Point it at a saved Playwright session file."
            )
        elif not Path(config.storage_state).is_file():
            errors.append(f"STORAGE_STATE file not found: {config.storage_state}")
    return errors

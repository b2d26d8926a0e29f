"""Configuration loading utilities for the Lecture Quiz client."""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .services.records import ProgressScale


LOGGER = logging.getLogger(__name__)


API_URL_ENV_VAR = "LECTURE_QUIZ_API_URL"
DEFAULT_API_BASE_URL = "http://localhost:3000/api"
DEFAULT_POLL_INTERVAL_SECONDS = 5.0

_PERMISSION_SENTINEL = ".lecture_quiz_write_check"
_PROGRESS_SCALES = ("percent", "fraction")


class ConfigError(ValueError):
    """Raised when the configuration file contains unusable values."""


def _ensure_writable_directory(path: Path) -> bool:
    """Return ``True`` if *path* can be created and written to."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    probe = path / _PERMISSION_SENTINEL
    try:
        probe.write_text("ok", encoding="utf-8")
    except OSError:
        return False
    finally:
        with contextlib.suppress(OSError):
            probe.unlink()

    return True


def _select_writable_directory(preferred: Path, *, fallbacks: Iterable[Path] = ()) -> Path:
    """Return ``preferred`` when writable, else the first writable fallback.

    When nothing can be prepared the preferred path is returned unchanged so
    callers fail later with a meaningful error.
    """

    preferred = preferred.resolve()
    if _ensure_writable_directory(preferred):
        return preferred

    for fallback in fallbacks:
        candidate = fallback.resolve()
        if candidate == preferred:
            continue
        if _ensure_writable_directory(candidate):
            LOGGER.warning(
                "Storage directory '%s' is not writable; using fallback '%s'.",
                preferred,
                candidate,
            )
            return candidate

    LOGGER.warning("Storage directory '%s' is not writable and no fallback is available.", preferred)
    return preferred


def _positive_float(mapping: Dict[str, Any], key: str, default: Optional[float]) -> Optional[float]:
    raw = mapping.get(key, default)
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"'{key}' must be a number, got {raw!r}") from error
    if value <= 0:
        raise ConfigError(f"'{key}' must be greater than zero, got {value}")
    return value


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings for talking to the processing backend."""

    storage_root: Path
    api_base_url: str = DEFAULT_API_BASE_URL
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    request_timeout_seconds: Optional[float] = None
    progress_scale: ProgressScale = "percent"

    @property
    def exports_root(self) -> Path:
        """Directory receiving CSV question exports."""

        return (self.storage_root / "exports").resolve()

    def with_api_url(self, api_base_url: Optional[str]) -> "AppConfig":
        if not api_base_url:
            return self
        return replace(self, api_base_url=api_base_url.rstrip("/"))

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        storage_root = _select_writable_directory(
            base_path / mapping.get("storage_root", "storage"),
            fallbacks=(Path.home() / ".lecture_quiz" / "storage",),
        )

        progress_scale = mapping.get("progress_scale", "percent")
        if progress_scale not in _PROGRESS_SCALES:
            raise ConfigError(
                f"'progress_scale' must be one of {', '.join(_PROGRESS_SCALES)}, got {progress_scale!r}"
            )

        poll_interval = _positive_float(mapping, "poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS)
        api_base_url = str(mapping.get("api_base_url") or DEFAULT_API_BASE_URL).rstrip("/")

        return cls(
            storage_root=storage_root,
            api_base_url=api_base_url,
            poll_interval_seconds=poll_interval or DEFAULT_POLL_INTERVAL_SECONDS,
            request_timeout_seconds=_positive_float(mapping, "request_timeout_seconds", None),
            progress_scale=progress_scale,
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load ``config/default.json`` (or *config_path*) and apply environment overrides."""

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = base_path / "config" / "default.json"
    else:
        base_path = config_path.resolve().parent

    raw_config: Dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as config_file:
            raw_config = json.load(config_file)
    else:
        LOGGER.debug("No configuration file at %s; using defaults", config_path)

    config = AppConfig.from_mapping(raw_config, base_path=base_path)
    return config.with_api_url(os.environ.get(API_URL_ENV_VAR))


__all__ = [
    "API_URL_ENV_VAR",
    "AppConfig",
    "ConfigError",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "load_config",
]

"""Bootstrap logic that prepares runtime directories for the client."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import AppConfig, load_config

LOGGER = logging.getLogger(__name__)


class BootstrapError(RuntimeError):
    """Raised when initialization cannot be completed."""


class Bootstrapper:
    """High level object orchestrating initialization steps."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self) -> None:
        """Run all bootstrap tasks."""

        LOGGER.debug("Starting bootstrap sequence")
        self._ensure_directories()
        LOGGER.debug("Bootstrap completed for backend %s", self._config.api_base_url)

    def _ensure_directories(self) -> None:
        for path in (self._config.storage_root, self._config.exports_root):
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as error:
                raise BootstrapError(f"Cannot prepare directory {path}: {error}") from error
            LOGGER.debug("Ensured directory exists: %s", path)


def initialize_app(config_path: Path | None = None) -> AppConfig:
    """Convenience helper that loads configuration and runs initialization."""

    config = load_config(config_path=config_path)
    Bootstrapper(config).initialize()
    return config


__all__ = ["BootstrapError", "Bootstrapper", "initialize_app"]

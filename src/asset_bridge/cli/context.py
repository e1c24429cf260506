"""
CLI context for Asset Bridge.

This module provides the context object passed to all CLI commands,
holding the loaded settings and building the objects commands need.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from asset_bridge.client.exceptions import ConfigurationError
from asset_bridge.client.target_client import TargetClient
from asset_bridge.config import BridgeSettings, load_config_from_yaml, load_settings
from asset_bridge.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@dataclass
class BridgeContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to YAML configuration file (environment is used when absent)
        log_level: Console logging level from the command line (overrides settings)
        log_file: Log file path from the command line (overrides settings)
    """

    config_path: Path | None = None
    log_level: str | None = None
    log_file: Path | None = None

    _settings: BridgeSettings | None = field(default=None, init=False, repr=False)

    @property
    def settings(self) -> BridgeSettings:
        """Get or load settings."""
        if self._settings is None:
            try:
                if self.config_path is not None:
                    logger.debug("loading_configuration", config_path=str(self.config_path))
                    self._settings = load_config_from_yaml(self.config_path)
                else:
                    logger.debug("loading_configuration_from_environment")
                    self._settings = load_settings()
            except (ValidationError, ValueError, FileNotFoundError) as e:
                raise ConfigurationError(f"Invalid configuration: {e}") from e

            self._apply_logging_settings(self._settings)

        return self._settings

    def _apply_logging_settings(self, settings: BridgeSettings) -> None:
        """Reconfigure logging from settings; command-line options win."""
        configure_logging(
            level=self.log_level or settings.logging.level,
            log_format=settings.logging.format,
            log_file=str(self.log_file) if self.log_file else settings.logging.file,
            file_level=settings.logging.file_level,
        )

    def target_options(self) -> dict[str, Any]:
        settings = self.settings
        return {
            "verify_ssl": settings.target.verify_ssl,
            "timeout": settings.target.timeout,
            "log_payloads": settings.logging.log_payloads,
            "max_payload_size": settings.logging.max_payload_size,
        }

    def orchestrator_options(self) -> dict[str, Any]:
        """Keyword arguments for :class:`~asset_bridge.pipeline.orchestrator.ImportOrchestrator`."""
        settings = self.settings
        return {
            "target_options": self.target_options(),
            "adapter_options": {
                "verify_ssl": settings.target.verify_ssl,
                "timeout": settings.target.timeout,
                "default_page_size": settings.runner.default_page_size,
            },
            "log_buffer_size": settings.logging.buffer_size,
            "max_pages_per_type": settings.runner.max_pages_per_type,
        }

    def target_client(self) -> TargetClient:
        settings = self.settings
        return TargetClient(settings.target.url, settings.target.api_key, **self.target_options())

"""Import orchestrator.

Drives one import run end to end: loads and decrypts the integration
configuration, authenticates the source adapter, then walks every configured
record type, paging through the source and flushing bounded batches to the
target queue.

Control flow is strictly sequential. Record types, pages and batches are
processed one at a time so failure counts stay attributable to a batch.
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from asset_bridge.adapters.base import SourceAdapter
from asset_bridge.adapters.registry import create_adapter
from asset_bridge.client.exceptions import (
    BlobFormatError,
    ConfigurationError,
    DecryptionError,
    NotAuthenticatedError,
    SourceAuthenticationError,
    TransportError,
)
from asset_bridge.client.target_client import TargetClient, TargetGateway
from asset_bridge.crypto import decrypt_config
from asset_bridge.models import FieldMapping, IntegrationConfig, RecordTypeSpec
from asset_bridge.payload.document import build_document
from asset_bridge.pipeline.run_log import DEFAULT_BUFFER_SIZE, RunLogBuffer
from asset_bridge.pipeline.stats import ImportStats
from asset_bridge.utils.logging import (
    get_console_level,
    get_logger,
    set_console_level,
    truncate_payload,
)

logger = get_logger(__name__)

MAX_PAGES_PER_TYPE = 1000

LOG_TYPE_STATS = "Stats"
LOG_TYPE_ERROR = "Error"

_RUN_LOG_LEVELS = {"debug": "DEBUG", "info": "INFO", "warn": "WARNING", "warning": "WARNING", "error": "ERROR"}


class RunState(Enum):
    """Lifecycle of one orchestrator run."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SingleAssetResult:
    """Outcome of a single-asset import."""

    asset_id: str
    success: bool
    record_type: str | None = None
    stats: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "success": self.success,
            "record_type": self.record_type,
            "stats": self.stats,
        }


class ImportOrchestrator:
    """Runs one import from a source system into the target queue.

    One instance serves exactly one run. ``initialize`` must succeed before
    ``import_all`` or ``import_single_asset``.
    """

    def __init__(
        self,
        target_factory: Callable[..., TargetGateway] = TargetClient,
        target_options: Mapping[str, Any] | None = None,
        adapter_factory: Callable[..., SourceAdapter] = create_adapter,
        adapter_options: Mapping[str, Any] | None = None,
        log_buffer: RunLogBuffer | None = None,
        log_buffer_size: int = DEFAULT_BUFFER_SIZE,
        max_pages_per_type: int = MAX_PAGES_PER_TYPE,
        decrypt: Callable[[str, str, str], Any] = decrypt_config,
    ):
        """Initialize orchestrator.

        Args:
            target_factory: Builds the target gateway from ``url`` and ``api_key``
            target_options: Extra keyword arguments for ``target_factory``
            adapter_factory: Builds a source adapter from a source type and config
            adapter_options: Extra keyword arguments for ``adapter_factory``
            log_buffer: Run-log buffer (a fresh one is created when omitted)
            log_buffer_size: Line limit of the buffer created when ``log_buffer`` is omitted
            max_pages_per_type: Hard cap on pages fetched per record type
            decrypt: Encrypted-config decryption function
        """
        if max_pages_per_type < 1:
            raise ValueError("max_pages_per_type must be at least 1")

        self._target_factory = target_factory
        self._target_options = dict(target_options or {})
        self._adapter_factory = adapter_factory
        self._adapter_options = dict(adapter_options or {})
        self._decrypt = decrypt

        self.log_buffer = (
            log_buffer if log_buffer is not None else RunLogBuffer(max_lines=log_buffer_size)
        )
        self._base_log_level = self.log_buffer.level
        self._saved_console_level: str | None = None
        self.max_pages_per_type = max_pages_per_type

        self.state = RunState.UNINITIALIZED
        self.stats = ImportStats()
        self.gateway: TargetGateway | None = None
        self.adapter: SourceAdapter | None = None
        self.config: IntegrationConfig | None = None
        self.source_type: str | None = None

    # Initialization

    async def initialize(
        self,
        target_url: str,
        api_key: str,
        source_type: str,
        integration_config: IntegrationConfig | Mapping[str, Any] | None = None,
    ) -> IntegrationConfig:
        """Load configuration and authenticate the source adapter.

        Args:
            target_url: Target system base URL
            api_key: Target API key, also the config decryption secret
            source_type: Source-type identifier or alias
            integration_config: Pre-fetched configuration (fetched from the
                target system when omitted)

        Returns:
            The effective (decrypted) integration configuration

        Raises:
            ConfigurationError: If configuration is missing or unsupported
            SourceAuthenticationError: If the adapter fails to authenticate
            TransportError: If the configuration cannot be fetched
        """
        with self.log_buffer.capture():
            self.stats.reset()
            self.log_buffer.clear()
            self.log_buffer.level = self._base_log_level
            self._restore_console_level()
            self.state = RunState.INITIALIZING

            try:
                if not target_url or not api_key:
                    raise ConfigurationError("Target URL and API key are required")
                if not source_type:
                    raise ConfigurationError("Source type is required")

                if self.gateway is None:
                    self.gateway = self._target_factory(
                        url=target_url, api_key=api_key, **self._target_options
                    )

                if integration_config is None:
                    config = await self.gateway.get_integration_configuration(source_type)
                elif isinstance(integration_config, IntegrationConfig):
                    config = integration_config
                else:
                    config = IntegrationConfig.model_validate(dict(integration_config))

                config = await self._decrypt_config(config, api_key)
                self._apply_log_level(config)

                self.adapter = self._adapter_factory(source_type, config, **self._adapter_options)
                logger.info("source_adapter_ready", **self.adapter.describe())

                if not await self.adapter.authenticate():
                    raise SourceAuthenticationError(
                        f"Authentication with source '{source_type}' failed"
                    )
            except Exception as e:
                self.state = RunState.FAILED
                logger.error(
                    "initialization_failed",
                    source_type=source_type,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise

            self.config = config
            self.source_type = source_type
            self.state = RunState.AUTHENTICATED
            logger.info(
                "orchestrator_initialized",
                source_type=source_type,
                integration=config.display_name,
            )
            return config

    async def _decrypt_config(self, config: IntegrationConfig, api_key: str) -> IntegrationConfig:
        """Merge the encrypted blob into the config, or strip it if unusable."""
        if not config.has_encrypted_blob:
            return config

        try:
            if not config.rec_id:
                raise DecryptionError("Encrypted configuration present but record has no RecId")
            values = await asyncio.to_thread(
                self._decrypt, config.encrypted_config, api_key, config.rec_id
            )
            if not isinstance(values, Mapping):
                raise BlobFormatError("Decrypted configuration is not an object")
        except DecryptionError as e:
            logger.warning(
                "config_decryption_failed",
                error_type=type(e).__name__,
                error=str(e),
                fallback="plaintext fields",
            )
            return config.without_encrypted_blob()

        try:
            merged = config.merge_decrypted(values)
        except ValidationError as e:
            logger.warning(
                "decrypted_config_invalid",
                errors=e.error_count(),
                error=str(e),
                fallback="plaintext fields",
            )
            return config.without_encrypted_blob()

        logger.info("config_decrypted", fields=len(values))
        return merged

    def _apply_log_level(self, config: IntegrationConfig) -> None:
        if not config.log_level:
            return

        level = _RUN_LOG_LEVELS.get(config.log_level.strip().lower())
        if level is None:
            logger.warning("invalid_log_level_ignored", log_level=config.log_level)
            return

        if self._saved_console_level is None:
            self._saved_console_level = get_console_level()
        set_console_level(level)
        self.log_buffer.level = level
        logger.info("log_level_applied", log_level=level)

    def _restore_console_level(self) -> None:
        """Undo a console level set from the integration config."""
        if self._saved_console_level is not None:
            set_console_level(self._saved_console_level)
            self._saved_console_level = None

    def _require_authenticated(self) -> tuple[SourceAdapter, TargetGateway, IntegrationConfig]:
        if (
            self.state is not RunState.AUTHENTICATED
            or self.adapter is None
            or self.gateway is None
            or self.config is None
        ):
            raise NotAuthenticatedError(
                f"Orchestrator is {self.state.value}; call initialize() before importing"
            )
        return self.adapter, self.gateway, self.config

    def _require_identity(self, config: IntegrationConfig) -> tuple[str, str, str]:
        """Validate the fields a run cannot start without."""
        missing = [
            name
            for name, value in (
                ("ClientAuthenticationKey", config.client_authentication_key),
                ("TenantId", config.tenant_id),
                ("RecId", config.rec_id),
            )
            if not value
        ]
        if missing:
            self.state = RunState.FAILED
            logger.error("integration_config_incomplete", missing=missing)
            raise ConfigurationError(
                f"Integration configuration is missing required fields: {', '.join(missing)}"
            )
        return config.client_authentication_key, config.tenant_id, config.rec_id

    # Full import

    async def import_all(
        self, config: IntegrationConfig | None = None, dry_run: bool = False
    ) -> ImportStats:
        """Import every record of every configured record type.

        Args:
            config: Integration configuration (defaults to the one loaded by initialize)
            dry_run: Build documents and log them instead of posting; no run log

        Returns:
            Final run statistics. Batch failures are counted, not raised.

        Raises:
            NotAuthenticatedError: If initialize() has not succeeded
            ConfigurationError: If the auth key or tenant id is missing
        """
        with self.log_buffer.capture():
            adapter, gateway, loaded_config = self._require_authenticated()
            config = config or loaded_config
            auth_key, tenant_id, config_rec_id = self._require_identity(config)

            self.state = RunState.RUNNING
            self.stats.start()
            logger.info(
                "import_started",
                integration=config.display_name,
                source_type=self.source_type,
                dry_run=dry_run,
            )

            log_id = None
            if not dry_run:
                log_id = await gateway.create_run_log(
                    config.display_name, self.source_type or "", self.log_buffer.render()
                )

            try:
                record_types = await gateway.get_record_types(config_rec_id)
                if not record_types:
                    logger.warning("no_record_types_configured", integration=config.display_name)

                for record_type in record_types:
                    await self._process_record_type(
                        adapter, gateway, record_type, config, auth_key, tenant_id, dry_run
                    )
            except Exception as e:
                self.state = RunState.FAILED
                self.stats.finish()
                logger.error("import_failed", error_type=type(e).__name__, error=str(e))
                await self.finalize_log(log_id, LOG_TYPE_ERROR)
                raise

            self.stats.finish()
            self.state = RunState.COMPLETED
            log_type = LOG_TYPE_ERROR if self.stats.has_failures else LOG_TYPE_STATS
            logger.info("import_completed", log_type=log_type, **self.stats.to_dict())
            await self.finalize_log(log_id, log_type)
            return self.stats

    async def _process_record_type(
        self,
        adapter: SourceAdapter,
        gateway: TargetGateway,
        record_type: RecordTypeSpec,
        config: IntegrationConfig,
        auth_key: str,
        tenant_id: str,
        dry_run: bool,
    ) -> None:
        type_code = record_type.type_code
        logger.info("record_type_started", type_code=type_code, name=record_type.name)

        try:
            mappings = await gateway.get_field_mappings(record_type.rec_id)
        except TransportError as e:
            self.stats.record_types_failed += 1
            logger.error("field_mappings_fetch_failed", type_code=type_code, error=str(e))
            return

        if not mappings:
            self.stats.record_types_skipped += 1
            logger.warning("record_type_skipped", type_code=type_code, reason="no field mappings")
            return

        page_size = adapter.page_size
        batch_size = config.batch_size or page_size
        batch: list[dict[str, Any]] = []
        page_number = 0
        has_more = True
        fetch_failed = False

        while has_more and page_number < self.max_pages_per_type:
            try:
                page = await adapter.get_assets(page_size, page_number)
            except TransportError as e:
                fetch_failed = True
                self.stats.record_types_failed += 1
                logger.error(
                    "page_fetch_failed", type_code=type_code, page=page_number + 1, error=str(e)
                )
                break

            self.stats.total_received += len(page.records)
            logger.info(
                "page_received",
                type_code=type_code,
                page=page_number + 1,
                records=len(page.records),
                total_count=page.total_count,
                has_more=page.has_more,
            )

            for record in page.records:
                batch.append(record)
                if len(batch) >= batch_size:
                    await self._process_batch(
                        gateway, batch, mappings, type_code, auth_key, tenant_id, dry_run
                    )
                    batch = []

            has_more = page.has_more
            page_number += 1

        if has_more and not fetch_failed:
            logger.warning(
                "page_limit_reached", type_code=type_code, max_pages=self.max_pages_per_type
            )

        if batch:
            await self._process_batch(
                gateway, batch, mappings, type_code, auth_key, tenant_id, dry_run
            )

        if not fetch_failed:
            self.stats.record_types_processed += 1
        logger.info("record_type_completed", type_code=type_code, pages=page_number)

    async def _process_batch(
        self,
        gateway: TargetGateway,
        records: Sequence[dict[str, Any]],
        mappings: Sequence[FieldMapping],
        type_code: str,
        auth_key: str,
        tenant_id: str,
        dry_run: bool,
    ) -> bool:
        """Flush one batch. The whole batch counts as processed or as failed."""
        count = len(records)
        document = build_document(records, mappings, type_code)

        if dry_run:
            logger.info("dry_run_batch", type_code=type_code, records=count, size=len(document))
            logger.debug("dry_run_document", document=truncate_payload(document))
            self.stats.total_processed += count
            return True

        try:
            await gateway.post_to_queue(document, auth_key, tenant_id)
        except TransportError as e:
            self.stats.total_failed += count
            logger.error("batch_post_failed", type_code=type_code, records=count, error=str(e))
            return False

        self.stats.total_processed += count
        logger.info("batch_posted", type_code=type_code, records=count)
        return True

    # Single asset

    async def import_single_asset(
        self, asset_id: str, config: IntegrationConfig | None = None, dry_run: bool = False
    ) -> SingleAssetResult:
        """Import one record, looked up by id, using the first record type.

        Raises:
            NotAuthenticatedError: If initialize() has not succeeded
            ConfigurationError: If identity fields, record types or mappings are missing
            AssetNotFoundError: If the source has no such record
        """
        with self.log_buffer.capture():
            adapter, gateway, loaded_config = self._require_authenticated()
            config = config or loaded_config
            auth_key, tenant_id, config_rec_id = self._require_identity(config)

            self.state = RunState.RUNNING
            self.stats.start()
            logger.info("single_asset_import_started", asset_id=asset_id, dry_run=dry_run)

            log_id = None
            if not dry_run:
                log_id = await gateway.create_run_log(
                    config.display_name, self.source_type or "", self.log_buffer.render()
                )

            try:
                record_types = await gateway.get_record_types(config_rec_id)
                if not record_types:
                    raise ConfigurationError("No record types configured for this integration")

                record_type = record_types[0]
                if len(record_types) > 1:
                    logger.warning(
                        "single_asset_uses_first_record_type",
                        type_code=record_type.type_code,
                        configured=len(record_types),
                    )

                mappings = await gateway.get_field_mappings(record_type.rec_id)
                if not mappings:
                    raise ConfigurationError(
                        f"No field mappings configured for record type {record_type.type_code}"
                    )

                record = await adapter.get_asset_by_id(asset_id)
                self.stats.total_received += 1

                success = await self._process_batch(
                    gateway, [record], mappings, record_type.type_code, auth_key, tenant_id, dry_run
                )
            except Exception as e:
                self.state = RunState.FAILED
                if self.stats.total_failed == 0:
                    self.stats.total_failed = 1
                self.stats.finish()
                logger.error(
                    "single_asset_import_failed",
                    asset_id=asset_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                await self.finalize_log(log_id, LOG_TYPE_ERROR)
                raise

            self.stats.finish()
            self.state = RunState.COMPLETED
            await self.finalize_log(log_id, LOG_TYPE_STATS if success else LOG_TYPE_ERROR)
            return SingleAssetResult(
                asset_id=asset_id,
                success=success,
                record_type=record_type.type_code,
                stats=self.get_stats(),
            )

    # Finalization and reporting

    async def finalize_log(self, log_id: str | None, log_type: str) -> None:
        """Post final statistics and buffered messages, then clear the buffer.

        Best effort: failures are logged and never raised.
        """
        if self.stats.end_time is None:
            self.stats.finish()

        if not log_id or self.gateway is None:
            logger.debug("run_log_finalization_skipped", log_type=log_type)
            self.log_buffer.clear()
            return

        try:
            updated = await self.gateway.update_run_log(
                log_id,
                total_processed=self.stats.total_processed,
                total_received=self.stats.total_received,
                total_failed=self.stats.total_failed,
                log_type=log_type,
                duration_seconds=self.stats.duration_seconds,
                log_messages=self.log_buffer.render(),
            )
        except TransportError as e:
            updated = False
            logger.error("run_log_finalization_failed", log_id=log_id, error=str(e))

        if updated:
            logger.debug("run_log_finalized", log_id=log_id, log_type=log_type)
        self.log_buffer.clear()

    def get_stats(self) -> dict[str, Any]:
        """Current counters, duration and run state."""
        return {**self.stats.to_dict(), "state": self.state.value}

    async def close(self) -> None:
        """Release the adapter and gateway connections and restore console verbosity."""
        self._restore_console_level()
        if self.adapter is not None:
            await self.adapter.close()
        if self.gateway is not None:
            await self.gateway.close()

    async def __aenter__(self) -> "ImportOrchestrator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

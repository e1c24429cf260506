"""Target ITSM system client.

The target system stores the integration configuration as OData business
objects and accepts asset documents through its integration queue. This
client wraps those endpoints; :class:`TargetGateway` is the narrow interface
the import orchestrator depends on.
"""

import json
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from asset_bridge.client.base_client import BaseAPIClient
from asset_bridge.client.exceptions import ConfigurationError, TransportError
from asset_bridge.models import FieldMapping, IntegrationConfig, RecordTypeSpec
from asset_bridge.payload.document import compress_and_encode
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

ODATA_PREFIX = "api/odata/businessobject"

CONFIGS_OBJECT = "xsc_assetintegration_configs"
RECORD_TYPES_OBJECT = "xsc_assetintegration_citypes"
MAPPINGS_OBJECT = "xsc_assetintegration_mappings"
QUEUE_OBJECT = "Frs_ops_integration_queues"
RUN_LOG_OBJECT = "frs_data_integration_logs"

QUEUE_HANDLER = "AssetProcessor"
MESSAGE_TYPE = "ASSET"
MESSAGE_SUBTYPE = "Full"


def odata_literal(value: str) -> str:
    """Quote a string for an OData ``$filter`` expression."""
    return "'" + str(value).replace("'", "''") + "'"


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_rows(
    model: type[ModelT], records: list[Any], event: str, **context: Any
) -> list[ModelT]:
    """Validate each row on its own; invalid rows are logged and dropped."""
    rows: list[ModelT] = []
    for index, record in enumerate(records):
        try:
            rows.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning(
                event,
                row=index,
                rec_id=record.get("RecId") if isinstance(record, dict) else None,
                errors=e.error_count(),
                error=str(e),
                **context,
            )
    return rows


@runtime_checkable
class TargetGateway(Protocol):
    """Operations the import orchestrator needs from the target system."""

    async def get_integration_configuration(self, source_type: str) -> IntegrationConfig: ...

    async def get_record_types(self, config_rec_id: str) -> list[RecordTypeSpec]: ...

    async def get_field_mappings(self, record_type_rec_id: str) -> list[FieldMapping]: ...

    async def post_to_queue(self, document: str, auth_key: str, tenant_id: str) -> None: ...

    async def create_run_log(
        self, integration_name: str, source_type: str, log_messages: str = ""
    ) -> str | None: ...

    async def update_run_log(
        self,
        log_id: str,
        *,
        total_processed: int,
        total_received: int,
        total_failed: int,
        log_type: str,
        duration_seconds: int,
        log_messages: str = "",
    ) -> bool: ...

    async def close(self) -> None: ...


class TargetClient(BaseAPIClient):
    """Client for the target ITSM system's REST API.

    Authenticates with ``Authorization: rest_api_key=<key>``.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        verify_ssl: bool = True,
        timeout: float = 60,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize target client.

        Args:
            url: Target system base URL
            api_key: REST API key
            verify_ssl: Whether to verify SSL certificates
            timeout: Per-request timeout in seconds
            log_payloads: Enable request/response payload logging
            max_payload_size: Maximum payload size to log before truncation
            transport: Optional httpx transport (used by tests)
        """
        if not api_key:
            raise ConfigurationError("Target API key is required")

        super().__init__(
            base_url=f"{url.rstrip('/')}/{ODATA_PREFIX}",
            headers={"Authorization": f"rest_api_key={api_key}"},
            verify_ssl=verify_ssl,
            timeout=timeout,
            log_payloads=log_payloads,
            max_payload_size=max_payload_size,
            transport=transport,
        )
        logger.debug("target_client_initialized", url=self.base_url)

    async def _query(self, business_object: str, odata_filter: str, top: int | None = None) -> list:
        params: dict[str, Any] = {"$filter": odata_filter}
        if top is not None:
            params["$top"] = top
        data = await self.get(business_object, params=params)
        value = data.get("value") if isinstance(data, dict) else None
        return value if isinstance(value, list) else []

    # Integration configuration

    async def get_integration_configuration(self, source_type: str) -> IntegrationConfig:
        """Fetch the active integration configuration for a source type.

        Raises:
            ConfigurationError: If no active configuration exists
        """
        logger.debug("fetching_integration_configuration", source_type=source_type)
        records = await self._query(
            CONFIGS_OBJECT,
            f"IntegrationSourceType eq {odata_literal(source_type)} and IsActive eq true",
            top=1,
        )
        if not records:
            raise ConfigurationError(
                f"Integration configuration not found for source type: {source_type}"
            )

        try:
            config = IntegrationConfig.model_validate(records[0])
        except ValidationError as e:
            raise ConfigurationError(
                f"Integration configuration for {source_type} is invalid: {e}"
            ) from e
        logger.info(
            "integration_configuration_loaded",
            integration=config.display_name,
            source_type=source_type,
        )
        return config

    async def get_integration_configurations(self) -> list[IntegrationConfig]:
        """Fetch every active integration configuration."""
        records = await self._query(CONFIGS_OBJECT, "IsActive eq true")
        configs = validate_rows(IntegrationConfig, records, "integration_config_row_invalid")
        logger.info("integration_configurations_loaded", count=len(configs))
        return configs

    async def update_encrypted_config(self, config_rec_id: str, blob: str) -> None:
        """Store an encrypted configuration blob on an integration record."""
        await self.put(
            f"{CONFIGS_OBJECT}({odata_literal(config_rec_id)})",
            json_data={"EncryptedConfig": blob},
        )
        logger.info("encrypted_config_stored", config_rec_id=config_rec_id)

    # Record types and mappings

    async def get_record_types(self, config_rec_id: str) -> list[RecordTypeSpec]:
        """Fetch the active record types configured for an integration."""
        records = await self._query(
            RECORD_TYPES_OBJECT,
            f"ParentLink_RecID eq {odata_literal(config_rec_id)} and IsActive eq true",
        )
        record_types = validate_rows(
            RecordTypeSpec, records, "record_type_row_invalid", config_rec_id=config_rec_id
        )
        logger.info("record_types_loaded", config_rec_id=config_rec_id, count=len(record_types))
        return record_types

    async def get_field_mappings(self, record_type_rec_id: str) -> list[FieldMapping]:
        """Fetch the field mappings of a record type, in declared order."""
        records = await self._query(
            MAPPINGS_OBJECT, f"ParentLink_RecID eq {odata_literal(record_type_rec_id)}"
        )
        mappings = validate_rows(
            FieldMapping, records, "mapping_row_invalid", record_type_rec_id=record_type_rec_id
        )
        logger.info(
            "field_mappings_loaded", record_type_rec_id=record_type_rec_id, count=len(mappings)
        )
        return mappings

    # Queue

    @staticmethod
    def build_queue_entry(document: str, auth_key: str, tenant_id: str) -> dict[str, Any]:
        """Build the integration queue record for one document."""
        message = {
            "ClientAuthenticationKey": auth_key,
            "CompressedMessageBody": compress_and_encode(document),
            "MessageSubType": MESSAGE_SUBTYPE,
            "MessageType": MESSAGE_TYPE,
            "SequenceNumber": "1",
            "SequenceNumberFirst": "0",
            "SequenceNumberLast": "1",
            "TenantId": tenant_id,
        }
        return {
            "IntegrationObjectRecId": "",
            "Status": "Queued",
            "HandlerName": QUEUE_HANDLER,
            "ManagedByMessageQueue": True,
            "IsPayloadCompressed": True,
            "Payload": json.dumps(message),
        }

    async def post_to_queue(self, document: str, auth_key: str, tenant_id: str) -> None:
        """Submit a document to the integration queue.

        Raises:
            TransportError: If the submission fails
        """
        await self.post(QUEUE_OBJECT, json_data=self.build_queue_entry(document, auth_key, tenant_id))
        logger.info("document_queued", document_size=len(document))

    # Run log

    async def create_run_log(
        self, integration_name: str, source_type: str, log_messages: str = ""
    ) -> str | None:
        """Create a run-log record.

        Returns:
            The record id, or None if the record could not be created
        """
        entry = {
            "IntegrationName": integration_name,
            "SourceType": source_type,
            "StartTime": datetime.now(UTC).isoformat(),
            "Status": "Running",
            "LogMessage": log_messages,
        }
        try:
            data = await self.post(RUN_LOG_OBJECT, json_data=entry)
        except TransportError as e:
            logger.error("run_log_create_failed", error=str(e))
            return None

        log_id = data.get("RecId") if isinstance(data, dict) else None
        if not log_id:
            logger.warning("run_log_create_failed", error="response has no RecId")
            return None

        logger.info("run_log_created", log_id=log_id)
        return str(log_id)

    async def update_run_log(
        self,
        log_id: str,
        *,
        total_processed: int,
        total_received: int,
        total_failed: int,
        log_type: str,
        duration_seconds: int,
        log_messages: str = "",
    ) -> bool:
        """Write final statistics to a run-log record.

        Returns:
            True if the record was updated
        """
        update = {
            "TotalProcessed": total_processed,
            "TotalReceived": total_received,
            "TotalFailed": total_failed,
            "LogType": log_type,
            "DurationSeconds": duration_seconds,
            "EndTime": datetime.now(UTC).isoformat(),
            "Status": "Completed",
            "LogMessage": log_messages,
        }
        try:
            await self.put(f"{RUN_LOG_OBJECT}({odata_literal(log_id)})", json_data=update)
        except TransportError as e:
            logger.error("run_log_update_failed", log_id=log_id, error=str(e))
            return False

        logger.debug("run_log_updated", log_id=log_id, log_type=log_type)
        return True

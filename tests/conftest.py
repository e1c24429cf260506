"""Shared fixtures: in-memory target gateway and source adapter doubles."""

from typing import Any

import pytest

from asset_bridge.adapters.base import AssetPage
from asset_bridge.client.exceptions import AssetNotFoundError, TransportError
from asset_bridge.models import FieldMapping, IntegrationConfig, RecordTypeSpec
from asset_bridge.pipeline.orchestrator import ImportOrchestrator
from asset_bridge.pipeline.run_log import RunLogBuffer

TARGET_URL = "https://itsm.example.com"
API_KEY = "target-api-key"


class FakeGateway:
    """Records every call the orchestrator makes to the target system."""

    def __init__(
        self,
        config: IntegrationConfig | None = None,
        record_types: list[RecordTypeSpec] | None = None,
        mappings: dict[str, list[FieldMapping]] | None = None,
    ):
        self.config = config
        self.configs: list[IntegrationConfig] = [config] if config else []
        self.record_types = record_types or []
        self.mappings = mappings or {}
        self.posted: list[dict[str, str]] = []
        self.created_logs: list[dict[str, str]] = []
        self.log_updates: list[dict[str, Any]] = []
        self.post_error: TransportError | None = None
        self.record_types_error: TransportError | None = None
        self.mapping_errors: dict[str, TransportError] = {}
        self.log_id: str | None = "LOG-1"
        self.closed = False

    async def get_integration_configuration(self, source_type: str) -> IntegrationConfig:
        return self.config

    async def get_integration_configurations(self) -> list[IntegrationConfig]:
        return list(self.configs)

    async def get_record_types(self, config_rec_id: str) -> list[RecordTypeSpec]:
        if self.record_types_error is not None:
            raise self.record_types_error
        return list(self.record_types)

    async def get_field_mappings(self, record_type_rec_id: str) -> list[FieldMapping]:
        if record_type_rec_id in self.mapping_errors:
            raise self.mapping_errors[record_type_rec_id]
        return list(self.mappings.get(record_type_rec_id, []))

    async def post_to_queue(self, document: str, auth_key: str, tenant_id: str) -> None:
        if self.post_error is not None:
            raise self.post_error
        self.posted.append({"document": document, "auth_key": auth_key, "tenant_id": tenant_id})

    async def create_run_log(
        self, integration_name: str, source_type: str, log_messages: str = ""
    ) -> str | None:
        self.created_logs.append(
            {"integration_name": integration_name, "source_type": source_type}
        )
        return self.log_id

    async def update_run_log(self, log_id: str, **fields: Any) -> bool:
        self.log_updates.append({"log_id": log_id, **fields})
        return True

    async def close(self) -> None:
        self.closed = True


class FakeAdapter:
    """Serves a fixed list of records, or an endless stream when ``endless``."""

    name = "Fake"

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        page_size: int = 10,
        authenticates: bool = True,
        endless: bool = False,
    ):
        self.records = records or []
        self._page_size = page_size
        self.authenticates = authenticates
        self.endless = endless
        self.pages_requested: list[int] = []
        self.page_errors: dict[int, TransportError] = {}
        self.closed = False

    @property
    def page_size(self) -> int:
        return self._page_size

    async def authenticate(self) -> bool:
        return self.authenticates

    async def get_assets(self, page_size: int, page_number: int) -> AssetPage:
        self.pages_requested.append(page_number)
        if page_number in self.page_errors:
            raise self.page_errors[page_number]
        if self.endless:
            return AssetPage(records=[{"id": f"r{page_number}"}], has_more=True)

        start = page_number * page_size
        end = start + page_size
        return AssetPage(
            records=self.records[start:end],
            has_more=end < len(self.records),
            total_count=len(self.records),
        )

    async def get_asset_by_id(self, asset_id: str) -> dict[str, Any]:
        for record in self.records:
            if str(record.get("id")) == str(asset_id):
                return record
        raise AssetNotFoundError(asset_id, self.name)

    def describe(self) -> dict[str, Any]:
        return {"source": self.name, "page_size": self.page_size}

    async def close(self) -> None:
        self.closed = True


def make_config(**overrides: Any) -> IntegrationConfig:
    data = {
        "RecId": "CFG-1",
        "IntegrationSourceType": "vmware",
        "IntegrationName": "vCenter Prod",
        "IsActive": True,
        "EndpointUrl": "https://vcenter.example.com",
        "Username": "svc",
        "Password": "secret",
        "TenantId": "tenant-1",
        "ClientAuthenticationKey": "auth-key",
    }
    data.update(overrides)
    return IntegrationConfig.model_validate(data)


def make_mappings() -> list[FieldMapping]:
    return [
        FieldMapping.model_validate(
            {"IvantiField": "Name", "SourceField": "name", "MappingType": "Direct"}
        ),
        FieldMapping.model_validate(
            {
                "IvantiField": "OS",
                "SourceField": "os",
                "MappingType": "Direct",
                "Section": "Software",
            }
        ),
    ]


def make_records(count: int) -> list[dict[str, Any]]:
    return [{"id": f"vm-{i}", "name": f"host{i}", "os": "linux"} for i in range(count)]


@pytest.fixture
def config() -> IntegrationConfig:
    return make_config()


@pytest.fixture
def gateway(config: IntegrationConfig) -> FakeGateway:
    return FakeGateway(
        config=config,
        record_types=[RecordTypeSpec(rec_id="RT-1", type_code="VirtualServer")],
        mappings={"RT-1": make_mappings()},
    )


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter(records=make_records(30), page_size=10)


@pytest.fixture
def make_orchestrator(gateway: FakeGateway, adapter: FakeAdapter):
    """Build an orchestrator wired to the fake gateway and adapter."""

    def factory(**options: Any) -> ImportOrchestrator:
        options.setdefault("log_buffer", RunLogBuffer())
        return ImportOrchestrator(
            target_factory=lambda **kwargs: gateway,
            adapter_factory=lambda source_type, config, **kwargs: adapter,
            **options,
        )

    return factory

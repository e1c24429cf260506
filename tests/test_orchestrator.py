"""Tests for the import orchestrator."""

import httpx
import pytest

from asset_bridge.client.exceptions import (
    AssetNotFoundError,
    ConfigurationError,
    NetworkError,
    NotAuthenticatedError,
    ServerError,
    SourceAuthenticationError,
)
from asset_bridge.crypto import encrypt_config
from asset_bridge.models import RecordTypeSpec
from asset_bridge.pipeline.orchestrator import ImportOrchestrator, RunState
from asset_bridge.pipeline.run_log import RunLogBuffer
from asset_bridge.utils.logging import configure_logging, get_console_level
from tests.conftest import API_KEY, TARGET_URL, FakeAdapter, make_config, make_mappings


async def _initialized(make_orchestrator, **options) -> ImportOrchestrator:
    orchestrator = make_orchestrator(**options)
    await orchestrator.initialize(TARGET_URL, API_KEY, "vmware")
    return orchestrator


class TestInitialize:
    """Configuration loading and source authentication."""

    async def test_authenticates_and_sets_state(self, make_orchestrator) -> None:
        orchestrator = await _initialized(make_orchestrator)
        assert orchestrator.state is RunState.AUTHENTICATED
        assert orchestrator.config.integration_name == "vCenter Prod"

    async def test_failed_authentication_raises(self, make_orchestrator, adapter) -> None:
        adapter.authenticates = False
        orchestrator = make_orchestrator()
        with pytest.raises(SourceAuthenticationError):
            await orchestrator.initialize(TARGET_URL, API_KEY, "vmware")
        assert orchestrator.state is RunState.FAILED

    async def test_missing_api_key_is_configuration_error(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()
        with pytest.raises(ConfigurationError):
            await orchestrator.initialize(TARGET_URL, "", "vmware")

    async def test_encrypted_blob_values_win(self, make_orchestrator, gateway) -> None:
        blob = encrypt_config({"Password": "from-blob", "TenantId": "tenant-9"}, API_KEY, "CFG-1")
        gateway.config = make_config(Password="plain", EncryptedConfig=blob)

        orchestrator = await _initialized(make_orchestrator)

        assert orchestrator.config.password == "from-blob"
        assert orchestrator.config.tenant_id == "tenant-9"
        assert orchestrator.config.encrypted_config is None

    async def test_undecryptable_blob_falls_back_to_plaintext(
        self, make_orchestrator, gateway
    ) -> None:
        blob = encrypt_config({"Password": "from-blob"}, "another-secret", "CFG-1")
        gateway.config = make_config(Password="plain", EncryptedConfig=blob)

        orchestrator = await _initialized(make_orchestrator)

        assert orchestrator.state is RunState.AUTHENTICATED
        assert orchestrator.config.password == "plain"
        assert orchestrator.config.encrypted_config is None

    async def test_config_log_level_applies_to_buffer(self, make_orchestrator, gateway) -> None:
        gateway.config = make_config(LOG_LEVEL="warn")
        orchestrator = await _initialized(make_orchestrator)
        assert orchestrator.log_buffer.level == "WARNING"

    async def test_decrypted_values_failing_validation_fall_back(
        self, make_orchestrator, gateway
    ) -> None:
        blob = encrypt_config({"Password": "from-blob", "IsActive": "perhaps"}, API_KEY, "CFG-1")
        gateway.config = make_config(Password="plain", EncryptedConfig=blob)

        orchestrator = await _initialized(make_orchestrator)

        assert orchestrator.state is RunState.AUTHENTICATED
        assert orchestrator.config.password == "plain"
        assert orchestrator.config.encrypted_config is None

    async def test_non_numeric_decrypted_batch_size_uses_default(
        self, make_orchestrator, gateway
    ) -> None:
        blob = encrypt_config({"BatchSize": "abc"}, API_KEY, "CFG-1")
        gateway.config = make_config(EncryptedConfig=blob)

        orchestrator = await _initialized(make_orchestrator)
        stats = await orchestrator.import_all()

        assert orchestrator.config.batch_size is None
        assert stats.total_processed == 30
        assert len(gateway.posted) == 3


class TestImportAll:
    """Full imports: paging, batching and failure accounting."""

    async def test_import_before_initialize_raises(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()
        with pytest.raises(NotAuthenticatedError):
            await orchestrator.import_all()

    async def test_batches_flush_at_batch_size(self, make_orchestrator, gateway) -> None:
        gateway.config = make_config(BatchSize=25)
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all()

        assert [doc["document"].count("<AssetData>") for doc in gateway.posted] == [25, 5]
        assert stats.total_received == 30
        assert stats.total_processed == 30
        assert stats.total_failed == 0
        assert stats.record_types_processed == 1
        assert orchestrator.state is RunState.COMPLETED

    async def test_posts_carry_identity(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)
        await orchestrator.import_all()

        assert gateway.posted
        assert {doc["auth_key"] for doc in gateway.posted} == {"auth-key"}
        assert {doc["tenant_id"] for doc in gateway.posted} == {"tenant-1"}
        assert '<Property Name="CIType">VirtualServer</Property>' in gateway.posted[0]["document"]

    async def test_batch_size_defaults_to_page_size(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)
        await orchestrator.import_all()
        assert len(gateway.posted) == 3

    async def test_run_log_finalized_with_stats(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)
        await orchestrator.import_all()

        assert len(gateway.created_logs) == 1
        update = gateway.log_updates[-1]
        assert update["log_id"] == "LOG-1"
        assert update["log_type"] == "Stats"
        assert update["total_received"] == 30
        assert update["total_processed"] == 30
        assert len(orchestrator.log_buffer) == 0

    async def test_page_cap_stops_endless_source(self, make_orchestrator, adapter) -> None:
        adapter.endless = True
        orchestrator = await _initialized(make_orchestrator, max_pages_per_type=1000)

        stats = await orchestrator.import_all()

        assert len(adapter.pages_requested) == 1000
        assert stats.total_received == 1000

    async def test_dry_run_posts_nothing(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all(dry_run=True)

        assert gateway.posted == []
        assert gateway.created_logs == []
        assert gateway.log_updates == []
        assert stats.total_processed == 30

    async def test_post_failure_counts_batch_and_marks_error(
        self, make_orchestrator, gateway
    ) -> None:
        gateway.post_error = ServerError("Server error: boom", status_code=500)
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all()

        assert stats.total_failed == 30
        assert stats.total_processed == 0
        assert gateway.log_updates[-1]["log_type"] == "Error"
        assert orchestrator.state is RunState.COMPLETED

    async def test_page_failure_flushes_accumulated_records(
        self, make_orchestrator, gateway, adapter
    ) -> None:
        gateway.config = make_config(BatchSize=100)
        adapter.page_errors[2] = NetworkError("connection reset")
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all()

        assert len(gateway.posted) == 1
        assert stats.total_processed == 20
        assert stats.record_types_failed == 1
        assert gateway.log_updates[-1]["log_type"] == "Error"

    async def test_record_type_without_mappings_is_skipped(
        self, make_orchestrator, gateway
    ) -> None:
        gateway.record_types.append(RecordTypeSpec(rec_id="RT-2", type_code="Switch"))
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all()

        assert stats.record_types_processed == 1
        assert stats.record_types_skipped == 1
        assert gateway.log_updates[-1]["log_type"] == "Stats"

    async def test_mapping_fetch_failure_fails_only_that_type(
        self, make_orchestrator, gateway
    ) -> None:
        gateway.record_types.insert(0, RecordTypeSpec(rec_id="RT-0", type_code="Switch"))
        gateway.mapping_errors["RT-0"] = NetworkError("timed out")
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all()

        assert stats.record_types_failed == 1
        assert stats.record_types_processed == 1
        assert stats.total_processed == 30

    async def test_record_type_list_failure_is_fatal(self, make_orchestrator, gateway) -> None:
        gateway.record_types_error = NetworkError("unreachable")
        orchestrator = await _initialized(make_orchestrator)

        with pytest.raises(NetworkError):
            await orchestrator.import_all()

        assert orchestrator.state is RunState.FAILED
        assert gateway.log_updates[-1]["log_type"] == "Error"

    @pytest.mark.parametrize("missing", ["ClientAuthenticationKey", "TenantId"])
    async def test_missing_identity_fails_before_posting(
        self, make_orchestrator, gateway, missing
    ) -> None:
        gateway.config = make_config(**{missing: ""})
        orchestrator = await _initialized(make_orchestrator)

        with pytest.raises(ConfigurationError, match=missing):
            await orchestrator.import_all()

        assert orchestrator.state is RunState.FAILED
        assert gateway.posted == []
        assert gateway.created_logs == []

    async def test_no_record_types_completes_empty(self, make_orchestrator, gateway) -> None:
        gateway.record_types = []
        orchestrator = await _initialized(make_orchestrator)

        stats = await orchestrator.import_all()

        assert stats.total_received == 0
        assert orchestrator.state is RunState.COMPLETED


class TestImportSingleAsset:
    """Single-record imports."""

    async def test_imports_one_record(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)

        result = await orchestrator.import_single_asset("vm-7")

        assert result.success
        assert result.record_type == "VirtualServer"
        assert len(gateway.posted) == 1
        assert "host7" in gateway.posted[0]["document"]
        assert gateway.log_updates[-1]["log_type"] == "Stats"

    async def test_uses_first_record_type(self, make_orchestrator, gateway) -> None:
        gateway.record_types.append(RecordTypeSpec(rec_id="RT-2", type_code="Switch"))
        gateway.mappings["RT-2"] = make_mappings()
        orchestrator = await _initialized(make_orchestrator)

        result = await orchestrator.import_single_asset("vm-1")

        assert result.record_type == "VirtualServer"

    async def test_unknown_asset_counts_one_failure(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)

        with pytest.raises(AssetNotFoundError):
            await orchestrator.import_single_asset("missing")

        assert orchestrator.stats.total_failed == 1
        assert orchestrator.state is RunState.FAILED
        assert gateway.log_updates[-1]["log_type"] == "Error"

    async def test_no_record_types_is_configuration_error(
        self, make_orchestrator, gateway
    ) -> None:
        gateway.record_types = []
        orchestrator = await _initialized(make_orchestrator)

        with pytest.raises(ConfigurationError):
            await orchestrator.import_single_asset("vm-1")

    async def test_dry_run_single_asset(self, make_orchestrator, gateway) -> None:
        orchestrator = await _initialized(make_orchestrator)

        result = await orchestrator.import_single_asset("vm-1", dry_run=True)

        assert result.success
        assert gateway.posted == []
        assert gateway.created_logs == []


class TestLifecycle:
    async def test_close_releases_adapter_and_gateway(
        self, make_orchestrator, gateway, adapter
    ) -> None:
        async with await _initialized(make_orchestrator):
            pass
        assert adapter.closed
        assert gateway.closed

    def test_rejects_non_positive_page_cap(self) -> None:
        with pytest.raises(ValueError):
            ImportOrchestrator(max_pages_per_type=0)

    async def test_get_stats_includes_state(self, make_orchestrator) -> None:
        orchestrator = await _initialized(make_orchestrator)
        await orchestrator.import_all(dry_run=True)
        stats = orchestrator.get_stats()
        assert stats["state"] == "completed"
        assert stats["total_processed"] == 30


class TestRunLogBufferOwnership:
    def test_injected_buffer_is_kept(self) -> None:
        buffer = RunLogBuffer(max_lines=5)
        orchestrator = ImportOrchestrator(log_buffer=buffer)
        assert orchestrator.log_buffer is buffer
        assert orchestrator.log_buffer.max_lines == 5

    def test_buffer_size_applies_to_created_buffer(self) -> None:
        assert ImportOrchestrator(log_buffer_size=7).log_buffer.max_lines == 7

    def test_each_orchestrator_gets_its_own_buffer(self) -> None:
        first = ImportOrchestrator(log_buffer_size=10)
        second = ImportOrchestrator(log_buffer_size=10)
        assert first.log_buffer is not second.log_buffer

    async def test_level_from_previous_run_does_not_carry_over(
        self, make_orchestrator, gateway
    ) -> None:
        buffer = RunLogBuffer()
        gateway.config = make_config(LOG_LEVEL="error")
        orchestrator = await _initialized(make_orchestrator, log_buffer=buffer)
        assert buffer.level == "ERROR"

        gateway.config = make_config()
        await orchestrator.initialize(TARGET_URL, API_KEY, "vmware")

        assert buffer.level == "INFO"


class TestConsoleLevel:
    async def test_config_level_is_restored_on_close(self, make_orchestrator, gateway) -> None:
        configure_logging(level="WARNING")
        gateway.config = make_config(LOG_LEVEL="debug")

        async with await _initialized(make_orchestrator):
            assert get_console_level() == "DEBUG"

        assert get_console_level() == "WARNING"

    async def test_untouched_when_config_sets_no_level(self, make_orchestrator) -> None:
        configure_logging(level="ERROR")

        async with await _initialized(make_orchestrator):
            assert get_console_level() == "ERROR"

        assert get_console_level() == "ERROR"


def _target_handler(record_types: list[dict], mappings: list[dict], posted: list[httpx.Request]):
    config = make_config().to_wire()

    def handler(request: httpx.Request) -> httpx.Response:
        object_name = request.url.path.rsplit("/", 1)[-1].split("(")[0]
        if object_name == "xsc_assetintegration_configs":
            return httpx.Response(200, json={"value": [config]})
        if object_name == "xsc_assetintegration_citypes":
            return httpx.Response(200, json={"value": record_types})
        if object_name == "xsc_assetintegration_mappings":
            return httpx.Response(200, json={"value": mappings})
        if object_name == "Frs_ops_integration_queues":
            posted.append(request)
        if object_name == "frs_data_integration_logs" and request.method == "POST":
            return httpx.Response(201, json={"RecId": "LOG-1"})
        return httpx.Response(200, json={})

    return handler


class TestMalformedTargetRows:
    """Bad rows from the target are dropped without failing the run."""

    def _orchestrator(self, adapter, handler) -> ImportOrchestrator:
        return ImportOrchestrator(
            target_options={"transport": httpx.MockTransport(handler)},
            adapter_factory=lambda source_type, config, **kwargs: adapter,
        )

    async def test_mapping_without_target_field_is_skipped(self, adapter) -> None:
        posted: list[httpx.Request] = []
        handler = _target_handler(
            [{"RecId": "RT-1", "CIType": "VirtualServer"}],
            [
                {"IvantiField": None, "SourceField": "serial"},
                {"IvantiField": "Name", "SourceField": "name"},
            ],
            posted,
        )

        async with self._orchestrator(adapter, handler) as orchestrator:
            await orchestrator.initialize(TARGET_URL, API_KEY, "vmware")
            stats = await orchestrator.import_all()

        assert orchestrator.state is RunState.COMPLETED
        assert stats.total_processed == 30
        assert len(posted) == 3

    async def test_record_type_without_code_is_skipped(self, adapter) -> None:
        posted: list[httpx.Request] = []
        handler = _target_handler(
            [{"RecId": "RT-0", "CIType": None}, {"RecId": "RT-1", "CIType": "VirtualServer"}],
            [{"IvantiField": "Name", "SourceField": "name"}],
            posted,
        )

        async with self._orchestrator(adapter, handler) as orchestrator:
            await orchestrator.initialize(TARGET_URL, API_KEY, "vmware")
            stats = await orchestrator.import_all()

        assert orchestrator.state is RunState.COMPLETED
        assert stats.record_types_failed == 0
        assert len(posted) == 3

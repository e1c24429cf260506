"""Tests for the command-line interface."""

import json
import sys

import pytest
from click.testing import CliRunner

from asset_bridge.cli import main as cli_main
from asset_bridge.cli.main import cli
from asset_bridge.crypto import encrypt_config
from asset_bridge.pipeline.orchestrator import ImportOrchestrator
from asset_bridge.pipeline.runner import RunResult


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def log_args(tmp_path) -> list[str]:
    return ["--log-file", str(tmp_path / "cli.log")]


@pytest.fixture
def target_env(monkeypatch) -> None:
    monkeypatch.setenv("ASSET_BRIDGE_TARGET__URL", "https://itsm.example.com")
    monkeypatch.setenv("ASSET_BRIDGE_TARGET__API_KEY", "target-api-key")
    monkeypatch.delenv("ASSET_BRIDGE_CONFIG", raising=False)


@pytest.fixture
def no_target_env(monkeypatch) -> None:
    for name in ("ASSET_BRIDGE_TARGET__URL", "ASSET_BRIDGE_TARGET__API_KEY", "ASSET_BRIDGE_CONFIG"):
        monkeypatch.delenv(name, raising=False)


def test_sources_lists_canonical_types(runner, log_args) -> None:
    result = runner.invoke(cli, [*log_args, "sources"])
    assert result.exit_code == 0
    for name in ("vmware", "ipfabric", "snipeit", "synthetic"):
        assert name in result.output


def test_version(runner) -> None:
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "asset-bridge" in result.output


class TestRunCommand:
    def test_missing_settings_exit_2(self, runner, log_args, no_target_env) -> None:
        result = runner.invoke(cli, [*log_args, "run"])
        assert result.exit_code == 2
        assert "Configuration Error" in result.output

    def test_reports_results(self, runner, log_args, target_env, monkeypatch) -> None:
        calls = {}

        async def fake_run_all(target_url, api_key, **kwargs):
            calls.update(kwargs, target_url=target_url)
            return [
                RunResult("vmware", "vCenter", True, 1.0, {"total_received": 3}),
                RunResult("snipeit", "Snipe", True, 2.0, {"total_received": 4}),
            ]

        monkeypatch.setattr("asset_bridge.cli.commands.imports.run_all_integrations", fake_run_all)

        result = runner.invoke(cli, [*log_args, "run", "--dry-run", "--delay", "0"])

        assert result.exit_code == 0, result.output
        assert calls["target_url"] == "https://itsm.example.com"
        assert calls["dry_run"] is True
        assert calls["delay_seconds"] == 0
        assert calls["target_options"]["verify_ssl"] is True
        assert "vCenter" in result.output

    def test_any_failed_integration_exit_1(self, runner, log_args, target_env, monkeypatch) -> None:
        async def fake_run_all(target_url, api_key, **kwargs):
            return [RunResult("vmware", "vCenter", False, 1.0, {}, error="boom")]

        monkeypatch.setattr("asset_bridge.cli.commands.imports.run_all_integrations", fake_run_all)

        result = runner.invoke(cli, [*log_args, "run"])

        assert result.exit_code == 1


class TestImportCommand:
    @pytest.fixture
    def wired(self, monkeypatch, gateway, adapter):
        def factory(**options):
            return ImportOrchestrator(
                target_factory=lambda **kwargs: gateway,
                adapter_factory=lambda source_type, config, **kwargs: adapter,
                log_buffer_size=options["log_buffer_size"],
            )

        monkeypatch.setattr("asset_bridge.cli.commands.imports.ImportOrchestrator", factory)
        return gateway

    def test_full_import(self, runner, log_args, target_env, wired) -> None:
        result = runner.invoke(cli, [*log_args, "import", "vmware"])
        assert result.exit_code == 0, result.output
        assert len(wired.posted) == 3
        assert "Import completed" in result.output

    def test_single_asset_dry_run(self, runner, log_args, target_env, wired) -> None:
        result = runner.invoke(cli, [*log_args, "import", "vmware", "--asset-id", "vm-2", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert wired.posted == []

    def test_source_authentication_failure_exit_3(
        self, runner, log_args, target_env, wired, adapter
    ) -> None:
        adapter.authenticates = False
        result = runner.invoke(cli, [*log_args, "import", "vmware"])
        assert result.exit_code == 3

    def test_unsupported_source_exit_2(self, runner, log_args, target_env) -> None:
        result = runner.invoke(cli, [*log_args, "import", "servicenow"])
        assert result.exit_code == 2


class TestSecretCommands:
    def test_encrypt_then_decrypt(self, runner, log_args, tmp_path) -> None:
        source = tmp_path / "creds.json"
        source.write_text(json.dumps({"Username": "svc", "Password": "p"}))
        blob_file = tmp_path / "blob.txt"

        encrypted = runner.invoke(
            cli,
            [*log_args, "encrypt", "--input", str(source), "--api-key", "k", "--nonce", "CFG-1",
             "--output", str(blob_file)],
        )
        assert encrypted.exit_code == 0, encrypted.output

        decrypted = runner.invoke(
            cli,
            [*log_args, "decrypt", "--input", str(blob_file), "--api-key", "k", "--nonce", "CFG-1"],
        )
        assert decrypted.exit_code == 0, decrypted.output
        assert json.loads(decrypted.stdout) == {"Username": "svc", "Password": "p"}

    def test_wrong_nonce_exit_5(self, runner, log_args) -> None:
        blob = encrypt_config({"a": 1}, "k", "CFG-1")
        result = runner.invoke(
            cli,
            [*log_args, "decrypt", "--encrypted", blob, "--api-key", "k", "--nonce", "CFG-2"],
        )
        assert result.exit_code == 5

    def test_encrypt_requires_nonce(self, runner, log_args, tmp_path) -> None:
        source = tmp_path / "creds.json"
        source.write_text("{}")
        result = runner.invoke(cli, [*log_args, "encrypt", "--input", str(source), "--api-key", "k"])
        assert result.exit_code == 2
        assert "--nonce" in result.output

    def test_invalid_json_input(self, runner, log_args, tmp_path) -> None:
        source = tmp_path / "creds.json"
        source.write_text("{not json")
        result = runner.invoke(
            cli, [*log_args, "encrypt", "--input", str(source), "--api-key", "k", "--nonce", "n"]
        )
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_decrypt_requires_one_source(self, runner, log_args) -> None:
        result = runner.invoke(cli, [*log_args, "decrypt", "--api-key", "k", "--nonce", "n"])
        assert result.exit_code == 2


def test_main_returns_exit_code(monkeypatch, tmp_path, no_target_env) -> None:
    log_file = str(tmp_path / "cli.log")
    monkeypatch.setattr(sys, "argv", ["asset-bridge", "--log-file", log_file, "sources"])
    assert cli_main.main() == 0

    monkeypatch.setattr(sys, "argv", ["asset-bridge", "--log-file", log_file, "run"])
    assert cli_main.main() == 2

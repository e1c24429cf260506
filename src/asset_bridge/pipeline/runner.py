"""Helpers that run whole integrations and report the outcome.

These never raise for a failed run: the error is logged and returned in the
:class:`RunResult`, so one failing integration does not stop the others.
"""

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from asset_bridge.adapters.registry import canonical_source_type, is_supported
from asset_bridge.client.target_client import TargetClient, TargetGateway
from asset_bridge.models import IntegrationConfig
from asset_bridge.pipeline.orchestrator import ImportOrchestrator
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTEGRATION_DELAY = 30.0


@dataclass
class RunResult:
    """Outcome of one integration run."""

    source_type: str
    integration_name: str
    success: bool
    duration_seconds: float
    stats: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_type": self.source_type,
            "integration_name": self.integration_name,
            "success": self.success,
            "duration_seconds": round(self.duration_seconds, 1),
            "stats": self.stats,
            "error": self.error,
        }


async def run_integration(
    target_url: str,
    api_key: str,
    source_type: str,
    integration_config: IntegrationConfig | None = None,
    asset_id: str | None = None,
    dry_run: bool = False,
    orchestrator_factory: Callable[..., ImportOrchestrator] = ImportOrchestrator,
    **orchestrator_options: Any,
) -> RunResult:
    """Initialize an orchestrator and run one full or single-asset import."""
    started = time.monotonic()
    name = integration_config.display_name if integration_config else source_type
    orchestrator = orchestrator_factory(**orchestrator_options)
    error: str | None = None
    success = False

    logger.info("integration_run_started", source_type=source_type, integration=name)

    try:
        config = await orchestrator.initialize(
            target_url, api_key, source_type, integration_config=integration_config
        )
        name = config.display_name

        if asset_id:
            result = await orchestrator.import_single_asset(asset_id, dry_run=dry_run)
            success = result.success
        else:
            stats = await orchestrator.import_all(dry_run=dry_run)
            success = not stats.has_failures
    except Exception as e:
        error = f"{type(e).__name__}: {e}"
        logger.error("integration_run_failed", source_type=source_type, error=error)
    finally:
        await orchestrator.close()

    duration = time.monotonic() - started
    logger.info(
        "integration_run_finished",
        source_type=source_type,
        integration=name,
        success=success,
        duration_seconds=round(duration, 1),
    )
    return RunResult(
        source_type=source_type,
        integration_name=name,
        success=success,
        duration_seconds=duration,
        stats=orchestrator.get_stats(),
        error=error,
    )


def select_integrations(
    configs: list[IntegrationConfig], only_source: str | None = None
) -> list[IntegrationConfig]:
    """Keep configs whose source type is supported (and matches ``only_source``)."""
    wanted = canonical_source_type(only_source) if only_source else None
    selected = []
    for config in configs:
        source_type = config.integration_source_type or ""
        if not is_supported(source_type):
            logger.warning(
                "integration_skipped",
                integration=config.display_name,
                source_type=source_type,
                reason="unsupported source type",
            )
            continue
        if wanted and canonical_source_type(source_type) != wanted:
            continue
        selected.append(config)
    return selected


async def run_all_integrations(
    target_url: str,
    api_key: str,
    only_source: str | None = None,
    dry_run: bool = False,
    delay_seconds: float = DEFAULT_INTEGRATION_DELAY,
    target_factory: Callable[..., TargetGateway] = TargetClient,
    target_options: Mapping[str, Any] | None = None,
    **orchestrator_options: Any,
) -> list[RunResult]:
    """Run every active integration sequentially.

    Args:
        target_url: Target system base URL
        api_key: Target API key
        only_source: Restrict to one source type (aliases accepted)
        dry_run: Build documents without posting them
        delay_seconds: Pause between consecutive integrations
        target_factory: Builds the target gateway
        target_options: Extra keyword arguments for ``target_factory``
        **orchestrator_options: Passed to each :class:`ImportOrchestrator`

    Returns:
        One result per integration that was run
    """
    gateway = target_factory(url=target_url, api_key=api_key, **dict(target_options or {}))
    try:
        configs = await gateway.get_integration_configurations()
    finally:
        await gateway.close()

    selected = select_integrations(configs, only_source)
    logger.info("integrations_selected", available=len(configs), selected=len(selected))

    results: list[RunResult] = []
    for index, config in enumerate(selected):
        if index > 0 and delay_seconds > 0:
            logger.info("waiting_before_next_integration", seconds=delay_seconds)
            await asyncio.sleep(delay_seconds)

        results.append(
            await run_integration(
                target_url,
                api_key,
                config.integration_source_type or "",
                integration_config=config,
                dry_run=dry_run,
                target_factory=target_factory,
                target_options=target_options,
                **orchestrator_options,
            )
        )

    failed = sum(1 for result in results if not result.success)
    logger.info("all_integrations_finished", total=len(results), failed=failed)
    return results

"""
Import commands.

``run`` imports every active integration configured in the target system;
``import`` runs one integration, optionally for a single asset.
"""

import asyncio
from typing import Any

import click

from asset_bridge.adapters.registry import canonical_source_type
from asset_bridge.cli.context import BridgeContext
from asset_bridge.cli.decorators import handle_errors, pass_context
from asset_bridge.cli.utils import (
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    print_stats,
    print_table,
)
from asset_bridge.pipeline.orchestrator import ImportOrchestrator
from asset_bridge.pipeline.runner import run_all_integrations
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)


@click.command(name="run")
@click.option("--source", "only_source", help="Only run integrations of this source type")
@click.option("--dry-run", is_flag=True, help="Build documents without posting them")
@click.option(
    "--delay",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait between integrations (default from settings)",
)
@pass_context
@handle_errors
def run(ctx: BridgeContext, only_source: str | None, dry_run: bool, delay: float | None) -> None:
    """Run every active integration configured in the target system.

    Exits with status 1 if any integration failed.

    Examples:

        asset-bridge run --config config.yaml

        asset-bridge run --source vmware --dry-run
    """
    if only_source:
        canonical_source_type(only_source)

    settings = ctx.settings
    options = ctx.orchestrator_options()
    dry_run = dry_run or settings.runner.dry_run
    delay = settings.runner.integration_delay if delay is None else delay

    echo_info(f"Running integrations from {settings.target.url}")
    logger.info("cli_run_started", only_source=only_source, dry_run=dry_run, delay=delay)

    results = asyncio.run(
        run_all_integrations(
            settings.target.url,
            settings.target.api_key,
            only_source=only_source,
            dry_run=dry_run,
            delay_seconds=delay,
            target_options=options.pop("target_options"),
            **options,
        )
    )

    if not results:
        echo_warning("No matching active integrations found")
        return

    rows = [
        [
            result.integration_name,
            result.source_type,
            "OK" if result.success else "FAILED",
            result.stats.get("total_received", 0),
            result.stats.get("total_processed", 0),
            result.stats.get("total_failed", 0),
            f"{result.duration_seconds:.1f}s",
        ]
        for result in results
    ]
    print_table(
        "Integration Runs",
        ["Integration", "Source", "Status", "Received", "Processed", "Failed", "Duration"],
        rows,
    )

    failed = [result for result in results if not result.success]
    if failed:
        for result in failed:
            echo_error(f"{result.integration_name}: {result.error or 'batch failures'}")
        raise click.exceptions.Exit(1)

    echo_success(f"{len(results)} integration(s) completed")


async def _run_import(
    ctx: BridgeContext, source_type: str, asset_id: str | None, dry_run: bool
) -> tuple[dict[str, Any], bool]:
    settings = ctx.settings
    async with ImportOrchestrator(**ctx.orchestrator_options()) as orchestrator:
        await orchestrator.initialize(settings.target.url, settings.target.api_key, source_type)
        if asset_id:
            result = await orchestrator.import_single_asset(asset_id, dry_run=dry_run)
            return result.stats, result.success

        stats = await orchestrator.import_all(dry_run=dry_run)
        return orchestrator.get_stats(), not stats.has_failures


@click.command(name="import")
@click.argument("source_type")
@click.option("--asset-id", help="Import a single asset by its source identifier")
@click.option("--dry-run", is_flag=True, help="Build documents without posting them")
@pass_context
@handle_errors
def import_cmd(ctx: BridgeContext, source_type: str, asset_id: str | None, dry_run: bool) -> None:
    """Import assets from one source integration.

    Examples:

        asset-bridge import vmware

        asset-bridge import snipeit --asset-id AT12345 --dry-run
    """
    canonical_source_type(source_type)
    dry_run = dry_run or ctx.settings.runner.dry_run
    target = f"asset {asset_id}" if asset_id else "all assets"
    echo_info(f"Importing {target} from {source_type}{' (dry run)' if dry_run else ''}")

    stats, success = asyncio.run(_run_import(ctx, source_type, asset_id, dry_run))
    logger.info("cli_import_finished", source_type=source_type, success=success, stats=stats)
    print_stats(stats, title="Import Statistics")

    if not success:
        echo_error("Import finished with failures; see the integration run log")
        raise click.exceptions.Exit(1)

    echo_success("Import completed")

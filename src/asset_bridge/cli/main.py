"""
Main CLI entry point for Asset Bridge.

This module provides the command-line interface for importing assets from
source systems into the target ITSM platform's integration queue.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from asset_bridge import __version__
from asset_bridge.cli.commands import encryption as encryption_commands
from asset_bridge.cli.commands import imports as import_commands
from asset_bridge.cli.commands import sources as source_commands
from asset_bridge.cli.context import BridgeContext
from asset_bridge.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)

DEFAULT_LOG_FILE = "logs/asset-bridge.log"


@click.group()
@click.version_option(version=__version__, prog_name="asset-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (settings are read from the environment otherwise)",
    envvar="ASSET_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set console logging level (default: logging.level setting, else WARNING)",
    envvar="ASSET_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    envvar="ASSET_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """Asset Bridge - Import assets from source systems into the ITSM queue.

    Examples:

        # List supported source types
        asset-bridge sources

        # Run every active integration
        asset-bridge run --config config.yaml

        # Import one integration, one asset, without posting
        asset-bridge import vmware --asset-id vm-42 --dry-run
    """
    effective_log_file = str(log_file) if log_file else DEFAULT_LOG_FILE
    configure_logging(level=log_level or "WARNING", log_file=effective_log_file)

    ctx.obj = BridgeContext(
        config_path=config,
        log_level=log_level,
        log_file=log_file,
    )

    logger.debug(
        "cli_initialized",
        config=str(config) if config else None,
        log_level=log_level,
    )


cli.add_command(source_commands.sources)
cli.add_command(import_commands.run)
cli.add_command(import_commands.import_cmd, name="import")
cli.add_command(encryption_commands.encrypt)
cli.add_command(encryption_commands.decrypt)


def main() -> int:
    """Main entry point for CLI."""
    try:
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0
    except click.exceptions.Exit as e:
        return e.exit_code
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())

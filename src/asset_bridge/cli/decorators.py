"""
Decorators for CLI commands.

This module provides decorators for error handling and context passing.
"""

import functools
from collections.abc import Callable

import click

from asset_bridge.cli.context import BridgeContext
from asset_bridge.client.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DecryptionError,
    SourceAuthenticationError,
    TransportError,
)
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass BridgeContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: BridgeContext):
            print(ctx.settings)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        bridge_ctx: BridgeContext = click_ctx.obj
        return f(bridge_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    Exit codes:
        0: Success
        1: General error
        2: Configuration error
        3: Authentication error
        4: Transport (network or API) error
        5: Encrypted configuration error
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except (click.exceptions.Exit, click.ClickException):
            raise

        except ConfigurationError as e:
            logger.error("configuration_error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nPlease check your configuration and the integration record.",
                err=True,
            )
            raise click.exceptions.Exit(2) from e

        except (SourceAuthenticationError, AuthenticationError) as e:
            logger.error("authentication_error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo("\nPlease verify the credentials and API keys.", err=True)
            raise click.exceptions.Exit(3) from e

        except TransportError as e:
            logger.error("transport_error", error=str(e))
            click.echo(f"API Error: {e}", err=True)
            if getattr(e, "status_code", None):
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            raise click.exceptions.Exit(4) from e

        except DecryptionError as e:
            logger.error("decryption_error", error=str(e))
            click.echo(f"Decryption Error: {e}", err=True)
            raise click.exceptions.Exit(5) from e

        except Exception as e:
            logger.error("unexpected_error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(1) from e

    return wrapper

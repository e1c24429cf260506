"""
Encrypted configuration commands.

``encrypt`` seals an integration's credentials into the blob stored in its
``EncryptedConfig`` field; ``decrypt`` reverses it for inspection.
"""

import asyncio
import json
from pathlib import Path

import click

from asset_bridge.cli.context import BridgeContext
from asset_bridge.cli.decorators import handle_errors, pass_context
from asset_bridge.cli.utils import echo_success
from asset_bridge.crypto import decrypt_config, encrypt_config
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)

API_KEY_ENVVAR = "ASSET_BRIDGE_TARGET__API_KEY"


def _read_json(path: Path) -> dict | list:
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, (dict, list)):
        raise click.ClickException(f"{path} must contain a JSON object")
    return data


@click.command(name="encrypt")
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="JSON file with the configuration to encrypt",
)
@click.option("--api-key", envvar=API_KEY_ENVVAR, required=True, help="Encryption secret")
@click.option("--nonce", help="Integration record id bound to the blob (defaults to --record-id)")
@click.option("--record-id", help="Store the blob on this integration record")
@click.option(
    "--output", type=click.Path(dir_okay=False, path_type=Path), help="Write the blob to a file"
)
@pass_context
@handle_errors
def encrypt(
    ctx: BridgeContext,
    input_path: Path,
    api_key: str,
    nonce: str | None,
    record_id: str | None,
    output: Path | None,
) -> None:
    """Encrypt an integration configuration.

    Examples:

        asset-bridge encrypt --input creds.json --nonce 4F2A...

        asset-bridge encrypt --input creds.json --record-id 4F2A...
    """
    nonce = nonce or record_id
    if not nonce:
        raise click.UsageError("Provide --nonce or --record-id")

    blob = encrypt_config(_read_json(input_path), api_key, nonce)
    logger.info("config_encrypted", nonce=nonce)

    if output:
        output.write_text(blob)
        echo_success(f"Encrypted configuration written to {output}")
    else:
        click.echo(blob)

    if record_id:

        async def store() -> None:
            async with ctx.target_client() as client:
                await client.update_encrypted_config(record_id, blob)

        asyncio.run(store())
        echo_success(f"Encrypted configuration stored on record {record_id}")


@click.command(name="decrypt")
@click.option("--encrypted", help="Encrypted blob")
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File containing the encrypted blob",
)
@click.option("--api-key", envvar=API_KEY_ENVVAR, required=True, help="Encryption secret")
@click.option("--nonce", required=True, help="Integration record id bound to the blob")
@click.option(
    "--output", type=click.Path(dir_okay=False, path_type=Path), help="Write the JSON to a file"
)
@handle_errors
def decrypt(
    encrypted: str | None,
    input_path: Path | None,
    api_key: str,
    nonce: str,
    output: Path | None,
) -> None:
    """Decrypt an encrypted integration configuration."""
    if bool(encrypted) == bool(input_path):
        raise click.UsageError("Provide exactly one of --encrypted or --input")

    blob = encrypted if encrypted else input_path.read_text().strip()
    text = json.dumps(decrypt_config(blob, api_key, nonce), indent=2)

    if output:
        output.write_text(text)
        echo_success(f"Decrypted configuration written to {output}")
    else:
        click.echo(text)

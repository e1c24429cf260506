"""Source type listing command."""

import click

from asset_bridge.adapters.registry import ADAPTERS, ALIASES
from asset_bridge.cli.utils import print_table


@click.command(name="sources")
def sources() -> None:
    """List supported source types and their aliases."""
    rows = []
    for canonical in ADAPTERS:
        aliases = sorted(alias for alias, target in ALIASES.items() if target == canonical)
        rows.append([canonical, ", ".join(a for a in aliases if a != canonical) or "-"])
    print_table("Supported Source Types", ["Source Type", "Aliases"], rows)

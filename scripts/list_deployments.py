#!/usr/bin/python3
from pathlib import Path
from typing import Optional

import click

from bridge_deployment.constants import SUPPORTED_BRIDGE_NETWORKS
from bridge_deployment.ledger import JSONDeploymentLedger
from bridge_deployment.utils import ledger_filepath_from_network


def _display_ledger(bridge_network: str, ledger: JSONDeploymentLedger) -> None:
    click.secho(f"\n{bridge_network.capitalize()} ({ledger.filepath})", fg="green")
    for index, name in enumerate(ledger.names(), start=1):
        record = ledger.get_or_null(name)
        click.secho(f"    {index}. {name} {record.address}", fg="cyan")
        if record.implementation_address:
            click.secho(f"        implementation {record.implementation_address}", fg="yellow")
    for name in ledger.pending_names():
        pending = ledger.get_pending(name)
        click.secho(f"    (unrecorded) {name} submitted in {pending.tx_hash}", fg="red")


@click.command(name="list-deployments")
@click.option(
    "--bridge-network",
    "-b",
    help="Bridge network",
    type=click.Choice(SUPPORTED_BRIDGE_NETWORKS),
)
def cli(bridge_network: Optional[str]):
    """List all recorded deployments. Optionally filter by bridge network."""
    for network in SUPPORTED_BRIDGE_NETWORKS:
        if bridge_network and bridge_network != network:
            continue
        filepath: Path = ledger_filepath_from_network(network)
        if not filepath.exists():
            continue
        _display_ledger(network, JSONDeploymentLedger(filepath=filepath))


if __name__ == "__main__":
    cli()

#!/usr/bin/python3
import click
from ape.cli import ConnectedProviderCommand, network_option

from bridge_deployment.chain import get_implementation_address
from bridge_deployment.ledger import JSONDeploymentLedger, find_implementation_drift
from bridge_deployment.options import bridge_network_option, ledger_filepath_option
from bridge_deployment.utils import ledger_filepath_from_network


@click.command(cls=ConnectedProviderCommand, name="check-implementations")
@network_option(required=True)
@bridge_network_option
@ledger_filepath_option
def cli(network, bridge_network, ledger_filepath):
    """Compare recorded proxy implementations with the ones currently on chain."""
    ledger_filepath = ledger_filepath or ledger_filepath_from_network(bridge_network)
    if not ledger_filepath.exists():
        raise click.ClickException(f"No deployment ledger found at {ledger_filepath}")
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)

    drift = find_implementation_drift(ledger, get_implementation_address)
    if not drift:
        click.secho("All proxy implementations match the ledger.", fg="green")
        return

    for name, recorded, current in drift:
        click.secho(f"{name}: recorded {recorded}, on chain {current}", fg="red")
    raise click.ClickException(f"{len(drift)} proxy implementation(s) drifted from the ledger")


if __name__ == "__main__":
    cli()

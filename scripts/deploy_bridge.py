#!/usr/bin/python3
import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from bridge_deployment.artifacts import ProjectArtifactStore
from bridge_deployment.bridge import deploy_bridge
from bridge_deployment.chain import ApeChainClient
from bridge_deployment.confirm import _continue
from bridge_deployment.exceptions import DeploymentError
from bridge_deployment.ledger import JSONDeploymentLedger
from bridge_deployment.options import (
    autosign_option,
    bridge_network_option,
    ledger_filepath_option,
    tags_option,
    verify_option,
)
from bridge_deployment.utils import check_plugins, ledger_filepath_from_network


def _print_deployment_info(client, bridge_network, ledger, tags, verify):
    print(
        f"Account: {client.get_account().address}",
        f"Bridge network: {bridge_network}",
        f"Ledger: {ledger.filepath} ({len(ledger)} recorded)",
        f"Tags: {', '.join(tags)}",
        f"Verify: {verify}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {networks.provider.network.name}",
        f"Chain ID: {networks.provider.network.chain_id}",
        f"Latest block timestamp: {client.get_latest_block_timestamp()}",
        sep="\n",
    )


@click.command(cls=ConnectedProviderCommand, name="deploy-bridge")
@account_option()
@network_option(required=True)
@bridge_network_option
@ledger_filepath_option
@tags_option
@autosign_option
@verify_option
def cli(network, account, bridge_network, ledger_filepath, tags, autosign, verify):
    """
    Deploys the bridge contracts, resuming from the ledger of any earlier run.

    ape run deploy_bridge --network ethereum:sepolia:infura --bridge-network sepolia
    """
    check_plugins(verify=verify)
    ledger_filepath = ledger_filepath or ledger_filepath_from_network(bridge_network)
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)
    client = ApeChainClient(account=account, autosign=autosign, verify=verify)

    _print_deployment_info(client, bridge_network, ledger, tags, verify)
    if not autosign:
        # Confirms the start of the deployment.
        _continue()

    try:
        addresses = deploy_bridge(
            network=bridge_network,
            ledger=ledger,
            client=client,
            artifacts=ProjectArtifactStore(),
            tags=tags,
        )
    except DeploymentError as e:
        raise click.ClickException(str(e)) from e

    click.secho("\nDeployment complete", fg="green")
    for name, address in addresses.items():
        click.secho(f"    {name} {address}", fg="cyan")
    print(f"(i) Ledger written to {ledger.filepath}")


if __name__ == "__main__":
    cli()

from pathlib import Path

import click

from bridge_deployment.constants import DEPLOYMENT_TAGS, SUPPORTED_BRIDGE_NETWORKS

bridge_network_option = click.option(
    "--bridge-network",
    "-b",
    help="Bridge network; selects the configuration file and the deployment ledger.",
    type=click.Choice(SUPPORTED_BRIDGE_NETWORKS),
    required=True,
)

ledger_filepath_option = click.option(
    "--ledger-filepath",
    "-l",
    help="Deployment ledger filepath; defaults to the ledger of the bridge network.",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

tags_option = click.option(
    "--tag",
    "-t",
    "tags",
    help="Deployment plan(s) to execute; mocks are always deployed before the bridge.",
    type=click.Choice(DEPLOYMENT_TAGS),
    multiple=True,
    default=["bridge"],
    show_default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without prompting for confirmation.",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify",
    help="Publish contract sources to the network's block explorer.",
    is_flag=True,
    default=False,
)

from pathlib import Path

import click

from oracle_deployment.constants import LOCAL_NETWORK, NETWORKS_FILEPATH, PARAMS_DIR

network_option = click.option(
    "--network",
    "-n",
    help="Name of the network profile to deploy to.",
    default=LOCAL_NETWORK,
    show_default=True,
)

networks_file_option = click.option(
    "--networks-file",
    help="YAML file declaring the network profiles.",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=NETWORKS_FILEPATH,
    show_default=True,
)

params_option = click.option(
    "--params",
    "-p",
    help="YAML file with the oracle deployment parameters.",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=PARAMS_DIR / "oracle.yml",
    show_default=True,
)

confirmations_option = click.option(
    "--confirmations",
    "-c",
    help="Confirmations to await for the implementation before deploying the proxy.",
    type=click.IntRange(min=0),
    default=None,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without prompting.",
    is_flag=True,
    default=False,
)

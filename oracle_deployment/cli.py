from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click
from dotenv import load_dotenv

from oracle_deployment.chain import ChainService
from oracle_deployment.confirm import _confirm_parameters
from oracle_deployment.constants import DOTENV_FILEPATH
from oracle_deployment.deployer import DeploymentAborted, DeploymentResult, OracleDeployer
from oracle_deployment.networks import NetworkProfile, get_network_profile
from oracle_deployment.options import (
    autosign_option,
    confirmations_option,
    network_option,
    networks_file_option,
    params_option,
)
from oracle_deployment.params import DeploymentParameters
from oracle_deployment.registry import registry_from_deployment


@contextmanager
def _connect(profile: NetworkProfile, autosign: bool) -> Iterator[ChainService]:
    # ape is only needed when deploying against a real provider
    from oracle_deployment.ape_chain import ApeChainService

    with ApeChainService.connect(profile, autosign=autosign) as chain_service:
        yield chain_service


def _print_deployment_info(
    parameters: DeploymentParameters, params_filepath: Path, network: str, chain_id: int
) -> None:
    print(
        f"Deployment: {parameters.name}",
        f"Config: {params_filepath}",
        f"Registry: {parameters.registry_filepath}",
        f"Network: {network}",
        f"Chain ID: {chain_id}",
        f"Confirmations: {parameters.confirmations}",
        sep="\n",
    )


def _print_summary(result: DeploymentResult) -> None:
    click.secho("\nOracle deployment complete", fg="green")
    for handle in result.deployments:
        click.secho(f"    {handle.name}: {handle.address}", fg="cyan")
    click.secho(
        f"    Use {result.oracle.name} at {result.oracle.address} (through the proxy)", fg="yellow"
    )


def _report_abort(error: DeploymentAborted) -> None:
    click.secho(f"\nDeployment failed while {error.step}: {error.cause}", fg="red", err=True)
    if not error.deployed:
        click.secho("No contracts were deployed.", fg="red", err=True)
        return
    click.secho("These contracts are deployed but not wired to a proxy:", fg="red", err=True)
    for handle in error.deployed:
        click.secho(f"    {handle.name}: {handle.address}", fg="red", err=True)


def run_deployment(
    chain_service: ChainService,
    parameters: DeploymentParameters,
    params_filepath: Path,
    network: str,
    autosign: bool,
) -> DeploymentResult:
    chain_id = chain_service.chain_id
    _print_deployment_info(parameters, params_filepath, network=network, chain_id=chain_id)
    if not autosign:
        _confirm_parameters(parameters)

    deployer = OracleDeployer(chain_service=chain_service, parameters=parameters)
    try:
        result = deployer.deploy()
    except DeploymentAborted as e:
        _report_abort(e)
        raise

    registry_from_deployment(
        result=result, chain_id=chain_id, output_filepath=parameters.registry_filepath
    )
    _print_summary(result)
    return result


@click.command(name="deploy-oracle")
@network_option
@networks_file_option
@params_option
@confirmations_option
@autosign_option
def cli(
    network: str,
    networks_file: Path,
    params: Path,
    confirmations: Optional[int],
    autosign: bool,
):
    """Deploy the proxy admin, publisher registry, oracle and its initialized proxy."""
    load_dotenv(DOTENV_FILEPATH)

    parameters = DeploymentParameters.from_yaml(params)
    if confirmations is not None:
        parameters = parameters._replace(confirmations=confirmations)

    profile = get_network_profile(network, filepath=networks_file)
    with _connect(profile, autosign=autosign) as chain_service:
        run_deployment(chain_service, parameters, params, network=network, autosign=autosign)


if __name__ == "__main__":
    cli()

from typing import List, NamedTuple, Optional

import click

from oracle_deployment.chain import (
    ChainService,
    ChainSnapshot,
    ConfigurationError,
    ContractHandle,
    SigningIdentity,
)
from oracle_deployment.constants import (
    ADMIN,
    IMPLEMENTATION,
    INITIALIZER_METHOD,
    PROXY,
    REGISTRY,
)
from oracle_deployment.params import DeploymentParameters


class DeploymentResult(NamedTuple):
    snapshot: ChainSnapshot
    owner: SigningIdentity
    admin: ContractHandle
    registry: ContractHandle
    implementation: ContractHandle
    proxy: ContractHandle
    oracle: ContractHandle  # implementation interface at the proxy address

    @property
    def deployments(self) -> List[ContractHandle]:
        return [self.admin, self.registry, self.implementation, self.proxy]


class DeploymentAborted(Exception):
    """
    Raised when a step fails. Contracts created by earlier steps stay on chain
    and are not wired into a proxy; they are listed in `deployed`.
    """

    def __init__(self, step: str, deployed: List[ContractHandle], cause: Exception):
        self.step = step
        self.deployed = deployed
        self.cause = cause
        super().__init__(f"Deployment aborted while {step}: {cause}")


class OracleDeployer:
    """
    Deploys the upgradeable oracle topology (admin, publisher registry,
    oracle implementation and a transparent proxy initialized in its
    constructor) with a chain service.

    Steps run strictly in order and are not retried or rolled back; running
    the deployer again creates four new contracts.
    """

    def __init__(self, chain_service: ChainService, parameters: DeploymentParameters):
        self.chain_service = chain_service
        self.parameters = parameters
        self._deployed: List[ContractHandle] = list()
        self._step: Optional[str] = None

    def _contract_name(self, role: str) -> str:
        return self.parameters.contracts[role]

    def _deploy(self, role: str, *args, announce: bool = True) -> ContractHandle:
        contract_name = self._contract_name(role)
        self._step = f"deploying {contract_name}"
        handle = self.chain_service.deploy(contract_name, *args)
        self._deployed.append(handle)
        if announce:
            click.echo(f"{contract_name} address: {handle.address}")
        return handle

    def snapshot(self) -> ChainSnapshot:
        self._step = "reading the chain head"
        block_number = self.chain_service.get_block_number()
        timestamp = self.chain_service.get_block_timestamp(block_number)
        return ChainSnapshot(block_number=block_number, timestamp=timestamp)

    def resolve_owner(self) -> SigningIdentity:
        self._step = "resolving the deployer account"
        signers = self.chain_service.get_signers()
        if not signers:
            raise ConfigurationError("No signing account available to deploy from.")
        return signers[0]

    def encode_initializer(self, implementation: ContractHandle, registry: ContractHandle) -> bytes:
        self._step = f"encoding {implementation.name}.{INITIALIZER_METHOD}"
        args = self.parameters.initializer_args(registry_address=registry.address)
        return self.chain_service.encode_call(implementation, INITIALIZER_METHOD, *args)

    def deploy(self) -> DeploymentResult:
        # orphans are reported per run
        self._deployed = list()
        self._step = None
        try:
            return self._run()
        except Exception as e:
            raise DeploymentAborted(step=self._step, deployed=list(self._deployed), cause=e) from e

    def _run(self) -> DeploymentResult:
        self._step = "checking the chain id"
        self.parameters.validate_chain_id(self.chain_service.chain_id)

        snapshot = self.snapshot()
        click.echo(f"Chain head: block {snapshot.block_number} at {snapshot.timestamp}")

        owner = self.resolve_owner()
        click.echo(f"Deploy from address: {owner.address}")

        admin = self._deploy(ADMIN)
        registry = self._deploy(REGISTRY)
        implementation = self._deploy(IMPLEMENTATION)

        data = self.encode_initializer(implementation=implementation, registry=registry)

        confirmations = self.parameters.confirmations
        if confirmations > 0:
            self._step = f"awaiting {confirmations} confirmation(s) of {implementation.name}"
            click.echo(f"Awaiting {confirmations} confirmation(s) of {implementation.name}...")
            self.chain_service.await_confirmations(implementation, confirmations)

        proxy = self._deploy(PROXY, implementation.address, admin.address, data, announce=False)

        self._step = f"attaching {implementation.name} to {proxy.name}"
        oracle = self.chain_service.attach(self._contract_name(IMPLEMENTATION), proxy.address)
        click.echo(f"Proxy address: {oracle.address}")
        self._step = None

        return DeploymentResult(
            snapshot=snapshot,
            owner=owner,
            admin=admin,
            registry=registry,
            implementation=implementation,
            proxy=proxy,
            oracle=oracle,
        )

import os
import time
from contextlib import contextmanager
from typing import Iterator, List, Mapping, Optional, Tuple

import click
from ape import accounts, chain, networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer, ContractInstance
from ape.exceptions import (
    AccountsError,
    ContractLogicError,
    NetworkError,
    ProviderError,
    SignatureError,
    TransactionError,
)
from ape_accounts import import_account_from_private_key
from eth_account import Account
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address, to_hex
from hexbytes import HexBytes
from requests.exceptions import RequestException

from oracle_deployment.chain import (
    ChainService,
    ConfigurationError,
    ContractExecutionFailed,
    ContractHandle,
    SigningIdentity,
    TransactionRejected,
    TransportError,
)
from oracle_deployment.constants import (
    CONFIRMATION_POLL_INTERVAL,
    CONFIRMATION_TIMEOUT,
    DEPLOYER_ALIAS_PREFIX,
    DEPLOYER_PASSPHRASE_ENVVAR,
    LOCAL_NETWORK,
    LOCAL_NETWORK_CHOICE,
)
from oracle_deployment.networks import NetworkProfile


@contextmanager
def _chain_errors(action: str) -> Iterator[None]:
    """Re-raises ape and transport failures as chain service errors."""
    try:
        yield
    except ContractLogicError as e:
        raise ContractExecutionFailed(f"{action} reverted: {e}") from e
    except (TransactionError, SignatureError, AccountsError) as e:
        raise TransactionRejected(f"{action} was rejected: {e}") from e
    except (ProviderError, NetworkError, RequestException, TimeoutError) as e:
        raise TransportError(f"{action} failed: {e}") from e


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ConfigurationError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def is_local_network() -> bool:
    return networks.provider.network.name == LOCAL_NETWORK


def _get_abi(contract_instance: ContractInstance) -> List[dict]:
    return [
        entry.model_dump(mode="json", by_alias=True)
        for entry in contract_instance.contract_type.abi
    ]


def _handle_from_instance(instance: ContractInstance, with_receipt: bool = True) -> ContractHandle:
    tx_hash, block_number = None, None
    if with_receipt:
        if not instance.txn_hash:
            raise TransactionRejected(
                f"No deployment transaction recorded for {instance.contract_type.name}."
            )
        receipt = chain.get_receipt(instance.txn_hash)
        tx_hash = to_hex(HexBytes(receipt.txn_hash))
        block_number = receipt.block_number
    return ContractHandle(
        name=instance.contract_type.name,
        address=to_checksum_address(instance.address),
        abi=_get_abi(instance),
        tx_hash=tx_hash,
        block_number=block_number,
        instance=instance,
    )


def load_deployer_accounts(
    profile: NetworkProfile,
    autosign: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> List[AccountAPI]:
    """
    Loads the signing accounts of a network profile. Keys come from the environment
    and are imported once into the ape keystore under a per-network alias.
    """
    if profile.is_local:
        return [accounts.test_accounts[0]]

    environ = os.environ if environ is None else environ
    passphrase = environ.get(DEPLOYER_PASSPHRASE_ENVVAR)
    if not passphrase:
        raise ConfigurationError(f"{DEPLOYER_PASSPHRASE_ENVVAR} is not set.")

    if autosign:
        click.secho(
            "WARNING: Autosign is enabled. Transactions will be signed automatically.", fg="yellow"
        )

    deployer_accounts = list()
    private_keys = profile.resolve_private_keys(environ)
    for index, private_key in enumerate(private_keys):
        alias = f"{DEPLOYER_ALIAS_PREFIX}-{profile.name}-{index}"
        expected_address = Account.from_key(private_key).address
        if alias in accounts.aliases:
            account = accounts.load(alias)
            if account.address != expected_address:
                raise ConfigurationError(
                    f"Keystore alias '{alias}' holds {account.address}, "
                    f"but {profile.accounts[index]} is the key of {expected_address}."
                )
        else:
            account = import_account_from_private_key(alias, passphrase, private_key)
            click.echo(f"Account imported: {account.address}")
        account.set_autosign(autosign, passphrase=passphrase if autosign else None)
        deployer_accounts.append(account)
    return deployer_accounts


class ApeChainService(ChainService):
    """Chain service backed by the connected ape provider and the project's contract types."""

    def __init__(
        self,
        deployer_accounts: List[AccountAPI],
        allow_unlimited_contract_size: bool = False,
        poll_interval: float = CONFIRMATION_POLL_INTERVAL,
        timeout: float = CONFIRMATION_TIMEOUT,
    ):
        super().__init__(allow_unlimited_contract_size=allow_unlimited_contract_size)
        self.accounts = deployer_accounts
        self.poll_interval = poll_interval
        self.timeout = timeout

    @classmethod
    @contextmanager
    def connect(
        cls,
        profile: NetworkProfile,
        autosign: bool = False,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Iterator["ApeChainService"]:
        """Connects to the profile's endpoint and yields a service for the duration of the block."""
        choice = LOCAL_NETWORK_CHOICE if profile.is_local else profile.url
        with networks.parse_network_choice(choice):
            if profile.chain_id is not None and chain.chain_id != profile.chain_id:
                raise ConfigurationError(
                    f"Endpoint of network '{profile.name}' reports chain id {chain.chain_id}, "
                    f"expected {profile.chain_id}."
                )
            deployer_accounts = load_deployer_accounts(profile, autosign=autosign, environ=environ)
            yield cls(
                deployer_accounts=deployer_accounts,
                allow_unlimited_contract_size=profile.allow_unlimited_contract_size,
            )

    @property
    def chain_id(self) -> int:
        with _chain_errors("Reading the chain id"):
            return chain.chain_id

    @property
    def sender(self) -> AccountAPI:
        return self.accounts[0]

    def get_block_number(self) -> int:
        with _chain_errors("Reading the block number"):
            return chain.blocks.height

    def get_block_timestamp(self, block_number: int) -> int:
        with _chain_errors(f"Reading block {block_number}"):
            return chain.blocks[block_number].timestamp

    def get_signers(self) -> List[SigningIdentity]:
        return [SigningIdentity(address=to_checksum_address(a.address)) for a in self.accounts]

    def _get_bytecode(self, contract_name: str) -> Tuple[bytes, bytes]:
        contract_type = get_contract_container(contract_name).contract_type
        runtime_code = contract_type.get_runtime_bytecode() or b""
        init_code = contract_type.get_deployment_bytecode() or b""
        return bytes(HexBytes(runtime_code)), bytes(HexBytes(init_code))

    def _deploy(self, contract_name: str, *args) -> ContractHandle:
        container = get_contract_container(contract_name)
        with _chain_errors(f"Deploying {contract_name}"):
            instance = self.sender.deploy(container, *args, publish=False)
            return _handle_from_instance(instance)

    def encode_call(self, handle: ContractHandle, method: str, *args) -> bytes:
        try:
            method_handler = getattr(handle.instance, method)
        except AttributeError:
            raise ConfigurationError(f"{handle.name} has no method '{method}'.")
        with _chain_errors(f"Encoding {handle.name}.{method}"):
            return bytes(HexBytes(method_handler.encode_input(*args)))

    def attach(self, contract_name: str, address: ChecksumAddress) -> ContractHandle:
        container = get_contract_container(contract_name)
        with _chain_errors(f"Attaching {contract_name} at {address}"):
            instance = container.at(address)
        return _handle_from_instance(instance, with_receipt=False)

    def await_confirmations(self, handle: ContractHandle, confirmations: int) -> None:
        if confirmations <= 0:
            return
        # the block including the transaction is the first confirmation
        target = handle.block_number + confirmations - 1
        with _chain_errors(f"Awaiting confirmations of {handle.name}"):
            if is_local_network():
                missing = target - chain.blocks.height
                if missing > 0:
                    chain.mine(missing)
                return

            deadline = time.monotonic() + self.timeout
            while chain.blocks.height < target:
                if time.monotonic() > deadline:
                    raise TransportError(
                        f"{handle.name} did not reach {confirmations} confirmation(s) "
                        f"within {self.timeout} seconds."
                    )
                time.sleep(self.poll_interval)

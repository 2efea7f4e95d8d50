from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress

from oracle_deployment.constants import MAX_INITCODE_SIZE, MAX_RUNTIME_CODE_SIZE

#
# Errors
#


class ChainServiceError(Exception):
    """Base class for failures reported by a chain-execution service."""


class ConfigurationError(ChainServiceError):
    """Missing or invalid endpoint, account or deployment setting; raised before any transaction."""


class TransportError(ChainServiceError):
    """The node could not be reached or did not answer in time."""


class TransactionRejected(ChainServiceError):
    """The transaction was refused before execution (funds, nonce, gas, size)."""


class ContractSizeLimitExceeded(TransactionRejected):
    """Contract bytecode is larger than the network allows."""


class ContractExecutionFailed(ChainServiceError):
    """The transaction was executed and reverted."""


#
# Types
#


class ChainSnapshot(NamedTuple):
    block_number: int
    timestamp: int


class SigningIdentity(NamedTuple):
    address: ChecksumAddress


class ContractHandle(NamedTuple):
    """A deployed (or attached) contract and the typed object used to call it."""

    name: str
    address: ChecksumAddress
    abi: List[Dict]
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    instance: Any = None


def check_contract_size(
    contract_name: str, runtime_code: bytes, init_code: bytes, allow_unlimited: bool
) -> None:
    """Raises ContractSizeLimitExceeded when the bytecode does not fit the EIP-170/3860 ceilings."""
    if allow_unlimited:
        return
    if len(runtime_code) > MAX_RUNTIME_CODE_SIZE:
        raise ContractSizeLimitExceeded(
            f"{contract_name} runtime bytecode is {len(runtime_code)} bytes; "
            f"the limit is {MAX_RUNTIME_CODE_SIZE} bytes. "
            "Enable allow_unlimited_contract_size for this network to deploy it anyway."
        )
    if len(init_code) > MAX_INITCODE_SIZE:
        raise ContractSizeLimitExceeded(
            f"{contract_name} init code is {len(init_code)} bytes; "
            f"the limit is {MAX_INITCODE_SIZE} bytes. "
            "Enable allow_unlimited_contract_size for this network to deploy it anyway."
        )


class ChainService(ABC):
    """
    Operations the oracle deployer needs from a chain: chain head queries,
    signer resolution, contract creation, call encoding and attachment.

    Subclasses implement the underscored hooks; `deploy` enforces the
    contract size policy before anything is submitted.
    """

    def __init__(self, allow_unlimited_contract_size: bool = False):
        self.allow_unlimited_contract_size = allow_unlimited_contract_size

    @property
    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_block_number(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_block_timestamp(self, block_number: int) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_signers(self) -> List[SigningIdentity]:
        """Returns the signing identities available to this service, deployer first."""
        raise NotImplementedError

    @abstractmethod
    def encode_call(self, handle: ContractHandle, method: str, *args) -> bytes:
        """ABI-encodes a call (selector + arguments) against the handle's interface."""
        raise NotImplementedError

    @abstractmethod
    def attach(self, contract_name: str, address: ChecksumAddress) -> ContractHandle:
        """Binds the interface of `contract_name` to an already deployed address."""
        raise NotImplementedError

    @abstractmethod
    def await_confirmations(self, handle: ContractHandle, confirmations: int) -> None:
        """Blocks until the handle's creation transaction has `confirmations` confirmations."""
        raise NotImplementedError

    @abstractmethod
    def _get_bytecode(self, contract_name: str) -> Tuple[bytes, bytes]:
        """Returns (runtime code, init code) of a contract type."""
        raise NotImplementedError

    @abstractmethod
    def _deploy(self, contract_name: str, *args) -> ContractHandle:
        raise NotImplementedError

    def deploy(self, contract_name: str, *args) -> ContractHandle:
        """Creates a contract and waits for its receipt."""
        runtime_code, init_code = self._get_bytecode(contract_name)
        check_contract_size(
            contract_name=contract_name,
            runtime_code=runtime_code,
            init_code=init_code,
            allow_unlimited=self.allow_unlimited_contract_size,
        )
        return self._deploy(contract_name, *args)

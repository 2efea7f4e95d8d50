from typing import Dict, List, Optional, Tuple

import pytest
from eth_abi import decode, encode
from eth_utils import keccak, to_bytes, to_checksum_address
from web3 import Web3

from oracle_deployment.chain import (
    ChainService,
    ConfigurationError,
    ContractExecutionFailed,
    ContractHandle,
    SigningIdentity,
)
from oracle_deployment.params import DeploymentParameters

CURRENCY_TYPE = "(bytes32,uint256,bool,address)[]"
PAIR_TYPE = "(bytes32,bytes32,bytes32)[]"
INITIALIZER_TYPES = ["address", CURRENCY_TYPE, PAIR_TYPE]

# contract name -> method name -> argument types
INTERFACES = {
    "ProxyAdmin": {"owner": []},
    "PublisherRegistry": {"addPublisher": ["bytes32", "address"]},
    "Oracle": {"initialize": INITIALIZER_TYPES, "publisherRegistry": []},
    "TransparentUpgradeableProxy": {},
}

CONSTRUCTOR_ARGUMENTS = {"TransparentUpgradeableProxy": 3}

DEFAULT_CODE_SIZE = 1_000
OWNER = to_checksum_address("0x" + "0f" * 20)


def short_address(value: int) -> str:
    """0xA1 -> 0x00000000000000000000000000000000000000A1 (checksummed)"""
    return to_checksum_address("0x" + f"{value:040x}")


def selector(method: str, types: List[str]) -> bytes:
    return bytes(Web3.keccak(text=f"{method}({','.join(types)})")[:4])


def _abi(contract_name: str) -> List[Dict]:
    abi = [{"type": "constructor", "inputs": []}]
    for method, types in INTERFACES[contract_name].items():
        abi.append({"type": "function", "name": method, "inputs": [{"type": t} for t in types]})
    return abi


class FakeChainService(ChainService):
    """
    In-memory chain: contract addresses derive from sender and nonce (or are taken
    from `addresses` in order), every deployment mines one block, and a proxy
    runs the initializer call it is given against its implementation's interface.
    """

    def __init__(
        self,
        addresses: Optional[List[str]] = None,
        signers: Optional[List[str]] = None,
        code_sizes: Optional[Dict[str, int]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        allow_unlimited_contract_size: bool = False,
        chain_id: int = 1337,
        block_number: int = 100,
        timestamp: int = 1_680_000_000,
    ):
        super().__init__(allow_unlimited_contract_size=allow_unlimited_contract_size)
        self.addresses = list(addresses or [])
        self.signers = [OWNER] if signers is None else signers
        self.code_sizes = code_sizes or dict()
        self.failures = failures or dict()
        self._chain_id = chain_id
        self.block_number = block_number
        self.genesis_timestamp = timestamp
        self.nonce = 0
        self.code: Dict[str, str] = dict()  # address -> contract name
        self.storage: Dict[str, Dict] = dict()
        self.calls: List[Tuple] = list()

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def get_block_number(self) -> int:
        self.calls.append(("get_block_number",))
        return self.block_number

    def get_block_timestamp(self, block_number: int) -> int:
        self.calls.append(("get_block_timestamp", block_number))
        return self.genesis_timestamp + 12 * block_number

    def get_signers(self) -> List[SigningIdentity]:
        self.calls.append(("get_signers",))
        return [SigningIdentity(address=a) for a in self.signers]

    def _get_bytecode(self, contract_name: str) -> Tuple[bytes, bytes]:
        size = self.code_sizes.get(contract_name, DEFAULT_CODE_SIZE)
        return b"\x60" * size, b"\x60" * (size + 100)

    def _next_address(self) -> str:
        if self.addresses:
            return to_checksum_address(self.addresses.pop(0))
        sender = to_bytes(hexstr=self.signers[0])
        return to_checksum_address(keccak(sender + self.nonce.to_bytes(32, "big"))[-20:])

    def _deploy(self, contract_name: str, *args) -> ContractHandle:
        self.calls.append(("deploy", contract_name, args))
        if contract_name in self.failures:
            raise self.failures[contract_name]
        if contract_name not in INTERFACES:
            raise ConfigurationError(f"No contract found with name '{contract_name}'.")
        expected_arguments = CONSTRUCTOR_ARGUMENTS.get(contract_name, 0)
        if len(args) != expected_arguments:
            raise ContractExecutionFailed(f"{contract_name} constructor takes {expected_arguments}")

        address = self._next_address()
        storage = dict()
        if contract_name == "TransparentUpgradeableProxy":
            storage = self._construct_proxy(*args)

        tx_hash = "0x" + keccak(text=f"{address}:{self.nonce}").hex()
        self.nonce += 1
        self.block_number += 1
        self.code[address] = contract_name
        self.storage[address] = storage
        return ContractHandle(
            name=contract_name,
            address=address,
            abi=_abi(contract_name),
            tx_hash=tx_hash,
            block_number=self.block_number,
        )

    def _construct_proxy(self, logic: str, admin: str, data: bytes) -> Dict:
        if self.code.get(logic) is None or self.code.get(admin) is None:
            raise ContractExecutionFailed("ERC1967: new implementation is not a contract")
        storage = {"implementation": logic, "admin": admin}
        if not data:
            return storage

        interface = INTERFACES[self.code[logic]]
        initializer_types = interface.get("initialize")
        if initializer_types is None or data[:4] != selector("initialize", initializer_types):
            raise ContractExecutionFailed("Address: low-level delegate call failed")
        registry, currencies, pairs = decode(initializer_types, data[4:])
        storage.update(
            publisherRegistry=to_checksum_address(registry),
            currencies=list(currencies),
            pairs=list(pairs),
        )
        return storage

    def encode_call(self, handle: ContractHandle, method: str, *args) -> bytes:
        self.calls.append(("encode_call", handle.name, method))
        types = INTERFACES[handle.name].get(method)
        if types is None:
            raise ConfigurationError(f"{handle.name} has no method '{method}'.")
        return selector(method, types) + encode(types, list(args))

    def attach(self, contract_name: str, address: str) -> ContractHandle:
        self.calls.append(("attach", contract_name, address))
        return ContractHandle(name=contract_name, address=address, abi=_abi(contract_name))

    def await_confirmations(self, handle: ContractHandle, confirmations: int) -> None:
        self.calls.append(("await_confirmations", handle.name, confirmations))
        self.block_number = max(self.block_number, handle.block_number + confirmations - 1)

    def call(self, handle: ContractHandle, method: str):
        """Reads a value the initializer stored, through the handle's address."""
        if method not in INTERFACES[handle.name]:
            raise ContractExecutionFailed(f"{handle.name} has no method '{method}'")
        return self.storage[handle.address][method]

    @property
    def deployed_names(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "deploy"]


@pytest.fixture
def params_config(tmp_path):
    return {
        "deployment": {"name": "oracle-test"},
        "artifacts": {"dir": str(tmp_path / "artifacts"), "filename": "oracle-test.json"},
        "confirmations": 2,
        "initializer": {
            "currencies": [
                {
                    "id": "USD",
                    "decimals": 8,
                    "is_abstract_currency": True,
                    "ethereum_address": "0x0000000000000000000000000000000000000000",
                },
                {"id": "ETH", "decimals": 18, "is_abstract_currency": True},
            ],
            "pairs": [
                {"id": "ETH/USD", "quote_currency_id": "ETH", "base_currency_id": "USD"},
            ],
        },
    }


@pytest.fixture
def parameters(params_config):
    return DeploymentParameters.from_config(params_config)


@pytest.fixture
def chain_service():
    return FakeChainService()


@pytest.fixture
def stub_addresses():
    return [short_address(value) for value in (0xA1, 0xA2, 0xA3, 0xA4)]

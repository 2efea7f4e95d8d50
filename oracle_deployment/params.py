import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress

from oracle_deployment.constants import (
    DEFAULT_CONFIRMATIONS,
    DEFAULT_CONTRACTS,
    ZERO_ADDRESS,
)
from oracle_deployment.utils import (
    _load_yaml,
    checksum_address,
    format_bytes32_string,
    get_artifact_filepath,
)


class DeploymentConfigError(ValueError):
    """Raised when the deployment parameters file is malformed or inconsistent."""


class CurrencyDescriptor(NamedTuple):
    id: str
    decimals: int
    is_abstract_currency: bool
    ethereum_address: ChecksumAddress = ZERO_ADDRESS

    def to_abi(self) -> tuple:
        """(bytes32 id, uint256 decimals, bool isAbstractCurrency, address ethereumAddress)"""
        return (
            format_bytes32_string(self.id),
            self.decimals,
            self.is_abstract_currency,
            self.ethereum_address,
        )


class PairDescriptor(NamedTuple):
    id: str
    quote_currency_id: str
    base_currency_id: str

    def to_abi(self) -> tuple:
        """(bytes32 id, bytes32 quoteCurrencyId, bytes32 baseCurrencyId)"""
        return (
            format_bytes32_string(self.id),
            format_bytes32_string(self.quote_currency_id),
            format_bytes32_string(self.base_currency_id),
        )


def _validate_identifier(identifier: Any, description: str) -> str:
    if not isinstance(identifier, str):
        raise DeploymentConfigError(f"{description} must be a string, got '{identifier}'")
    try:
        format_bytes32_string(identifier)
    except ValueError as e:
        raise DeploymentConfigError(f"Invalid {description}: {e}") from e
    return identifier


def _parse_currency(data: Any) -> CurrencyDescriptor:
    if not isinstance(data, dict):
        raise DeploymentConfigError(f"Malformed currency entry: {data}")
    try:
        currency_id = data["id"]
        decimals = data["decimals"]
        is_abstract = data["is_abstract_currency"]
    except KeyError as e:
        raise DeploymentConfigError(f"Currency entry {data} is missing field {e}") from e

    currency_id = _validate_identifier(currency_id, "currency id")
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise DeploymentConfigError(
            f"Currency '{currency_id}' decimals must be a non-negative integer, got '{decimals}'"
        )
    if not isinstance(is_abstract, bool):
        raise DeploymentConfigError(
            f"Currency '{currency_id}' is_abstract_currency must be a boolean, got '{is_abstract}'"
        )
    try:
        address = checksum_address(data.get("ethereum_address") or ZERO_ADDRESS)
    except ValueError as e:
        raise DeploymentConfigError(f"Currency '{currency_id}': {e}") from e

    return CurrencyDescriptor(
        id=currency_id,
        decimals=decimals,
        is_abstract_currency=is_abstract,
        ethereum_address=address,
    )


def _parse_pair(data: Any) -> PairDescriptor:
    if not isinstance(data, dict):
        raise DeploymentConfigError(f"Malformed pair entry: {data}")
    try:
        return PairDescriptor(
            id=_validate_identifier(data["id"], "pair id"),
            quote_currency_id=_validate_identifier(data["quote_currency_id"], "quote currency id"),
            base_currency_id=_validate_identifier(data["base_currency_id"], "base currency id"),
        )
    except KeyError as e:
        raise DeploymentConfigError(f"Pair entry {data} is missing field {e}") from e


def validate_initializer_parameters(
    currencies: List[CurrencyDescriptor], pairs: List[PairDescriptor]
) -> None:
    """Checks id uniqueness and that every pair references known currencies."""
    if not currencies:
        raise DeploymentConfigError("At least one currency is required.")

    currency_ids = set()
    for currency in currencies:
        if currency.id in currency_ids:
            raise DeploymentConfigError(f"Duplicate currency id '{currency.id}'")
        currency_ids.add(currency.id)

    pair_ids = set()
    for pair in pairs:
        if pair.id in pair_ids:
            raise DeploymentConfigError(f"Duplicate pair id '{pair.id}'")
        pair_ids.add(pair.id)
        for currency_id in (pair.quote_currency_id, pair.base_currency_id):
            if currency_id not in currency_ids:
                raise DeploymentConfigError(
                    f"Pair '{pair.id}' references unknown currency '{currency_id}'"
                )


def _parse_contracts(data: Optional[Dict]) -> typing.OrderedDict[str, str]:
    """Merges the role -> contract name overrides onto the defaults."""
    contracts = OrderedDict(DEFAULT_CONTRACTS)
    for role, name in (data or {}).items():
        if role not in contracts:
            raise DeploymentConfigError(
                f"Unknown contract role '{role}'; expected one of {list(DEFAULT_CONTRACTS)}"
            )
        if not isinstance(name, str) or not name:
            raise DeploymentConfigError(f"Contract name for role '{role}' must be a string")
        contracts[role] = name
    return contracts


class DeploymentParameters(NamedTuple):
    """Validated contents of an oracle deployment parameters file."""

    name: str
    chain_id: Optional[int]
    registry_filepath: Path
    confirmations: int
    contracts: typing.OrderedDict[str, str]
    currencies: List[CurrencyDescriptor]
    pairs: List[PairDescriptor]

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentParameters":
        config = _load_yaml(filepath)
        return cls.from_config(config)

    @classmethod
    def from_config(cls, config: Dict) -> "DeploymentParameters":
        print("Validating parameters YAML...")
        if not isinstance(config, dict):
            raise DeploymentConfigError("Malformed deployment parameters YAML.")

        deployment = config.get("deployment")
        if not deployment:
            raise DeploymentConfigError("deployment is not set in params file.")
        name = deployment.get("name")
        if not name:
            raise DeploymentConfigError("deployment name is not set in params file.")
        chain_id = deployment.get("chain_id")
        if chain_id is not None:
            chain_id = int(chain_id)

        try:
            registry_filepath = get_artifact_filepath(config=config)
        except ValueError as e:
            raise DeploymentConfigError(str(e)) from e

        confirmations = config.get("confirmations", DEFAULT_CONFIRMATIONS)
        if isinstance(confirmations, bool) or not isinstance(confirmations, int):
            raise DeploymentConfigError(f"confirmations must be an integer, got '{confirmations}'")
        if confirmations < 0:
            raise DeploymentConfigError("confirmations must not be negative")

        initializer = config.get("initializer")
        if not initializer:
            raise DeploymentConfigError("initializer is not set in params file.")
        currencies = [_parse_currency(c) for c in initializer.get("currencies") or []]
        pairs = [_parse_pair(p) for p in initializer.get("pairs") or []]
        validate_initializer_parameters(currencies=currencies, pairs=pairs)

        return cls(
            name=name,
            chain_id=chain_id,
            registry_filepath=registry_filepath,
            confirmations=confirmations,
            contracts=_parse_contracts(config.get("contracts")),
            currencies=currencies,
            pairs=pairs,
        )

    def initializer_args(self, registry_address: ChecksumAddress) -> List[Any]:
        """Arguments of `initialize(address, Currency[], Pair[])`."""
        return [
            registry_address,
            [currency.to_abi() for currency in self.currencies],
            [pair.to_abi() for pair in self.pairs],
        ]

    def validate_chain_id(self, chain_id: int) -> None:
        """Checks that the connected chain is the one the parameters were written for."""
        if self.chain_id is not None and self.chain_id != chain_id:
            raise DeploymentConfigError(
                f"chain_id in params file ({self.chain_id}) does not match "
                f"chain_id of current network ({chain_id})."
            )

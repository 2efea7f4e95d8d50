from pathlib import Path

import pytest
import yaml
from eth_utils import to_checksum_address

from oracle_deployment.constants import DEFAULT_CONTRACTS, PARAMS_DIR, ZERO_ADDRESS
from oracle_deployment.params import (
    CurrencyDescriptor,
    DeploymentConfigError,
    DeploymentParameters,
    PairDescriptor,
)
from oracle_deployment.utils import format_bytes32_string, parse_bytes32_string


def test_bytes32_strings():
    encoded = format_bytes32_string("ETH/USD")
    assert len(encoded) == 32
    assert encoded == b"ETH/USD" + b"\x00" * 25
    assert parse_bytes32_string(encoded) == "ETH/USD"

    # a trailing NUL byte must always fit
    assert len(format_bytes32_string("X" * 31)) == 32
    with pytest.raises(ValueError, match="at most 31 bytes"):
        format_bytes32_string("X" * 32)
    with pytest.raises(ValueError, match="empty"):
        format_bytes32_string("")


def test_load_parameters(parameters, params_config):
    assert parameters.name == "oracle-test"
    assert parameters.chain_id is None
    assert parameters.confirmations == 2
    artifacts_dir = Path(params_config["artifacts"]["dir"])
    assert parameters.registry_filepath == artifacts_dir / "oracle-test.json"
    assert parameters.contracts == DEFAULT_CONTRACTS

    usd, eth = parameters.currencies
    assert usd == CurrencyDescriptor("USD", 8, True, ZERO_ADDRESS)
    assert eth.ethereum_address == ZERO_ADDRESS
    assert parameters.pairs == [PairDescriptor("ETH/USD", "ETH", "USD")]


def test_shipped_parameters_file_is_valid():
    parameters = DeploymentParameters.from_yaml(PARAMS_DIR / "oracle.yml")
    assert [c.id for c in parameters.currencies] == ["USD", "ETH"]
    assert [p.id for p in parameters.pairs] == ["ETH/USD"]


def test_load_from_yaml(tmp_path, params_config):
    filepath = tmp_path / "params.yml"
    filepath.write_text(yaml.safe_dump(params_config))
    parameters = DeploymentParameters.from_yaml(filepath)
    assert parameters == DeploymentParameters.from_config(params_config)


def test_initializer_args(parameters):
    registry = "0x" + "ab" * 20
    registry_address, currencies, pairs = parameters.initializer_args(registry_address=registry)

    assert registry_address == registry
    assert currencies == [
        (format_bytes32_string("USD"), 8, True, ZERO_ADDRESS),
        (format_bytes32_string("ETH"), 18, True, ZERO_ADDRESS),
    ]
    assert pairs == [
        (
            format_bytes32_string("ETH/USD"),
            format_bytes32_string("ETH"),
            format_bytes32_string("USD"),
        )
    ]


def test_contract_overrides(params_config):
    params_config["contracts"] = {"implementation": "OracleV2"}
    parameters = DeploymentParameters.from_config(params_config)
    assert parameters.contracts["implementation"] == "OracleV2"
    assert parameters.contracts["proxy"] == "TransparentUpgradeableProxy"

    params_config["contracts"] = {"beacon": "UpgradeableBeacon"}
    with pytest.raises(DeploymentConfigError, match="Unknown contract role 'beacon'"):
        DeploymentParameters.from_config(params_config)


def test_currency_address_is_checksummed(params_config):
    params_config["initializer"]["currencies"][1]["ethereum_address"] = "0x" + "ab" * 20
    parameters = DeploymentParameters.from_config(params_config)
    assert parameters.currencies[1].ethereum_address == to_checksum_address("0x" + "ab" * 20)

    params_config["initializer"]["currencies"][1]["ethereum_address"] = "0x1234"
    with pytest.raises(DeploymentConfigError, match="Invalid address"):
        DeploymentParameters.from_config(params_config)


def test_duplicate_currency_id(params_config):
    params_config["initializer"]["currencies"].append(
        {"id": "USD", "decimals": 6, "is_abstract_currency": False}
    )
    with pytest.raises(DeploymentConfigError, match="Duplicate currency id 'USD'"):
        DeploymentParameters.from_config(params_config)


def test_duplicate_pair_id(params_config):
    pairs = params_config["initializer"]["pairs"]
    pairs.append(dict(pairs[0]))
    with pytest.raises(DeploymentConfigError, match="Duplicate pair id 'ETH/USD'"):
        DeploymentParameters.from_config(params_config)


def test_pair_must_reference_known_currencies(params_config):
    params_config["initializer"]["pairs"].append(
        {"id": "BTC/USD", "quote_currency_id": "BTC", "base_currency_id": "USD"}
    )
    with pytest.raises(DeploymentConfigError, match="unknown currency 'BTC'"):
        DeploymentParameters.from_config(params_config)


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("decimals", -1, "non-negative integer"),
        ("decimals", "8", "non-negative integer"),
        ("decimals", True, "non-negative integer"),
        ("is_abstract_currency", "yes", "must be a boolean"),
        ("id", "A" * 32, "at most 31 bytes"),
        ("id", 42, "must be a string"),
    ],
)
def test_invalid_currency(params_config, field, value, message):
    params_config["initializer"]["currencies"][0][field] = value
    with pytest.raises(DeploymentConfigError, match=message):
        DeploymentParameters.from_config(params_config)


def test_currency_missing_field(params_config):
    del params_config["initializer"]["currencies"][0]["decimals"]
    with pytest.raises(DeploymentConfigError, match="missing field 'decimals'"):
        DeploymentParameters.from_config(params_config)


@pytest.mark.parametrize(
    "section, message",
    [
        ("deployment", "deployment is not set"),
        ("artifacts", "artifact filename is not set"),
        ("initializer", "initializer is not set"),
    ],
)
def test_missing_sections(params_config, section, message):
    del params_config[section]
    with pytest.raises(DeploymentConfigError, match=message):
        DeploymentParameters.from_config(params_config)


def test_at_least_one_currency(params_config):
    params_config["initializer"] = {"currencies": [], "pairs": []}
    with pytest.raises(DeploymentConfigError, match="At least one currency"):
        DeploymentParameters.from_config(params_config)


@pytest.mark.parametrize("confirmations", [-1, "two", False])
def test_invalid_confirmations(params_config, confirmations):
    params_config["confirmations"] = confirmations
    with pytest.raises(DeploymentConfigError, match="confirmations"):
        DeploymentParameters.from_config(params_config)


def test_default_confirmations(params_config):
    del params_config["confirmations"]
    assert DeploymentParameters.from_config(params_config).confirmations == 1


def test_chain_id_validation(params_config):
    params_config["deployment"]["chain_id"] = "97"
    parameters = DeploymentParameters.from_config(params_config)
    assert parameters.chain_id == 97

    parameters.validate_chain_id(97)
    with pytest.raises(DeploymentConfigError, match=r"chain_id in params file \(97\)"):
        parameters.validate_chain_id(3141)

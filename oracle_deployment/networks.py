import os
import re
from pathlib import Path
from typing import Dict, List, Mapping, NamedTuple, Optional

from oracle_deployment.chain import ConfigurationError
from oracle_deployment.constants import LOCAL_NETWORK, NETWORKS_FILEPATH
from oracle_deployment.utils import _load_yaml

# Environment variable names only; private keys never live in the networks file
ENVVAR_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


class NetworkProfile(NamedTuple):
    """Endpoint, signing credentials and deployment policy of a named network."""

    name: str
    url: Optional[str]
    accounts: List[str]
    allow_unlimited_contract_size: bool = False
    chain_id: Optional[int] = None

    @property
    def is_local(self) -> bool:
        return self.url is None

    def resolve_private_keys(self, environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """Reads the signing keys of this network from the environment, in declared order."""
        environ = os.environ if environ is None else environ
        keys = list()
        for envvar in self.accounts:
            key = environ.get(envvar)
            if not key:
                raise ConfigurationError(
                    f"{envvar} is not set; it must hold a private key for network '{self.name}'."
                )
            if not PRIVATE_KEY_PATTERN.match(key.strip()):
                raise ConfigurationError(f"{envvar} does not hold a valid private key.")
            keys.append(key.strip())
        return keys


def _parse_profile(name: str, data: Optional[Dict]) -> NetworkProfile:
    data = data or dict()
    url = data.get("url")
    if name != LOCAL_NETWORK and not url:
        raise ConfigurationError(f"url is not set for network '{name}'.")

    accounts = data.get("accounts") or list()
    if not isinstance(accounts, list):
        raise ConfigurationError(f"accounts for network '{name}' must be a list.")
    for envvar in accounts:
        if not isinstance(envvar, str) or PRIVATE_KEY_PATTERN.match(envvar):
            raise ConfigurationError(
                f"accounts for network '{name}' must name environment variables, "
                "not contain private keys."
            )
        if not ENVVAR_NAME_PATTERN.match(envvar):
            raise ConfigurationError(f"'{envvar}' is not a valid environment variable name.")
    if url and not accounts:
        raise ConfigurationError(f"No accounts configured for network '{name}'.")

    allow_unlimited = data.get("allow_unlimited_contract_size", False)
    if not isinstance(allow_unlimited, bool):
        raise ConfigurationError(
            f"allow_unlimited_contract_size for network '{name}' must be a boolean."
        )

    chain_id = data.get("chain_id")
    return NetworkProfile(
        name=name,
        url=url or None,
        accounts=accounts,
        allow_unlimited_contract_size=allow_unlimited,
        chain_id=int(chain_id) if chain_id is not None else None,
    )


def load_network_profiles(filepath: Path = NETWORKS_FILEPATH) -> Dict[str, NetworkProfile]:
    config = _load_yaml(filepath) or dict()
    networks = config.get("networks")
    if not isinstance(networks, dict) or not networks:
        raise ConfigurationError(f"No networks declared in {filepath}.")
    return {name: _parse_profile(name, data) for name, data in networks.items()}


def get_network_profile(name: str, filepath: Path = NETWORKS_FILEPATH) -> NetworkProfile:
    profiles = load_network_profiles(filepath)
    try:
        return profiles[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown network '{name}'; choose one of {', '.join(sorted(profiles))}."
        )

import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from oracle_deployment.chain import ContractHandle
from oracle_deployment.constants import IMPLEMENTATION_REGISTRY_SUFFIX
from oracle_deployment.deployer import DeploymentResult
from oracle_deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in the registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: List[Dict]
    tx_hash: str
    block_number: int
    deployer: str


def _get_entry(
    handle: ContractHandle,
    chain_id: ChainId,
    deployer: ChecksumAddress,
    name: ContractName = None,
    abi: List[Dict] = None,
) -> RegistryEntry:
    return RegistryEntry(
        chain_id=chain_id,
        name=name or handle.name,
        address=to_checksum_address(handle.address),
        abi=handle.abi if abi is None else abi,
        tx_hash=handle.tx_hash,
        block_number=handle.block_number,
        deployer=deployer,
    )


def registry_entries_from_deployment(
    result: DeploymentResult, chain_id: ChainId
) -> List[RegistryEntry]:
    """
    The proxy is recorded under the implementation's name with the implementation's ABI,
    since every call goes through it; the implementation itself gets a suffixed name.
    """
    deployer = result.owner.address
    implementation_name = result.implementation.name
    return [
        _get_entry(result.admin, chain_id=chain_id, deployer=deployer),
        _get_entry(result.registry, chain_id=chain_id, deployer=deployer),
        _get_entry(
            result.implementation,
            chain_id=chain_id,
            deployer=deployer,
            name=f"{implementation_name}{IMPLEMENTATION_REGISTRY_SUFFIX}",
        ),
        _get_entry(
            result.proxy,
            chain_id=chain_id,
            deployer=deployer,
            name=implementation_name,
            abi=result.implementation.abi,
        ),
    ]


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def _registry_data(entries: List[RegistryEntry]) -> Dict[str, Dict]:
    data = defaultdict(dict)
    for entry in sorted(entries, key=lambda e: (str(e.chain_id), e.name)):
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": sorted(entry.abi, key=lambda d: (d["type"], d.get("name", ""))),
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }
    return dict(data)


def _unmerged_filepath(filepath: Path, entries: List[RegistryEntry]) -> Path:
    """
    Side file named after the chain and the last block of the deployment it holds,
    e.g. oracle.97-1234.unmerged.json. An existing side file is never reused.
    """
    chain_ids = "-".join(sorted({str(entry.chain_id) for entry in entries}))
    last_block = max(int(entry.block_number) for entry in entries)
    stem = f"{filepath.stem}.{chain_ids}-{last_block}"
    candidate = filepath.with_name(f"{stem}.unmerged.json")
    copy = 1
    while candidate.exists():
        copy += 1
        candidate = filepath.with_name(f"{stem}-{copy}.unmerged.json")
    return candidate


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """
    Writes registry entries and returns the file they ended up in. Chains the registry
    does not record yet are merged into it; a chain it already records goes to its own
    unmerged side file, so an earlier deployment is never overwritten.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    data = _registry_data(entries)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        existing_data = _load_json(filepath)
        recorded_chains = sorted(set(existing_data) & set(data))
        if recorded_chains:
            filepath = _unmerged_filepath(filepath, entries)
            if not silent:
                print(
                    f"Chain {', '.join(recorded_chains)} is already in the registry.\n"
                    f"Writing this deployment to {filepath} instead."
                )
        else:
            if not silent:
                print(f"Adding chain {', '.join(data)} to registry at {filepath}.")
            data = {**existing_data, **data}
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_deployment(
    result: DeploymentResult, chain_id: ChainId, output_filepath: Path
) -> Path:
    """Records a completed oracle deployment in a registry file."""
    entries = registry_entries_from_deployment(result=result, chain_id=chain_id)
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath

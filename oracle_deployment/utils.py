import json
from pathlib import Path
from typing import Dict

import yaml
from eth_utils import is_address, to_checksum_address

from oracle_deployment.constants import ARTIFACTS_DIR, BYTES32_SIZE, MAX_IDENTIFIER_SIZE


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry artifact file."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def format_bytes32_string(text: str) -> bytes:
    """
    Encodes a short string as a NUL-padded bytes32 value.
    The encoded string must leave room for at least one trailing NUL byte.
    """
    encoded = text.encode("utf-8")
    if not encoded:
        raise ValueError("bytes32 string must not be empty")
    if len(encoded) > MAX_IDENTIFIER_SIZE:
        raise ValueError(
            f"bytes32 string '{text}' is {len(encoded)} bytes long; "
            f"at most {MAX_IDENTIFIER_SIZE} bytes are allowed"
        )
    return encoded.ljust(BYTES32_SIZE, b"\x00")


def parse_bytes32_string(value: bytes) -> str:
    """Decodes a NUL-padded bytes32 value back into a string."""
    if len(value) != BYTES32_SIZE:
        raise ValueError(f"Expected {BYTES32_SIZE} bytes, got {len(value)}")
    return value.rstrip(b"\x00").decode("utf-8")


def checksum_address(value: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address '{value}'")
    return to_checksum_address(value)

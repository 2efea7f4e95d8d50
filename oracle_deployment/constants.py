from pathlib import Path

import oracle_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(oracle_deployment.__file__).parent
PARAMS_DIR = DEPLOYMENT_DIR / "deployment_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
NETWORKS_FILEPATH = DEPLOYMENT_DIR / "networks.yml"
PROJECT_ROOT = DEPLOYMENT_DIR.parent
DOTENV_FILEPATH = PROJECT_ROOT / ".env"

#
# Networks
#

LOCAL_NETWORK = "local"
LOCAL_NETWORK_CHOICE = "ethereum:local:test"

# Passphrase used to encrypt imported deployer keys in the ape keystore
DEPLOYER_PASSPHRASE_ENVVAR = "ORACLE_DEPLOYER_PASSPHRASE"
DEPLOYER_ALIAS_PREFIX = "oracle-deployer"

#
# Contracts
#

ZERO_ADDRESS = "0x" + "0" * 40

ADMIN = "admin"
REGISTRY = "registry"
IMPLEMENTATION = "implementation"
PROXY = "proxy"

# role -> contract type name
DEFAULT_CONTRACTS = {
    ADMIN: "ProxyAdmin",
    REGISTRY: "PublisherRegistry",
    IMPLEMENTATION: "Oracle",
    PROXY: "TransparentUpgradeableProxy",
}

INITIALIZER_METHOD = "initialize"
IMPLEMENTATION_REGISTRY_SUFFIX = "Implementation"

# Fixed-width identifiers are bytes32 values with at least one trailing NUL
BYTES32_SIZE = 32
MAX_IDENTIFIER_SIZE = BYTES32_SIZE - 1

# EIP-170 runtime code ceiling and EIP-3860 init code ceiling
MAX_RUNTIME_CODE_SIZE = 24576
MAX_INITCODE_SIZE = 2 * MAX_RUNTIME_CODE_SIZE

#
# Confirmations
#

DEFAULT_CONFIRMATIONS = 1
CONFIRMATION_POLL_INTERVAL = 2  # seconds
CONFIRMATION_TIMEOUT = 300  # seconds

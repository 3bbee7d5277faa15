from pathlib import Path

import bridge_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(bridge_deployment.__file__).parent
CONFIG_DIR = DEPLOYMENT_DIR / "configs"
LEDGER_DIR = DEPLOYMENT_DIR / "deployments"

#
# Networks
#

LOCALHOST = "localhost"
SEPOLIA = "sepolia"
MAINNET = "mainnet"

SUPPORTED_BRIDGE_NETWORKS = [LOCALHOST, SEPOLIA, MAINNET]

LOCAL_NETWORKS = ["local", LOCALHOST]

#
# Contracts
#

BRIDGE_COMMITTEE = "BridgeCommittee"
BRIDGE_VAULT = "BridgeVault"
BRIDGE_LIMITER = "BridgeLimiter"
SUI_BRIDGE = "SuiBridge"

MOCK_TOKENS = {
    # ledger name -> (token name, symbol)
    "WETH": ("Wrapped Ether", "WETH"),
    "WBTC": ("Wrapped Bitcoin", "wBTC"),
    "USDC": ("USD Coin", "USDC"),
}

BRIDGE_TAG = "bridge"
MOCK_TAG = "mock"
DEPLOYMENT_TAGS = [MOCK_TAG, BRIDGE_TAG]

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"

UUPS = "uups"
TRANSPARENT = "transparent"
PROXY_KINDS = [UUPS, TRANSPARENT]
DEFAULT_INITIALIZER = "initialize"

# EIP1967 Implementation slot - https://eips.ethereum.org/EIPS/eip-1967#logic-contract-address
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

IMPLEMENTATION_METADATA_PREFIX = "implementationAddress: "

# Minimal Ownable interface, enough for the ownership handshake
OWNABLE_ABI = [
    {
        "type": "function",
        "name": "owner",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address", "internalType": "address"}],
    },
    {
        "type": "function",
        "name": "transferOwnership",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "newOwner", "type": "address", "internalType": "address"}],
        "outputs": [],
    },
]

import os
from dataclasses import dataclass
from typing import Optional

CELO_MAINNET = 42220
CELO_SEPOLIA = 11142220

# Alchemy reports networks as 'CELO_MAINNET', 'celo-mainnet', 'CELO_MAINNET_MAINNET', ...
ALCHEMY_NETWORKS = {
    "celo-mainnet": CELO_MAINNET,
    "celo-mainnet-mainnet": CELO_MAINNET,
    "celo-sepolia": CELO_SEPOLIA,
}

NETWORK_INFO = {
    CELO_MAINNET: {"name": "Celo Mainnet", "default": "https://forno.celo.org"},
    CELO_SEPOLIA: {"name": "Celo Sepolia", "default": "https://forno.celo-sepolia.celo-testnet.org"},
}

POOP_VAULT_ADDRESSES = {
    CELO_MAINNET: "0x5333e149dede89095566dbde28c8179d62a68016",
    CELO_SEPOLIA: "0x77e94a9BC69409150Ca3a407Da6383CC626e7CC8",
}


@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    decimals: int


# USDC uses 6 decimals on Celo
TOKENS = {
    CELO_MAINNET: TokenInfo(symbol="USDC", decimals=6),
    CELO_SEPOLIA: TokenInfo(symbol="USDC", decimals=6),
}


def normalize_network(network: str) -> str:
    return network.strip().lower().replace("_", "-")


def get_chain_id_from_network(network: Optional[str]) -> Optional[int]:
    """Map an Alchemy network identifier to a chain id, or None if unknown."""
    if not network or not isinstance(network, str):
        return None
    return ALCHEMY_NETWORKS.get(normalize_network(network))


def get_token_info(chain_id: int) -> Optional[TokenInfo]:
    return TOKENS.get(chain_id)


def get_vault_address(chain_id: int) -> Optional[str]:
    """PoopVault address for a chain; POOP_VAULT_ADDRESS_<chainId> overrides the deployment table."""
    return os.getenv(f"POOP_VAULT_ADDRESS_{chain_id}") or POOP_VAULT_ADDRESSES.get(chain_id)


def get_rpc_url(chain_id: int) -> str:
    """
    Get RPC URL for the given chain ID.
    """
    patterns = [f"RPC_URL_{chain_id}"]
    if chain_id == CELO_MAINNET:
        patterns.append("CELO_RPC_URL")
    patterns.append("RPC_URL")

    for pattern in patterns:
        url = os.getenv(pattern)
        if url:
            return url

    if chain_id in NETWORK_INFO:
        return NETWORK_INFO[chain_id]["default"]

    raise ValueError(
        f"No RPC URL configured for chain ID {chain_id}. "
        f"Tried environment variables: {patterns}."
    )

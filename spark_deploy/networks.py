"""
Network settings: chain ids, RPC endpoints, explorers, confirmation counts.

Settings live in ``config/networks.json``. RPC URLs are resolved from the
environment (``<NETWORK>_RPC_URL``) so that keys never land in the repo.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from web3 import Web3

from .errors import ConfigError

NETWORKS_PATH = Path("config/networks.json")

# Hardhat/Anvil, Ganache/Geth dev, eth-tester
LOCAL_CHAIN_IDS = frozenset({31337, 1337, 131277322940537})

DEFAULT_CONFIRMATIONS = 6
DEFAULT_DETERMINISTIC_CONFIRMATIONS = 15


@dataclass(frozen=True)
class NetworkSettings:
    name: str
    chain_id: int
    rpc_url: Optional[str] = None
    explorer: Optional[str] = None
    confirmations: int = DEFAULT_CONFIRMATIONS
    deterministic_confirmations: int = DEFAULT_DETERMINISTIC_CONFIRMATIONS

    @property
    def is_local(self) -> bool:
        return self.chain_id in LOCAL_CHAIN_IDS

    @classmethod
    def local(cls, name: str = "local", chain_id: int = 31337, rpc_url: Optional[str] = None):
        return cls(
            name=name,
            chain_id=chain_id,
            rpc_url=rpc_url,
            confirmations=0,
            deterministic_confirmations=0,
        )


def _rpc_url(name: str, entry: dict) -> Optional[str]:
    env_name = entry.get("rpc_url_env") or f"{name.upper()}_RPC_URL"
    return os.getenv(env_name) or entry.get("rpc_url")


def parse_network(name: str, entry: dict) -> NetworkSettings:
    """Build settings for one entry of networks.json."""
    chain_id = entry.get("chain_id")
    if not isinstance(chain_id, int) or isinstance(chain_id, bool):
        raise ConfigError(f"Network '{name}': chain_id must be an integer")

    local = chain_id in LOCAL_CHAIN_IDS
    confirmations = entry.get("confirmations", 0 if local else DEFAULT_CONFIRMATIONS)
    deterministic = entry.get(
        "deterministic_confirmations",
        0 if local else DEFAULT_DETERMINISTIC_CONFIRMATIONS,
    )
    for label, value in (("confirmations", confirmations), ("deterministic_confirmations", deterministic)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(f"Network '{name}': {label} must be a non-negative integer")

    return NetworkSettings(
        name=name,
        chain_id=chain_id,
        rpc_url=_rpc_url(name, entry),
        explorer=entry.get("explorer"),
        confirmations=confirmations,
        deterministic_confirmations=deterministic,
    )


def load_networks(path: Path = NETWORKS_PATH) -> Dict[str, NetworkSettings]:
    """Load every network from networks.json."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"{path} not found")

    with open(path) as f:
        networks = json.load(f)["networks"]

    return {name: parse_network(name, entry) for name, entry in networks.items()}


def get_network(name: str, path: Path = NETWORKS_PATH) -> NetworkSettings:
    networks = load_networks(path)
    if name not in networks:
        raise ConfigError(f"Unknown network: {name}. Available: {', '.join(networks)}")
    return networks[name]


def connect(settings: NetworkSettings, timeout: int = 30) -> Web3:
    """Connect to the network's RPC endpoint and check the chain id."""
    if not settings.rpc_url:
        raise ConfigError(
            f"No RPC URL for '{settings.name}'. Set {settings.name.upper()}_RPC_URL"
        )

    w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ConfigError(f"Failed to connect to {settings.rpc_url}")

    chain_id = w3.eth.chain_id
    if chain_id != settings.chain_id:
        raise ConfigError(
            f"Chain id mismatch for '{settings.name}': expected {settings.chain_id}, node reports {chain_id}"
        )
    return w3

#!/usr/bin/env python3
"""
Spark Block Explorer Verification Script

Verifies deployed contract source code on Etherscan-compatible block
explorers, using the addresses recorded in config/deployment-config.json.

Usage:
    python scripts/verify_on_explorer.py <network> [contract_name|all]

Environment variables required:
    ETHERSCAN_API_KEY   - For Ethereum mainnet/testnets
    POLYGONSCAN_API_KEY - For Polygon
    AVALANCHE_API_KEY   - For Avalanche/Fuji
    BASE_API_KEY        - For Base networks
"""

import sys

from dotenv import load_dotenv
from eth_abi import encode

from spark_deploy.artifacts import CONTRACT_SOURCES, ArtifactLoader
from spark_deploy.errors import DeploymentError
from spark_deploy.explorer import EXPLORER_APIS, verify_contract
from spark_deploy.networks import get_network
from spark_deploy.store import ConfigStore

load_dotenv()


def constructor_args(config, addresses: dict, contract_name: str) -> list:
    """Rebuild the constructor arguments a contract was deployed with."""
    section = config.require(contract_name)
    if contract_name == "ERC6551Manager":
        return [
            section.registry,
            section.tokenbound_account_proxy,
            section.tokenbound_account_implementation,
            encode(["uint256"], [section.salt]),
            section.owner,
        ]
    if contract_name in ("SparkIdentityTokenFactory", "SparkRegistryFactory"):
        return [section.owner]
    if contract_name == "SparkIdentity":
        return [section.name, section.symbol, section.owner]
    if contract_name == "SparkRegistry":
        return [
            addresses["SparkIdentity"],
            section.reward_token_address,
            section.beneficiary_address,
            section.owner,
        ]
    raise DeploymentError(f"Unknown contract: {contract_name}")


def verify_one(network, config, artifacts, contract_name: str) -> bool:
    addresses = config.addresses()
    address = addresses.get(contract_name)
    if not address:
        print(f"[-] No {contract_name} address recorded for {network.name}")
        print(f"    Make sure you have deployed the contract first.")
        return False

    args = constructor_args(config, addresses, contract_name)
    return verify_contract(network, address, artifacts.get(contract_name), args)


def verify_all_contracts(network, config, artifacts) -> dict:
    """Verify all deployed contracts for a network."""
    print(f"\n{'='*60}")
    print(f"Verifying All Contracts - {network.name.upper()}")
    print(f"{'='*60}\n")

    results = {}
    for contract_name in config.addresses():
        print(f"\n--- {contract_name} ---")
        try:
            success = verify_one(network, config, artifacts, contract_name)
            results[contract_name] = "VERIFIED" if success else "FAILED"
        except DeploymentError as e:
            results[contract_name] = f"ERROR: {e}"

    print(f"\n{'='*60}")
    print("Verification Summary")
    print(f"{'='*60}")
    for name, status in results.items():
        print(f"  {name:30} {status}")

    return results


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/verify_on_explorer.py <network> [contract_name]")
        print(f"Supported networks: {', '.join(EXPLORER_APIS.keys())}")
        print(f"Available contracts: {', '.join(CONTRACT_SOURCES.keys())}")
        print("\nUse 'all' as contract_name to verify all contracts")
        sys.exit(1)

    contract_name = sys.argv[2] if len(sys.argv) > 2 else "all"

    try:
        network = get_network(sys.argv[1])
        config = ConfigStore().network_config(network.name)
        artifacts = ArtifactLoader()

        if contract_name.lower() == "all":
            results = verify_all_contracts(network, config, artifacts)
            success = bool(results) and all(r == "VERIFIED" for r in results.values())
        else:
            success = verify_one(network, config, artifacts, contract_name)
    except DeploymentError as e:
        print(f"[-] {e}")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Spark Deployment Script

Deploys the Spark contracts to one network and records every address in
config/deployment-config.json. Safe to re-run: contracts that already
have code at their recorded (or predicted) address are reused.

Usage:
    python scripts/deploy.py <network> [--tags TAG ...] [--no-verify] [--redeploy]
"""

import sys

from dotenv import load_dotenv

from spark_deploy.artifacts import ArtifactLoader
from spark_deploy.chain import ChainClient, load_signers
from spark_deploy.errors import DeploymentError
from spark_deploy.networks import NetworkSettings, connect, get_network
from spark_deploy.pipeline import DeploymentContext
from spark_deploy.steps import build_pipeline
from spark_deploy.store import DEFAULT_CONFIG_PATH, ConfigStore

load_dotenv()


def build_context(network: NetworkSettings, store: ConfigStore, verify: bool, redeploy: bool):
    """Connect, load signers and the network's config section."""
    config = store.network_config(network.name)

    w3 = connect(network)
    print(f"[+] Connected to {network.name} (Chain ID: {w3.eth.chain_id})")

    deployer, factory_deployer = load_signers(w3, network)
    print(f"    Deployer:         {deployer.address}")
    print(f"    Factory deployer: {factory_deployer.address}")

    balance = w3.eth.get_balance(deployer.address)
    print(f"    Deployer balance: {w3.from_wei(balance, 'ether')} native")
    if balance == 0 and not network.is_local:
        print("[!] Deployer has no funds, transactions will fail")

    return DeploymentContext(
        network=network,
        config=config,
        store=store,
        deployer=ChainClient(w3, deployer, confirmations=network.confirmations),
        factory_deployer=ChainClient(w3, factory_deployer, confirmations=network.confirmations),
        artifacts=ArtifactLoader(),
        verify=verify,
        redeploy=redeploy,
    )


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Deploy the Spark contracts")
    parser.add_argument("network", help="Network name from config/networks.json")
    parser.add_argument("--tags", nargs="+", default=["all"],
                        help="Deploy only tasks with these tags or names (and what they require)")
    parser.add_argument("--no-verify", action="store_true", help="Skip block explorer verification")
    parser.add_argument("--redeploy", action="store_true",
                        help="Deploy again even where code already exists")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Deployment config file")
    args = parser.parse_args()

    print(f"\n{'='*60}")
    print(f"Spark Deployment - {args.network.upper()}")
    print(f"{'='*60}\n")

    try:
        network = get_network(args.network)
        store = ConfigStore(args.config)
        context = build_context(network, store, verify=not args.no_verify, redeploy=args.redeploy)
        addresses = build_pipeline().run(context, tags=args.tags)
    except DeploymentError as e:
        print(f"\n[-] Deployment failed: {e}")
        sys.exit(1)

    print(f"\n{'='*60}")
    print("Deployment Summary")
    print(f"{'='*60}")
    for name, address in addresses.items():
        print(f"  {name:30} {address}")
    print(f"\n[+] Addresses saved to {args.config}")

    print("\nNext steps:")
    print(f"1. Run: python scripts/verify_deployment.py {args.network}")
    if not network.is_local and args.no_verify:
        print(f"2. Run: python scripts/verify_on_explorer.py {args.network} all")


if __name__ == "__main__":
    main()

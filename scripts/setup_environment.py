#!/usr/bin/env python3
"""
Spark Environment Setup Script

Validates environment configuration, the deployment config and network
connectivity. Run this before deploying to ensure everything is
configured correctly.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from spark_deploy.artifacts import CONTRACT_SOURCES, ArtifactLoader
from spark_deploy.chain import load_signers
from spark_deploy.create3 import create_address
from spark_deploy.errors import DeploymentError
from spark_deploy.explorer import explorer_for
from spark_deploy.networks import connect, get_network
from spark_deploy.steps import FACTORY_NONCES
from spark_deploy.store import ConfigStore

# Load environment variables
load_dotenv()


def check_env_file():
    """Check if .env file exists"""
    if not Path(".env").exists():
        print("[WARN] .env file not found")
        print("       Copy .env.example to .env and fill in:")
        print("       PRIVATE_KEY=your_deployer_key")
        print("       FACTORY_DEPLOYER_PRIVATE_KEY=your_factory_deployer_key")
        return False
    print("[OK] .env file found")
    return True


def _valid_key(name: str) -> bool:
    key = os.getenv(name)
    if not key:
        print(f"[WARN] {name} not set")
        print("       Required for testnet/mainnet deployments")
        return False

    expected = 66 if key.startswith("0x") else 64
    if len(key) != expected:
        print(f"[ERROR] {name} has invalid length")
        return False

    print(f"[OK] {name} is configured")
    return True


def check_private_keys():
    """Both keys must be set and must differ"""
    ok = _valid_key("PRIVATE_KEY") & _valid_key("FACTORY_DEPLOYER_PRIVATE_KEY")
    if ok and os.getenv("PRIVATE_KEY").lower() == os.getenv("FACTORY_DEPLOYER_PRIVATE_KEY").lower():
        print("[ERROR] Factory deployer and deployer should not be same")
        return False
    return ok


def check_explorer_api_key(network):
    """Check the block explorer API key for verification"""
    config = explorer_for(network)
    if not config:
        print(f"[WARN] No block explorer configured for {network.name}")
        return True
    if not os.getenv(config["api_key_env"]):
        print(f"[WARN] {config['api_key_env']} not set, contracts will not be verified")
        return False
    print(f"[OK] {config['api_key_env']} is configured")
    return True


def check_deployment_config(network_name: str):
    """Parse the network's deployment config"""
    try:
        config = ConfigStore().network_config(network_name)
    except DeploymentError as e:
        print(f"[ERROR] {e}")
        return False

    print(f"[OK] Deployment config for {network_name} is valid")
    for name, address in config.addresses().items():
        print(f"     {name}: {address}")
    return True


def check_contract_compilation():
    """Verify contracts compile successfully"""
    print("Compiling contracts...")
    loader = ArtifactLoader()
    ok = True
    for name in CONTRACT_SOURCES:
        try:
            artifact = loader.get(name)
        except Exception as e:
            print(f"[ERROR] {name}: compilation failed: {e}")
            ok = False
            continue
        size = (len(artifact.bytecode) - 2) // 2
        print(f"[OK] {name}: {size:,} bytes")
    return ok


def check_network(network):
    """Test connectivity, balances and factory-deployer nonce"""
    print(f"Testing connection to {network.name}...")
    try:
        w3 = connect(network, timeout=10)
        deployer, factory_deployer = load_signers(w3, network)
    except DeploymentError as e:
        print(f"[ERROR] {e}")
        return False

    print(f"[OK] Connected to {network.name}")
    print(f"     Chain ID: {w3.eth.chain_id}")
    print(f"     Block: {w3.eth.block_number:,}")

    ok = True
    for label, signer in (("Deployer", deployer), ("Factory deployer", factory_deployer)):
        balance = w3.from_wei(w3.eth.get_balance(signer.address), "ether")
        print(f"{label}: {signer.address}")
        print(f"Balance: {balance:.6f}")
        if balance == 0:
            print(f"[WARN] {label} has no funds")
            ok = False

    nonce = w3.eth.get_transaction_count(factory_deployer.address)
    print(f"Factory deployer nonce: {nonce}")
    for name, expected in FACTORY_NONCES.items():
        address = create_address(factory_deployer.address, expected)
        if nonce > expected:
            print(f"[INFO] {name} expected at {address} (nonce {expected} already used)")
        else:
            print(f"[INFO] {name} will deploy to {address}")
    if nonce > max(FACTORY_NONCES.values()) + 1:
        print("[WARN] Factory deployer has sent unrelated transactions; "
              "factory addresses may differ from other chains")

    return ok


def main():
    """Run all environment checks"""
    print("=" * 50)
    print("Spark Environment Setup Check")
    print("=" * 50)
    print()

    network_name = sys.argv[1] if len(sys.argv) > 1 else "local"

    try:
        network = get_network(network_name)
    except DeploymentError as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    results = {
        "env_file": check_env_file(),
        "deployment_config": check_deployment_config(network_name),
        "contracts": check_contract_compilation(),
    }

    print()

    if not network.is_local:
        results["private_keys"] = check_private_keys()
        results["explorer_api_key"] = check_explorer_api_key(network)

    print()
    results["network"] = check_network(network)

    # Summary
    print()
    print("=" * 50)
    print("Summary")
    print("=" * 50)

    all_ok = all(results.values())
    for check, passed in results.items():
        status = "[OK]" if passed else "[FAIL]"
        print(f"  {status} {check}")

    print()
    if all_ok:
        print("Environment is ready for deployment!")
        print(f"Run: python scripts/deploy.py {network_name}")
    else:
        print("Some checks failed. Please fix the issues above.")
        sys.exit(1)


if __name__ == "__main__":
    main()

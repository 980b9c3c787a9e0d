#!/usr/bin/env python3
"""
Spark Post-Deployment Verification Script

Checks that the contracts recorded in config/deployment-config.json are
deployed, sit at their deterministic addresses and are wired together.

Usage:
    python scripts/verify_deployment.py <network> [deployer_address]
"""

import sys

from dotenv import load_dotenv
from web3 import Web3

from spark_deploy.artifacts import ArtifactLoader
from spark_deploy.chain import load_signers
from spark_deploy.configure import MINTER_ROLE
from spark_deploy.create3 import compute_salt
from spark_deploy.errors import DeploymentError
from spark_deploy.networks import connect, get_network
from spark_deploy.store import ConfigStore

load_dotenv()


def verify_code_exists(w3, addresses: dict):
    """Every recorded address must hold contract code"""
    print("Checking contract code...")
    ok = True
    for name, address in addresses.items():
        code = w3.eth.get_code(address)
        if len(code) == 0:
            print(f"[ERROR] {name}: no contract code at {address}")
            ok = False
        else:
            print(f"[OK] {name}: {len(code):,} bytes at {address}")
    return ok


def verify_deterministic_address(w3, artifacts, addresses: dict, name: str, factory_name: str,
                                 deployer: str, salt_nonce: int):
    """Recorded address must match the factory's prediction for the salt"""
    if name not in addresses or factory_name not in addresses:
        print(f"[WARN] {name}: not deployed, skipping address check")
        return False

    factory = w3.eth.contract(address=addresses[factory_name], abi=artifacts.get(factory_name).abi)
    salt = compute_salt(deployer, salt_nonce)
    predicted = factory.functions.computeAddress(salt).call()

    if predicted.lower() != addresses[name].lower():
        print(f"[ERROR] {name}: recorded {addresses[name]}, factory predicts {predicted}")
        return False

    print(f"[OK] {name} is at its deterministic address")
    return True


def verify_wiring(w3, artifacts, config, addresses: dict):
    """Registry and identity reference each other as configured"""
    print()
    print("Checking configuration...")

    if "SparkIdentity" not in addresses or "SparkRegistry" not in addresses:
        print("[WARN] SparkIdentity or SparkRegistry missing, skipping")
        return False

    identity = w3.eth.contract(address=addresses["SparkIdentity"], abi=artifacts.get("SparkIdentity").abi)
    registry = w3.eth.contract(address=addresses["SparkRegistry"], abi=artifacts.get("SparkRegistry").abi)
    checks = []

    linked = registry.functions.sparkIdentity().call()
    checks.append(linked.lower() == addresses["SparkIdentity"].lower())
    print(f"[{'OK' if checks[-1] else 'ERROR'}] Registry identity: {linked}")

    minter = identity.functions.hasRole(MINTER_ROLE, addresses["SparkRegistry"]).call()
    checks.append(minter)
    print(f"[{'OK' if minter else 'ERROR'}] Registry holds MINTER_ROLE: {minter}")

    manager = registry.functions.erc6551Manager().call()
    if "ERC6551Manager" in addresses:
        checks.append(manager.lower() == addresses["ERC6551Manager"].lower())
        print(f"[{'OK' if checks[-1] else 'ERROR'}] ERC6551 manager: {manager}")
    else:
        print(f"[INFO] ERC6551 manager: {manager}")

    registry_config = config.spark_registry
    if registry_config and registry_config.is_payment_enabled:
        enabled = registry.functions.isPaymentEnabled().call()
        amount = registry.functions.nativePaymentAmount().call()
        print(f"[INFO] Payment enabled: {enabled}, native amount: {Web3.from_wei(amount, 'ether')}")

    if registry_config and registry_config.is_rewards_enabled:
        per_mint = registry.functions.rewardsPerMint().call()
        max_per_user = registry.functions.maxRewardsPerUser().call()
        print(f"[INFO] Rewards per mint: {Web3.from_wei(per_mint, 'ether')}, "
              f"max per user: {Web3.from_wei(max_per_user, 'ether')}")

    return all(checks)


def main():
    """Main verification function"""
    print("=" * 50)
    print("Spark Deployment Verification")
    print("=" * 50)
    print()

    network_name = sys.argv[1] if len(sys.argv) > 1 else "local"
    print(f"Network: {network_name}")
    print()

    try:
        network = get_network(network_name)
        config = ConfigStore().network_config(network_name)
        w3 = connect(network)
    except DeploymentError as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    print(f"[OK] Connected to network (Chain ID: {w3.eth.chain_id})")
    print()

    addresses = config.addresses()
    if not addresses:
        print("[ERROR] No deployed contracts recorded. Run scripts/deploy.py first")
        sys.exit(1)

    artifacts = ArtifactLoader()
    # Salts are derived from the deployer address
    if len(sys.argv) > 2:
        deployer = Web3.to_checksum_address(sys.argv[2])
    else:
        try:
            deployer = load_signers(w3, network)[0].address
        except DeploymentError as e:
            print(f"[ERROR] {e}")
            print("        Pass the deployer address as the second argument")
            sys.exit(1)

    results = {"code_exists": verify_code_exists(w3, addresses)}

    print()
    print("Checking deterministic addresses...")
    if config.spark_identity:
        results["identity_address"] = verify_deterministic_address(
            w3, artifacts, addresses, "SparkIdentity", "SparkIdentityTokenFactory",
            deployer, config.spark_identity.salt_nonce,
        )
    if config.spark_registry:
        results["registry_address"] = verify_deterministic_address(
            w3, artifacts, addresses, "SparkRegistry", "SparkRegistryFactory",
            deployer, config.spark_registry.salt_nonce,
        )

    results["wiring"] = verify_wiring(w3, artifacts, config, addresses)

    print()
    print("=" * 50)
    print("Verification Summary")
    print("=" * 50)

    all_ok = all(results.values())
    for check, passed in results.items():
        status = "[OK]" if passed else "[FAIL]"
        print(f"  {status} {check}")

    print()
    if all_ok:
        print("Deployment verification PASSED!")
    else:
        print("Deployment verification FAILED. See the checks above.")
        sys.exit(1)


if __name__ == "__main__":
    main()

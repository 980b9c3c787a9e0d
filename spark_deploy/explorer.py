"""
Block explorer verification (Etherscan-compatible APIs).

Submits contract sources with their ABI-encoded constructor arguments and
polls the verification status. Local chains are skipped without any HTTP
call. Verification never changes chain state, so failures are reported to
the caller instead of aborting a deployment.
"""

import os
import time
from typing import Optional, Sequence

import requests

from .artifacts import Artifact
from .errors import VerificationError
from .networks import NetworkSettings

# Block explorer API configurations
EXPLORER_APIS = {
    # Ethereum
    "ethereum": {
        "name": "Etherscan",
        "api_url": "https://api.etherscan.io/api",
        "explorer_url": "https://etherscan.io",
        "api_key_env": "ETHERSCAN_API_KEY",
    },
    "sepolia": {
        "name": "Etherscan Sepolia",
        "api_url": "https://api-sepolia.etherscan.io/api",
        "explorer_url": "https://sepolia.etherscan.io",
        "api_key_env": "ETHERSCAN_API_KEY",
    },
    "goerli": {
        "name": "Etherscan Goerli",
        "api_url": "https://api-goerli.etherscan.io/api",
        "explorer_url": "https://goerli.etherscan.io",
        "api_key_env": "ETHERSCAN_API_KEY",
    },
    # Polygon
    "polygon": {
        "name": "Polygonscan",
        "api_url": "https://api.polygonscan.com/api",
        "explorer_url": "https://polygonscan.com",
        "api_key_env": "POLYGONSCAN_API_KEY",
    },
    "mumbai": {
        "name": "Polygonscan Mumbai",
        "api_url": "https://api-testnet.polygonscan.com/api",
        "explorer_url": "https://mumbai.polygonscan.com",
        "api_key_env": "POLYGONSCAN_API_KEY",
    },
    # Avalanche
    "avalanche": {
        "name": "Snowtrace",
        "api_url": "https://api.snowtrace.io/api",
        "explorer_url": "https://snowtrace.io",
        "api_key_env": "AVALANCHE_API_KEY",
    },
    "fuji": {
        "name": "Snowtrace Fuji",
        "api_url": "https://api-testnet.snowtrace.io/api",
        "explorer_url": "https://testnet.snowtrace.io",
        "api_key_env": "AVALANCHE_API_KEY",
    },
    # Base
    "base": {
        "name": "Basescan",
        "api_url": "https://api.basescan.org/api",
        "explorer_url": "https://basescan.org",
        "api_key_env": "BASE_API_KEY",
    },
    "baseSepolia": {
        "name": "Basescan Sepolia",
        "api_url": "https://api-sepolia.basescan.org/api",
        "explorer_url": "https://sepolia.basescan.org",
        "api_key_env": "BASE_API_KEY",
    },
    "baseGoerli": {
        "name": "Basescan Goerli",
        "api_url": "https://api-goerli.basescan.org/api",
        "explorer_url": "https://goerli.basescan.org",
        "api_key_env": "BASE_API_KEY",
    },
}


def explorer_for(network: NetworkSettings) -> Optional[dict]:
    return EXPLORER_APIS.get(network.explorer or network.name)


def submit_verification(
    config: dict,
    contract_address: str,
    artifact: Artifact,
    constructor_args: bytes = b"",
) -> Optional[str]:
    """Submit contract for verification. Returns the GUID, or None if already verified."""
    api_key = os.getenv(config["api_key_env"])
    if not api_key:
        raise VerificationError(f"Missing API key. Set {config['api_key_env']} environment variable.")
    if not artifact.source:
        raise VerificationError(f"No source available for {artifact.name}")

    print(f"[*] Submitting verification to {config['name']}...")
    print(f"    Contract: {artifact.name} at {contract_address}")
    print(f"    Compiler: Vyper {artifact.compiler_version}")

    data = {
        "apikey": api_key,
        "module": "contract",
        "action": "verifysourcecode",
        "contractaddress": contract_address,
        "sourceCode": artifact.source,
        "codeformat": "vyper-single-file",
        "contractname": artifact.name,
        "compilerversion": artifact.compiler_version,
        "optimizationUsed": "1",
        "constructorArguements": constructor_args.hex(),  # Note: Etherscan has a typo in their API
        "licenseType": "3",  # MIT License
    }

    try:
        response = requests.post(config["api_url"], data=data, timeout=60)
        response.raise_for_status()
        result = response.json()
    except requests.RequestException as e:
        raise VerificationError(f"API request failed: {e}")

    if result.get("status") == "1":
        guid = result.get("result")
        print(f"[+] Verification submitted. GUID: {guid}")
        return guid

    error_msg = str(result.get("result", "Unknown error"))
    if "already verified" in error_msg.lower():
        print(f"[*] Contract is already verified!")
        return None
    if "unable to locate" in error_msg.lower():
        raise VerificationError(
            "Contract not found. It may take a few minutes for the contract to be indexed."
        )
    raise VerificationError(f"Verification failed: {error_msg}")


def check_verification_status(config: dict, guid: str, max_attempts: int = 10,
                              interval: float = 5.0) -> bool:
    """Check verification status until complete or timeout."""
    api_key = os.getenv(config["api_key_env"])

    print(f"[*] Checking verification status...")

    for attempt in range(1, max_attempts + 1):
        time.sleep(interval)

        try:
            response = requests.get(
                config["api_url"],
                params={
                    "apikey": api_key,
                    "module": "contract",
                    "action": "checkverifystatus",
                    "guid": guid,
                },
                timeout=30,
            )
            response.raise_for_status()
            result = response.json()
        except requests.RequestException as e:
            print(f"    Attempt {attempt}/{max_attempts}: Request failed - {e}")
            continue

        status = str(result.get("result", ""))

        if result.get("status") == "1":
            print(f"[+] Verification successful!")
            return True
        elif "pending" in status.lower():
            print(f"    Attempt {attempt}/{max_attempts}: Pending...")
        elif "fail" in status.lower():
            print(f"[-] Verification failed: {status}")
            return False
        else:
            print(f"    Attempt {attempt}/{max_attempts}: {status}")

    print(f"[-] Verification check timed out after {max_attempts} attempts")
    return False


def verify_contract(network: NetworkSettings, contract_address: str, artifact: Artifact,
                    constructor_args: Sequence = (), interval: float = 5.0) -> bool:
    """Verify one deployed contract. Local chains are skipped."""
    if network.is_local:
        return True

    config = explorer_for(network)
    if not config:
        print(f"[!] No block explorer configured for {network.name}, skipping verification")
        return False

    try:
        guid = submit_verification(
            config,
            contract_address,
            artifact,
            artifact.encode_constructor_args(constructor_args),
        )
    except VerificationError as e:
        print(f"[-] {e}")
        return False

    if guid is None:
        return True

    success = check_verification_status(config, guid, interval=interval)
    if success:
        print(f"    {config['explorer_url']}/address/{contract_address}#code")
    return success

"""
Client for the deterministic deployer factory.

Predicted addresses are checked three ways: the off-chain CREATE3 formula,
the factory's own ``computeAddress`` and the address observed after the
deployment. Any disagreement is fatal.
"""

from dataclasses import dataclass
from typing import Optional

from web3 import Web3
from web3.logs import DISCARD

from .chain import ChainClient
from .create3 import create3_address
from .errors import AddressMismatchError


@dataclass(frozen=True)
class DeploymentResult:
    address: str
    salt: bytes
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None


class DeterministicDeployer:

    def __init__(self, client: ChainClient, address: str, abi: list):
        self.client = client
        self.address = Web3.to_checksum_address(address)
        self.abi = abi
        self.contract = client.contract(self.address, abi)
        self._has_event = any(
            item.get("type") == "event" and item.get("name") == "ContractDeployed" for item in abi
        )

    def predict_address(self, salt: bytes) -> str:
        return create3_address(self.address, salt)

    def compute_address(self, salt: bytes) -> str:
        """Ask the factory where ``salt`` deploys to."""
        return Web3.to_checksum_address(self.client.call(self.contract.functions.computeAddress(salt)))

    def checked_address(self, salt: bytes) -> str:
        """On-chain prediction, required to agree with the off-chain one."""
        predicted = self.compute_address(salt)
        expected = self.predict_address(salt)
        if predicted != expected:
            raise AddressMismatchError(
                f"Factory {self.address} predicts {predicted} for salt 0x{salt.hex()}, "
                f"CREATE3 derivation gives {expected}"
            )
        return predicted

    def is_deployed(self, salt: bytes) -> bool:
        return self.client.has_code(self.checked_address(salt))

    def deterministic_deploy(self, salt: bytes, bytecode: bytes, value: int = 0,
                             confirmations: Optional[int] = None) -> DeploymentResult:
        """Deploy ``bytecode`` (creation code + encoded args) under ``salt``."""
        predicted = self.checked_address(salt)
        print(f"    Deterministic address: {predicted}")

        receipt = self.client.send(
            self.contract.functions.deterministicDeploy(value, salt, bytecode),
            value=value,
            confirmations=confirmations,
        )

        if self._has_event:
            events = self.contract.events.ContractDeployed().process_receipt(receipt, errors=DISCARD)
            for event in events:
                actual = Web3.to_checksum_address(event["args"]["deployed"])
                if actual != predicted:
                    raise AddressMismatchError(
                        f"Factory deployed to {actual}, predicted {predicted}"
                    )

        if not self.client.has_code(predicted):
            raise AddressMismatchError(f"No contract code at predicted address {predicted}")

        return DeploymentResult(
            address=predicted,
            salt=salt,
            transaction_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
        )

"""
Chain access for the deployment tasks.

Wraps a Web3 connection and one signing account. Every submission waits for
its receipt and then for the configured number of block confirmations
before the result is trusted. Transport failures are retried with backoff;
on-chain reverts are classified and raised, never retried.
"""

import os
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import requests
from eth_account import Account
from web3 import Web3

from .errors import ChainError, ConfigError, TransactionReverted, revert_error_from
from .networks import NetworkSettings

# Failures where the request may be repeated safely
TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)

# Node answers to a rebroadcast of a transaction it already holds
ALREADY_SUBMITTED_MARKERS = ("already known", "known transaction", "nonce too low")


def with_retries(func: Callable, *args, attempts: int = 3, backoff: float = 1.0,
                 retry_on: Tuple[type, ...] = TRANSIENT_ERRORS, **kwargs):
    """Call ``func``, retrying transient failures with exponential backoff."""
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except retry_on as e:
            if attempt == attempts:
                raise
            delay = backoff * 2 ** (attempt - 1)
            print(f"    Attempt {attempt}/{attempts}: RPC request failed - {e}")
            print(f"    Retrying in {delay:.1f}s...")
            time.sleep(delay)


@dataclass(frozen=True)
class Signer:
    """An account that sends transactions: unlocked on the node, or keyed locally."""

    address: str
    private_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_key(cls, private_key: str) -> "Signer":
        return cls(address=Account.from_key(private_key).address, private_key=private_key)


def load_signers(w3: Web3, network: NetworkSettings) -> Tuple[Signer, Signer]:
    """
    Return (deployer, factory_deployer).

    Factories must come from a dedicated key so that its nonce, and with it
    the factory addresses, stay identical on every chain.
    """
    private_key = os.getenv("PRIVATE_KEY")
    factory_key = os.getenv("FACTORY_DEPLOYER_PRIVATE_KEY")

    if private_key and factory_key:
        if private_key.lower() == factory_key.lower():
            raise ConfigError("Factory deployer and deployer should not be same")
        return Signer.from_key(private_key), Signer.from_key(factory_key)

    if network.is_local:
        accounts = w3.eth.accounts
        if len(accounts) < 2:
            raise ConfigError("Local node must expose at least two unlocked accounts")
        return Signer(accounts[0]), Signer(accounts[1])

    raise ConfigError(
        f"PRIVATE_KEY and FACTORY_DEPLOYER_PRIVATE_KEY must be set to deploy to {network.name}"
    )


class ChainClient:
    """Sends transactions for one signer and waits for confirmations."""

    def __init__(self, w3: Web3, signer: Signer, confirmations: int = 0,
                 receipt_timeout: int = 300, poll_interval: float = 2.0,
                 confirmation_timeout: float = 1800, retries: int = 3, backoff: float = 1.0):
        self.w3 = w3
        self.signer = signer
        self.confirmations = confirmations
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.confirmation_timeout = confirmation_timeout
        self.retries = retries
        self.backoff = backoff

    @property
    def address(self) -> str:
        return self.signer.address

    def _retry(self, func, *args, retry_on=TRANSIENT_ERRORS, **kwargs):
        return with_retries(func, *args, attempts=self.retries, backoff=self.backoff,
                            retry_on=retry_on, **kwargs)

    def contract(self, address: str, abi: list):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def call(self, fn):
        """Run a view call."""
        try:
            return self._retry(fn.call, {"from": self.address})
        except TRANSIENT_ERRORS:
            raise
        except Exception as e:
            error = revert_error_from(e)
            if error is None:
                raise
            raise error from e

    def code_at(self, address: str) -> bytes:
        return bytes(self._retry(self.w3.eth.get_code, Web3.to_checksum_address(address)))

    def has_code(self, address: Optional[str]) -> bool:
        return bool(address) and len(self.code_at(address)) > 0

    def nonce(self, address: Optional[str] = None) -> int:
        return self._retry(self.w3.eth.get_transaction_count, address or self.address)

    def block_number(self) -> int:
        return self._retry(lambda: self.w3.eth.block_number)

    def _submit(self, fn, value: int):
        tx_params = {"from": self.address}
        if value:
            tx_params["value"] = value

        if self.signer.private_key is None:
            # The node signs and picks the nonce, so a repeat could mine a second transaction
            return fn.transact(tx_params)

        tx_params["nonce"] = self._retry(self.w3.eth.get_transaction_count, self.address, "pending")
        tx_params["chainId"] = self._retry(lambda: self.w3.eth.chain_id)
        tx = self._retry(fn.build_transaction, tx_params)
        signed_tx = self.w3.eth.account.sign_transaction(tx, self.signer.private_key)
        return self._broadcast(signed_tx)

    def _broadcast(self, signed_tx):
        """
        Send signed bytes, rebroadcasting the same bytes on transport errors.

        A lost response may hide a transaction the node already accepted. The
        rebroadcast then carries the same hash and nonce, and the node's
        "already known" or "nonce too low" answer means it is in flight.
        """
        for attempt in range(1, self.retries + 1):
            try:
                return self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            except TRANSIENT_ERRORS as e:
                if attempt == self.retries:
                    raise
                delay = self.backoff * 2 ** (attempt - 1)
                print(f"    Attempt {attempt}/{self.retries}: broadcast failed - {e}")
                print(f"    Rebroadcasting in {delay:.1f}s...")
                time.sleep(delay)
            except Exception as e:
                message = str(e).lower()
                if attempt > 1 and any(marker in message for marker in ALREADY_SUBMITTED_MARKERS):
                    print(f"    Transaction {Web3.to_hex(signed_tx.hash)} already with the node")
                    return signed_tx.hash
                raise

    def send(self, fn, value: int = 0, confirmations: Optional[int] = None):
        """Submit a contract function or constructor and return its receipt."""
        try:
            tx_hash = self._submit(fn, value)
        except TRANSIENT_ERRORS:
            raise
        except Exception as e:
            error = revert_error_from(e)
            if error is None:
                raise
            raise error from e

        receipt = self._retry(self.w3.eth.wait_for_transaction_receipt, tx_hash,
                              timeout=self.receipt_timeout)
        if receipt["status"] != 1:
            raise TransactionReverted(f"Transaction {Web3.to_hex(tx_hash)} reverted")

        self.wait_for_confirmations(receipt, self.confirmations if confirmations is None else confirmations)
        return receipt

    def deploy(self, artifact, *args, confirmations: Optional[int] = None):
        """Plain constructor deployment. Returns (address, receipt)."""
        factory = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        receipt = self.send(factory.constructor(*args), confirmations=confirmations)
        address = receipt["contractAddress"]
        if not address:
            raise ChainError(f"{artifact.name}: receipt has no contract address")
        return Web3.to_checksum_address(address), receipt

    def wait_for_confirmations(self, receipt, confirmations: int) -> int:
        """Block until ``confirmations`` blocks, the receipt's included, are mined."""
        if confirmations <= 0:
            return receipt["blockNumber"]

        target = receipt["blockNumber"] + confirmations - 1
        deadline = time.monotonic() + self.confirmation_timeout
        printed = False

        while True:
            current = self.block_number()
            if current >= target:
                return current
            if time.monotonic() > deadline:
                raise ChainError(
                    f"Timed out waiting for {confirmations} confirmations "
                    f"(block {current}, need {target})"
                )
            if not printed:
                print(f"    Waiting for {confirmations} confirmations...")
                printed = True
            time.sleep(self.poll_interval)

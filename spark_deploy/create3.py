"""
Deterministic (CREATE3-style) address derivation, computed off-chain.

The factory creates a fixed proxy with CREATE2 from the salt, and the proxy
creates the target with CREATE at nonce 1. The target address therefore
depends only on the factory address and the salt, never on the bytecode,
which is what makes the same salt land on the same address on every chain
where the factory lives at the same address.
"""

from typing import Sequence, Union

import rlp
from eth_abi import encode
from eth_utils import (
    is_address,
    keccak,
    to_bytes,
    to_canonical_address,
    to_checksum_address,
)

PROXY_INITCODE = bytes.fromhex("67363d3d37363d34f03d5260086018f3")
PROXY_INITCODE_HASH = keccak(PROXY_INITCODE)

MAX_UINT256 = 2**256 - 1

BytesLike = Union[bytes, str]


def _require_address(value: str, label: str) -> str:
    if not is_address(value):
        raise ValueError(f"{label} is not a valid address: {value!r}")
    return to_checksum_address(value)


def _as_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return to_bytes(hexstr=value)
    return bytes(value)


def compute_salt(deployer: str, nonce: int) -> bytes:
    """keccak256(abi.encode(deployer, nonce)), identical to the on-chain form."""
    deployer = _require_address(deployer, "deployer")
    if not isinstance(nonce, int) or isinstance(nonce, bool) or not 0 <= nonce <= MAX_UINT256:
        raise ValueError(f"nonce must be a uint256, got {nonce!r}")
    return keccak(encode(["address", "uint256"], [deployer, nonce]))


def create_address(deployer: str, nonce: int) -> str:
    """Address of a contract created with CREATE by ``deployer`` at ``nonce``."""
    sender = to_canonical_address(_require_address(deployer, "deployer"))
    return to_checksum_address(keccak(rlp.encode([sender, nonce]))[12:])


def create2_address(deployer: str, salt: BytesLike, initcode_hash: BytesLike) -> str:
    """Address of a contract created with CREATE2."""
    sender = to_canonical_address(_require_address(deployer, "deployer"))
    salt = _as_bytes(salt)
    initcode_hash = _as_bytes(initcode_hash)
    if len(salt) != 32 or len(initcode_hash) != 32:
        raise ValueError("salt and initcode hash must be 32 bytes")
    return to_checksum_address(keccak(b"\xff" + sender + salt + initcode_hash)[12:])


def create3_proxy_address(factory: str, salt: BytesLike) -> str:
    return create2_address(factory, salt, PROXY_INITCODE_HASH)


def create3_address(factory: str, salt: BytesLike) -> str:
    """Address a CREATE3 factory deploys to for ``salt``."""
    return create_address(create3_proxy_address(factory, salt), 1)


def deployable_bytecode(bytecode: BytesLike, types: Sequence[str], args: Sequence) -> bytes:
    """Creation bytecode followed by the ABI-encoded constructor arguments."""
    code = _as_bytes(bytecode)
    if not code:
        raise ValueError("bytecode is empty")
    if len(types) != len(args):
        raise ValueError(f"expected {len(types)} constructor arguments, got {len(args)}")
    return code + encode(list(types), list(args))

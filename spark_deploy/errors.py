"""
Exceptions raised by the Spark deployment harness.

On-chain reverts are mapped to distinct types so that a caller can tell a
missing role, a failing constructor and a consumed salt apart. None of the
revert types are ever retried.
"""

from typing import Optional

from eth_utils import function_signature_to_4byte_selector
from web3.exceptions import ContractCustomError, ContractLogicError


class DeploymentError(Exception):
    """Base class for every harness failure."""


class ConfigError(DeploymentError):
    """Deployment configuration is missing or malformed."""


class StaleConfigError(ConfigError):
    """The config file changed between read and write."""


class MissingDependencyError(DeploymentError):
    """A task needs an address no earlier task produced."""


class AddressMismatchError(DeploymentError):
    """Predicted and actual deterministic addresses differ."""


class VerificationError(DeploymentError):
    """Block explorer verification could not be submitted."""


class ChainError(DeploymentError):
    """RPC level failure (timeouts, missing receipts)."""


class TransactionReverted(ChainError):
    """A transaction or call was reverted on-chain."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class AccessControlError(TransactionReverted):
    """Caller lacks the role the function requires."""


class InitializationFailed(TransactionReverted):
    """The deployed contract's constructor reverted."""


class DeploymentCollision(TransactionReverted):
    """The salt was already consumed on this factory."""


def _selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


# Revert reason strings and custom error selectors, checked in order
REVERT_MARKERS = (
    ("DEPLOYMENT_FAILED", DeploymentCollision),
    ("INITIALIZATION_FAILED", InitializationFailed),
    ("missing role", AccessControlError),
    ("AccessControlUnauthorizedAccount", AccessControlError),
    ("DeployerRoleMissing", AccessControlError),
    (_selector("AccessControlUnauthorizedAccount(address,bytes32)"), AccessControlError),
    (_selector("DeployerRoleMissing()"), AccessControlError),
)


def revert_error_from(exc: Exception) -> Optional[TransactionReverted]:
    """
    Map a provider exception to a typed revert.

    Returns None when the exception is not a recognisable revert, in which
    case the caller should re-raise the original.
    """
    if isinstance(exc, TransactionReverted):
        return exc

    text = str(exc)
    data = getattr(exc, "data", None)
    if isinstance(data, str):
        text = f"{text} {data}"

    for marker, error_cls in REVERT_MARKERS:
        if marker in text:
            return error_cls(f"Transaction reverted: {marker}", reason=marker)

    if isinstance(exc, (ContractLogicError, ContractCustomError)):
        return TransactionReverted(f"Transaction reverted: {text}", reason=text)

    return None

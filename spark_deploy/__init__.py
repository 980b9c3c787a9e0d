"""
Spark deployment harness.

Deterministic multi-chain deployment and configuration of the Spark
contracts, with deployment state kept in config/deployment-config.json.
"""

from .chain import ChainClient, Signer, load_signers
from .create3 import compute_salt, create3_address, deployable_bytecode
from .errors import (
    AccessControlError,
    AddressMismatchError,
    ConfigError,
    DeploymentCollision,
    DeploymentError,
    InitializationFailed,
    StaleConfigError,
    TransactionReverted,
)
from .factory import DeterministicDeployer
from .pipeline import DeploymentContext, Pipeline, Task
from .steps import build_pipeline
from .store import ConfigStore

__version__ = "0.1.0"

"""
The Spark deployment tasks, in the order the contracts depend on each other.

1. ERC6551Manager             plain deploy, deployer key
2. SparkIdentityTokenFactory  plain deploy, factory-deployer key
3. SparkRegistryFactory       plain deploy, factory-deployer key
4. SparkIdentity              deterministic deploy through (2)
5. SparkRegistry              deterministic deploy through (3)
6. SparkConfiguration         wiring and payment/reward settings
"""

from typing import Optional, Sequence

from eth_abi import encode

from .configure import apply_configuration, plan_configuration
from .create3 import compute_salt, create_address
from .errors import AddressMismatchError
from .explorer import verify_contract
from .factory import DeterministicDeployer
from .pipeline import DeploymentContext, Pipeline, Task

# The token-bound account manager is not deployed on Base
ERC6551_MANAGER_NETWORKS = frozenset({
    "local", "localhost", "hardhat", "mumbai", "sepolia", "goerli",
    "fuji", "polygon", "ethereum", "avalanche",
})

# Factory-deployer nonce each factory must be created at for its address
# to match across chains
FACTORY_NONCES = {
    "SparkIdentityTokenFactory": 0,
    "SparkRegistryFactory": 1,
}


def _reuse(context: DeploymentContext, name: str) -> Optional[str]:
    address = context.addresses.get(name)
    if address and not context.redeploy and context.deployer.has_code(address):
        print(f"[INFO] Reusing {name} at {address}")
        return address
    return None


def _verify(context: DeploymentContext, name: str, address: str, args: Sequence):
    if not context.verify or context.network.is_local:
        return
    if not verify_contract(context.network, address, context.artifacts.get(name), args):
        print(f"[!] {name} could not be verified; retry with scripts/verify_on_explorer.py")


def deploy_erc6551_manager(context: DeploymentContext) -> str:
    config = context.config.require("ERC6551Manager")
    existing = _reuse(context, "ERC6551Manager")
    if existing:
        return existing

    args = [
        config.registry,
        config.tokenbound_account_proxy,
        config.tokenbound_account_implementation,
        encode(["uint256"], [config.salt]),
        config.owner,
    ]
    address, _ = context.deployer.deploy(context.artifacts.get("ERC6551Manager"), *args)
    _verify(context, "ERC6551Manager", address, args)
    return address


def _deploy_factory(context: DeploymentContext, name: str) -> str:
    config = context.config.require(name)
    existing = _reuse(context, name)
    if existing:
        return existing

    client = context.factory_deployer
    nonce = client.nonce()
    expected_nonce = FACTORY_NONCES[name]
    if nonce != expected_nonce:
        print(f"[!] Factory deployer nonce is {nonce}, expected {expected_nonce}: "
              f"{name} will not share its address with other chains")

    predicted = create_address(client.address, nonce)
    args = [config.owner]
    address, _ = client.deploy(context.artifacts.get(name), *args)
    if address != predicted:
        raise AddressMismatchError(f"{name} deployed to {address}, predicted {predicted}")

    _verify(context, name, address, args)
    return address


def deploy_identity_factory(context: DeploymentContext) -> str:
    return _deploy_factory(context, "SparkIdentityTokenFactory")


def deploy_registry_factory(context: DeploymentContext) -> str:
    return _deploy_factory(context, "SparkRegistryFactory")


def _deploy_deterministic(context: DeploymentContext, name: str, factory_name: str,
                          args: Sequence, salt_nonce: int) -> str:
    factory = DeterministicDeployer(
        context.deployer,
        context.addresses[factory_name],
        context.artifacts.get(factory_name).abi,
    )
    salt = compute_salt(context.deployer.address, salt_nonce)
    predicted = factory.checked_address(salt)
    print(f"    Salt: 0x{salt.hex()} (deployer {context.deployer.address}, nonce {salt_nonce})")

    if not context.redeploy and context.deployer.has_code(predicted):
        print(f"[INFO] {name} already deployed at {predicted}")
        return predicted

    artifact = context.artifacts.get(name)
    result = factory.deterministic_deploy(
        salt,
        artifact.deployable_bytecode(args),
        confirmations=context.network.deterministic_confirmations,
    )
    _verify(context, name, result.address, args)
    return result.address


def deploy_spark_identity(context: DeploymentContext) -> str:
    config = context.config.require("SparkIdentity")
    args = [config.name, config.symbol, config.owner]
    return _deploy_deterministic(context, "SparkIdentity", "SparkIdentityTokenFactory",
                                 args, config.salt_nonce)


def deploy_spark_registry(context: DeploymentContext) -> str:
    config = context.config.require("SparkRegistry")
    args = [
        context.addresses["SparkIdentity"],
        config.reward_token_address,
        config.beneficiary_address,
        config.owner,
    ]
    return _deploy_deterministic(context, "SparkRegistry", "SparkRegistryFactory",
                                 args, config.salt_nonce)


def configure_registry_and_identity(context: DeploymentContext) -> None:
    plan = plan_configuration(context.config, context.addresses)
    sent = apply_configuration(context, plan)
    print(f"[+] Configuration complete ({sent} transaction(s))")


DEFAULT_TASKS = (
    Task("ERC6551Manager", deploy_erc6551_manager,
         networks=ERC6551_MANAGER_NETWORKS, sections=("ERC6551Manager",)),
    Task("SparkIdentityTokenFactory", deploy_identity_factory,
         sections=("SparkIdentityTokenFactory",)),
    Task("SparkRegistryFactory", deploy_registry_factory,
         requires=("SparkIdentityTokenFactory",), sections=("SparkRegistryFactory",)),
    Task("SparkIdentity", deploy_spark_identity,
         requires=("SparkIdentityTokenFactory",), sections=("SparkIdentity",)),
    Task("SparkRegistry", deploy_spark_registry,
         requires=("SparkRegistryFactory", "SparkIdentity"), sections=("SparkRegistry",)),
    Task("SparkConfiguration", configure_registry_and_identity,
         requires=("SparkIdentity", "SparkRegistry"), optional=("ERC6551Manager",),
         sections=("SparkIdentity", "SparkRegistry")),
)


def build_pipeline() -> Pipeline:
    return Pipeline(DEFAULT_TASKS)

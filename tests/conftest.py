"""
Shared pytest fixtures for Spark deployment testing.

Provides an in-memory chain, compiled contract artifacts, deployed
factories, chain clients and a deployment config on disk.
"""

import json

import pytest
from eth_tester import EthereumTester, PyEVMBackend
from web3 import Web3
from web3.providers.eth_tester import EthereumTesterProvider

from spark_deploy.artifacts import ArtifactLoader
from spark_deploy.chain import ChainClient, Signer
from spark_deploy.factory import DeterministicDeployer
from spark_deploy.networks import NetworkSettings
from spark_deploy.pipeline import DeploymentContext
from spark_deploy.store import ConfigStore

# Stand-ins for the canonical ERC-6551 deployments
ERC6551_REGISTRY = Web3.to_checksum_address("0x000000006551c19487814612e58fe06813775758")
ERC6551_PROXY = Web3.to_checksum_address("0x55266d75d1a14e4572138116af39863ed6596e7f")
ERC6551_IMPLEMENTATION = Web3.to_checksum_address("0x41c8f39463a868d3a88af00cd0fe7102f30e44ec")
REWARD_TOKEN = Web3.to_checksum_address("0x1c7d4b196cb0c7b01d743fbc6116a902379c7238")


@pytest.fixture(scope="session")
def artifacts():
    """Compile every contract once per test session"""
    return ArtifactLoader()


@pytest.fixture
def eth_tester():
    """Create a fresh EthereumTester for each test"""
    return EthereumTester(backend=PyEVMBackend())


@pytest.fixture
def w3(eth_tester):
    """Create Web3 instance connected to EthereumTester"""
    return Web3(EthereumTesterProvider(eth_tester))


@pytest.fixture
def accounts(w3):
    """Get test accounts from Web3"""
    return w3.eth.accounts


@pytest.fixture
def owner(accounts):
    """Deployer account; owns the factories and the Spark contracts"""
    return accounts[0]


@pytest.fixture
def factory_deployer(accounts):
    """Dedicated account that only ever deploys factories"""
    return accounts[1]


@pytest.fixture
def operator(accounts):
    """Account granted DEPLOYER_ROLE by some tests"""
    return accounts[2]


@pytest.fixture
def unauthorized_user(accounts):
    """Unauthorized user account (no roles)"""
    return accounts[3]


@pytest.fixture
def local_network(w3):
    """Settings for the in-memory chain (no confirmations to wait for)"""
    return NetworkSettings.local(chain_id=w3.eth.chain_id)


@pytest.fixture
def deployer_client(w3, owner):
    return ChainClient(w3, Signer(owner))


@pytest.fixture
def factory_client(w3, factory_deployer):
    return ChainClient(w3, Signer(factory_deployer))


@pytest.fixture
def factory(w3, artifacts, factory_client, owner):
    """Deterministic factory owned by ``owner``, deployed by the factory deployer"""
    artifact = artifacts.get("SparkIdentityTokenFactory")
    address, _ = factory_client.deploy(artifact, owner)
    return w3.eth.contract(address=address, abi=artifact.abi)


@pytest.fixture
def deterministic_deployer(factory, deployer_client):
    return DeterministicDeployer(deployer_client, factory.address, factory.abi)


def deployment_entry(owner: str, with_manager: bool = True) -> dict:
    """One network's section of deployment-config.json"""
    entry = {
        "SparkIdentityTokenFactory": {"owner": owner},
        "SparkRegistryFactory": {"owner": owner},
        "SparkIdentity": {
            "name": "SparkIdentity",
            "symbol": "SPID",
            "owner": owner,
            "baseUri": "https://api.spark.example/identity/",
            "saltNonce": 0,
        },
        "SparkRegistry": {
            "owner": owner,
            "rewardTokenAddress": REWARD_TOKEN,
            "beneficiaryAddress": owner,
            "isPaymentEnabled": True,
            "nativePaymentAmountInEther": "0.001",
            "paymentTokens": [
                {"tokenAddress": REWARD_TOKEN, "amountInEther": "2.5", "status": True},
            ],
            "isRewardsEnabled": True,
            "rewardsPerMintInEther": "10",
            "maxRewardsPerUserInEther": "100",
            "rewardableNfts": [],
            "saltNonce": 0,
        },
    }
    if with_manager:
        entry["ERC6551Manager"] = {
            "registry": ERC6551_REGISTRY,
            "tokenboundAccountProxy": ERC6551_PROXY,
            "tokenboundAccountImplementation": ERC6551_IMPLEMENTATION,
            "salt": 0,
            "owner": owner,
        }
    return entry


@pytest.fixture
def deployment_document(owner):
    """Deployment config for the local chain and a Base network"""
    return {
        "local": deployment_entry(owner),
        "baseSepolia": deployment_entry(owner, with_manager=False),
    }


@pytest.fixture
def config_path(tmp_path, deployment_document):
    path = tmp_path / "config" / "deployment-config.json"
    path.parent.mkdir()
    path.write_text(json.dumps(deployment_document, indent=4))
    return path


@pytest.fixture
def config_store(config_path):
    return ConfigStore(config_path)


@pytest.fixture
def make_context(w3, artifacts, config_store, owner, factory_deployer, local_network):
    """Build a DeploymentContext against the in-memory chain"""

    def _make(network=None, **kwargs):
        network = network or local_network
        return DeploymentContext(
            network=network,
            config=config_store.network_config(network.name),
            store=config_store,
            deployer=ChainClient(w3, Signer(owner)),
            factory_deployer=ChainClient(w3, Signer(factory_deployer)),
            artifacts=artifacts,
            verify=kwargs.pop("verify", False),
            **kwargs,
        )

    return _make

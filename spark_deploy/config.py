"""
Typed view of ``config/deployment-config.json``.

Every network entry is parsed into dataclasses and validated before any
chain interaction. Field names in the JSON keep their camelCase spelling;
the Python attributes use snake_case.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from eth_utils import is_address, to_checksum_address
from web3 import Web3

from .errors import ConfigError

MAX_UINT256 = 2**256 - 1

SECTIONS = (
    "ERC6551Manager",
    "SparkIdentityTokenFactory",
    "SparkRegistryFactory",
    "SparkIdentity",
    "SparkRegistry",
)


class _Fields:
    """Field accessor that reports errors with network/section/field context."""

    def __init__(self, network: str, section: str, data: Any):
        if not isinstance(data, dict):
            raise ConfigError(f"{network}.{section} must be an object")
        self.network = network
        self.section = section
        self.data = data

    def error(self, name: str, message: str) -> ConfigError:
        return ConfigError(f"{self.network}.{self.section}.{name}: {message}")

    def address(self, name: str, required: bool = True) -> Optional[str]:
        value = self.data.get(name)
        if value is None or value == "":
            if required:
                raise self.error(name, "missing address")
            return None
        if not isinstance(value, str) or not is_address(value):
            raise self.error(name, f"invalid address {value!r}")
        return to_checksum_address(value)

    def string(self, name: str, required: bool = True, default: str = "") -> str:
        value = self.data.get(name)
        if value is None:
            if required:
                raise self.error(name, "missing value")
            return default
        if not isinstance(value, str):
            raise self.error(name, "must be a string")
        return value

    def boolean(self, name: str, default: bool = False) -> bool:
        value = self.data.get(name, default)
        if not isinstance(value, bool):
            raise self.error(name, "must be true or false")
        return value

    def uint(self, name: str, default: Optional[int] = None) -> int:
        value = self.data.get(name, default)
        if value is None:
            raise self.error(name, "missing value")
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value)
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= MAX_UINT256:
            raise self.error(name, f"must be a uint256, got {value!r}")
        return value

    def ether(self, name: str, default: str = "0") -> int:
        value = self.data.get(name, default)
        return parse_ether(value, lambda message: self.error(name, message))

    def items(self, name: str) -> List[dict]:
        value = self.data.get(name, [])
        if not isinstance(value, list):
            raise self.error(name, "must be a list")
        return value


def parse_ether(value: Any, error=ConfigError) -> int:
    """Decimal ether amount (string or number) to wei."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise error(f"invalid ether amount {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise error(f"invalid ether amount {value!r}")
    if not amount.is_finite() or amount < 0:
        raise error(f"invalid ether amount {value!r}")
    wei = amount * Decimal(10**18)
    if wei != wei.to_integral_value():
        raise error(f"more than 18 decimals in {value!r}")
    return Web3.to_wei(amount, "ether")


@dataclass(frozen=True)
class ERC6551ManagerConfig:
    registry: str
    tokenbound_account_proxy: str
    tokenbound_account_implementation: str
    salt: int
    owner: str
    contract_address: Optional[str] = None

    @classmethod
    def parse(cls, network: str, data: dict) -> "ERC6551ManagerConfig":
        f = _Fields(network, "ERC6551Manager", data)
        return cls(
            registry=f.address("registry"),
            tokenbound_account_proxy=f.address("tokenboundAccountProxy"),
            tokenbound_account_implementation=f.address("tokenboundAccountImplementation"),
            salt=f.uint("salt", default=0),
            owner=f.address("owner"),
            contract_address=f.address("contractAddress", required=False),
        )


@dataclass(frozen=True)
class FactoryConfig:
    owner: str
    contract_address: Optional[str] = None

    @classmethod
    def parse(cls, network: str, section: str, data: dict) -> "FactoryConfig":
        f = _Fields(network, section, data)
        return cls(
            owner=f.address("owner"),
            contract_address=f.address("contractAddress", required=False),
        )


@dataclass(frozen=True)
class SparkIdentityConfig:
    name: str
    symbol: str
    owner: str
    base_uri: str = ""
    salt_nonce: int = 0
    contract_address: Optional[str] = None

    @classmethod
    def parse(cls, network: str, data: dict) -> "SparkIdentityConfig":
        f = _Fields(network, "SparkIdentity", data)
        return cls(
            name=f.string("name"),
            symbol=f.string("symbol"),
            owner=f.address("owner"),
            base_uri=f.string("baseUri", required=False),
            salt_nonce=f.uint("saltNonce", default=0),
            contract_address=f.address("contractAddress", required=False),
        )


@dataclass(frozen=True)
class PaymentToken:
    token_address: str
    amount_wei: int
    amount_in_ether: str
    status: bool


@dataclass(frozen=True)
class RewardableNft:
    nft_address: str
    status: bool


@dataclass(frozen=True)
class SparkRegistryConfig:
    owner: str
    reward_token_address: str
    beneficiary_address: str
    is_payment_enabled: bool = False
    native_payment_amount_wei: int = 0
    payment_tokens: List[PaymentToken] = field(default_factory=list)
    is_rewards_enabled: bool = False
    rewards_per_mint_wei: int = 0
    max_rewards_per_user_wei: int = 0
    rewardable_nfts: List[RewardableNft] = field(default_factory=list)
    salt_nonce: int = 0
    contract_address: Optional[str] = None

    @classmethod
    def parse(cls, network: str, data: dict) -> "SparkRegistryConfig":
        f = _Fields(network, "SparkRegistry", data)

        payment_tokens = []
        for i, item in enumerate(f.items("paymentTokens")):
            token = _Fields(network, f"SparkRegistry.paymentTokens[{i}]", item)
            payment_tokens.append(PaymentToken(
                token_address=token.address("tokenAddress"),
                amount_wei=token.ether("amountInEther"),
                amount_in_ether=str(item.get("amountInEther", "0")),
                status=token.boolean("status", default=True),
            ))

        rewardable_nfts = []
        for i, item in enumerate(f.items("rewardableNfts")):
            nft = _Fields(network, f"SparkRegistry.rewardableNfts[{i}]", item)
            rewardable_nfts.append(RewardableNft(
                nft_address=nft.address("nftAddress"),
                status=nft.boolean("status", default=True),
            ))

        return cls(
            owner=f.address("owner"),
            reward_token_address=f.address("rewardTokenAddress"),
            beneficiary_address=f.address("beneficiaryAddress"),
            is_payment_enabled=f.boolean("isPaymentEnabled"),
            native_payment_amount_wei=f.ether("nativePaymentAmountInEther"),
            payment_tokens=payment_tokens,
            is_rewards_enabled=f.boolean("isRewardsEnabled"),
            rewards_per_mint_wei=f.ether("rewardsPerMintInEther"),
            max_rewards_per_user_wei=f.ether("maxRewardsPerUserInEther"),
            rewardable_nfts=rewardable_nfts,
            salt_nonce=f.uint("saltNonce", default=0),
            contract_address=f.address("contractAddress", required=False),
        )


@dataclass(frozen=True)
class NetworkDeploymentConfig:
    network: str
    erc6551_manager: Optional[ERC6551ManagerConfig] = None
    identity_factory: Optional[FactoryConfig] = None
    registry_factory: Optional[FactoryConfig] = None
    spark_identity: Optional[SparkIdentityConfig] = None
    spark_registry: Optional[SparkRegistryConfig] = None

    def section(self, name: str):
        return {
            "ERC6551Manager": self.erc6551_manager,
            "SparkIdentityTokenFactory": self.identity_factory,
            "SparkRegistryFactory": self.registry_factory,
            "SparkIdentity": self.spark_identity,
            "SparkRegistry": self.spark_registry,
        }[name]

    def require(self, name: str):
        section = self.section(name)
        if section is None:
            raise ConfigError(f"{self.network}.{name} is missing from the deployment config")
        return section

    def addresses(self) -> Dict[str, str]:
        """contractAddress of every section that has one."""
        found = {}
        for name in SECTIONS:
            section = self.section(name)
            if section is not None and section.contract_address:
                found[name] = section.contract_address
        return found

    @classmethod
    def parse(cls, network: str, entry: Any) -> "NetworkDeploymentConfig":
        if not isinstance(entry, dict):
            raise ConfigError(f"Network entry '{network}' must be an object")

        def optional(name, parser):
            return parser(entry[name]) if name in entry else None

        return cls(
            network=network,
            erc6551_manager=optional("ERC6551Manager", lambda d: ERC6551ManagerConfig.parse(network, d)),
            identity_factory=optional(
                "SparkIdentityTokenFactory",
                lambda d: FactoryConfig.parse(network, "SparkIdentityTokenFactory", d),
            ),
            registry_factory=optional(
                "SparkRegistryFactory",
                lambda d: FactoryConfig.parse(network, "SparkRegistryFactory", d),
            ),
            spark_identity=optional("SparkIdentity", lambda d: SparkIdentityConfig.parse(network, d)),
            spark_registry=optional("SparkRegistry", lambda d: SparkRegistryConfig.parse(network, d)),
        )


def parse_document(document: Any, network: str) -> NetworkDeploymentConfig:
    if not isinstance(document, dict):
        raise ConfigError("Deployment config must be a JSON object keyed by network")
    if network not in document:
        raise ConfigError(f"No deployment config for network '{network}'")
    return NetworkDeploymentConfig.parse(network, document[network])

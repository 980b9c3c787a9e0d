"""
Post-deployment configuration pass.

Planning is pure: it turns the typed config and the collected addresses
into a list of contract calls, dropping invalid combinations with a
message. Applying the plan sends the calls in order.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from eth_utils import is_address
from web3 import Web3

from .config import NetworkDeploymentConfig

MINTER_ROLE = Web3.keccak(text="MINTER_ROLE")


@dataclass(frozen=True)
class ConfigCall:
    contract: str
    function: str
    args: tuple
    summary: str
    # View call that returns True when the change is already in place
    skip_if: Optional[Tuple[str, tuple]] = None


@dataclass
class ConfigurationPlan:
    calls: List[ConfigCall] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def functions(self) -> List[str]:
        return [call.function for call in self.calls]


def plan_configuration(config: NetworkDeploymentConfig, addresses: Dict[str, str]) -> ConfigurationPlan:
    identity = config.require("SparkIdentity")
    registry = config.require("SparkRegistry")
    registry_address = addresses["SparkRegistry"]
    plan = ConfigurationPlan()

    plan.calls.append(ConfigCall(
        "SparkIdentity", "grantRole", (MINTER_ROLE, registry_address),
        "Spark Identity minter role is granted to spark registry contract",
        skip_if=("hasRole", (MINTER_ROLE, registry_address)),
    ))

    if identity.base_uri:
        plan.calls.append(ConfigCall(
            "SparkIdentity", "setBaseURI", (identity.base_uri,),
            f"Spark Identity base uri is configured to: {identity.base_uri}",
        ))

    manager = addresses.get("ERC6551Manager")
    if manager and is_address(manager):
        plan.calls.append(ConfigCall(
            "SparkRegistry", "configureERC6551Manager", (manager,),
            f"Spark Registry (ERC6551 manager) is configured to: {manager}",
        ))
    else:
        plan.skipped.append("No ERC6551 manager deployed on this network, registry keeps none")

    if registry.is_payment_enabled:
        if registry.native_payment_amount_wei > 0:
            plan.calls.append(ConfigCall(
                "SparkRegistry", "configurePayment",
                (registry.beneficiary_address, True, registry.native_payment_amount_wei),
                f"Spark Registry payment is configured: beneficiary {registry.beneficiary_address}, "
                f"amount {Web3.from_wei(registry.native_payment_amount_wei, 'ether')} native",
            ))

        tokens = [token for token in registry.payment_tokens if token.amount_wei > 0]
        dropped = len(registry.payment_tokens) - len(tokens)
        if dropped:
            plan.skipped.append(f"{dropped} payment token(s) with a zero amount left out")
        if tokens:
            plan.calls.append(ConfigCall(
                "SparkRegistry", "addPaymentTokens",
                (
                    [token.token_address for token in tokens],
                    [token.amount_wei for token in tokens],
                    [token.status for token in tokens],
                ),
                "Spark Registry payment tokens are configured: "
                + ", ".join(f"{t.token_address}={t.amount_in_ether}" for t in tokens),
            ))

    if registry.is_rewards_enabled:
        per_mint = registry.rewards_per_mint_wei
        max_per_user = registry.max_rewards_per_user_wei
        if per_mint > 0 and max_per_user > 0:
            if per_mint <= max_per_user:
                plan.calls.append(ConfigCall(
                    "SparkRegistry", "configureRewards", (per_mint, max_per_user, True),
                    f"Spark Registry rewards are configured: {Web3.from_wei(per_mint, 'ether')} per mint, "
                    f"{Web3.from_wei(max_per_user, 'ether')} max per user",
                ))
            else:
                plan.skipped.append("rewardsPerMint > maxRewardsPerUser is not allowed")
        else:
            plan.skipped.append("Rewards enabled but rewardsPerMint or maxRewardsPerUser is zero")

        if registry.rewardable_nfts:
            plan.calls.append(ConfigCall(
                "SparkRegistry", "whitelistNftsForRewards",
                (
                    [nft.nft_address for nft in registry.rewardable_nfts],
                    [nft.status for nft in registry.rewardable_nfts],
                ),
                "Spark Registry rewardable nfts are configured: "
                + ", ".join(nft.nft_address for nft in registry.rewardable_nfts),
            ))

    return plan


def apply_configuration(context, plan: ConfigurationPlan) -> int:
    """Send every planned call. Returns the number of transactions sent."""
    client = context.deployer
    sent = 0

    for message in plan.skipped:
        print(f"[!] {message}")

    for call in plan.calls:
        contract = client.contract(context.addresses[call.contract], context.artifacts.get(call.contract).abi)

        if call.skip_if:
            view, args = call.skip_if
            if client.call(getattr(contract.functions, view)(*args)):
                print(f"[INFO] {call.contract}.{call.function}: already applied")
                continue

        client.send(getattr(contract.functions, call.function)(*call.args))
        sent += 1
        print(f"[+] {call.summary}")

    return sent

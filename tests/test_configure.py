"""
Unit tests for post-deployment configuration planning.
"""

import pytest
from web3 import Web3

from spark_deploy.config import NetworkDeploymentConfig
from spark_deploy.configure import MINTER_ROLE, plan_configuration

OWNER = Web3.to_checksum_address("0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0")
TOKEN = Web3.to_checksum_address("0x1c7d4b196cb0c7b01d743fbc6116a902379c7238")
NFT = Web3.to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")

ADDRESSES = {
    "SparkIdentity": Web3.to_checksum_address("0x" + "a1" * 20),
    "SparkRegistry": Web3.to_checksum_address("0x" + "b2" * 20),
    "ERC6551Manager": Web3.to_checksum_address("0x" + "c3" * 20),
}


def make_config(identity=None, **registry):
    registry_data = {
        "owner": OWNER,
        "rewardTokenAddress": TOKEN,
        "beneficiaryAddress": OWNER,
        "isPaymentEnabled": False,
        "isRewardsEnabled": False,
    }
    registry_data.update(registry)
    identity_data = {"name": "SparkIdentity", "symbol": "SPID", "owner": OWNER}
    identity_data.update(identity or {})
    return NetworkDeploymentConfig.parse("local", {
        "SparkIdentity": identity_data,
        "SparkRegistry": registry_data,
    })


def calls_by_function(plan):
    return {call.function: call for call in plan.calls}


@pytest.mark.unit
class TestPlanConfiguration:
    """Which calls are planned for a given config"""

    def test_minimal_plan(self):
        """Only the minter grant and manager wiring for a bare config"""
        plan = plan_configuration(make_config(), ADDRESSES)
        assert plan.functions() == ["grantRole", "configureERC6551Manager"]

    def test_minter_grant_targets_registry(self):
        """The registry receives MINTER_ROLE on the identity token"""
        grant = plan_configuration(make_config(), ADDRESSES).calls[0]
        assert grant.contract == "SparkIdentity"
        assert grant.args == (MINTER_ROLE, ADDRESSES["SparkRegistry"])
        assert grant.skip_if == ("hasRole", (MINTER_ROLE, ADDRESSES["SparkRegistry"]))

    def test_base_uri(self):
        """A configured base URI is set on the identity token"""
        plan = plan_configuration(make_config(identity={"baseUri": "ipfs://base/"}), ADDRESSES)
        assert calls_by_function(plan)["setBaseURI"].args == ("ipfs://base/",)

    def test_no_manager(self):
        """Without a manager address the wiring is skipped with a message"""
        addresses = {k: v for k, v in ADDRESSES.items() if k != "ERC6551Manager"}
        plan = plan_configuration(make_config(), addresses)
        assert "configureERC6551Manager" not in plan.functions()
        assert plan.skipped

    def test_full_plan_order(self):
        """Every section enabled produces calls in a fixed order"""
        config = make_config(
            identity={"baseUri": "ipfs://base/"},
            isPaymentEnabled=True,
            nativePaymentAmountInEther="0.001",
            paymentTokens=[{"tokenAddress": TOKEN, "amountInEther": "2.5"}],
            isRewardsEnabled=True,
            rewardsPerMintInEther="10",
            maxRewardsPerUserInEther="100",
            rewardableNfts=[{"nftAddress": NFT, "status": True}],
        )
        plan = plan_configuration(config, ADDRESSES)
        assert plan.functions() == [
            "grantRole",
            "setBaseURI",
            "configureERC6551Manager",
            "configurePayment",
            "addPaymentTokens",
            "configureRewards",
            "whitelistNftsForRewards",
        ]
        assert plan.skipped == []

    def test_native_payment(self):
        """Native payment uses the beneficiary and the wei amount"""
        config = make_config(isPaymentEnabled=True, nativePaymentAmountInEther="0.001")
        call = calls_by_function(plan_configuration(config, ADDRESSES))["configurePayment"]
        assert call.args == (OWNER, True, 10**15)

    def test_zero_native_payment_skipped(self):
        """A zero native amount sends no configurePayment"""
        config = make_config(isPaymentEnabled=True, nativePaymentAmountInEther="0")
        assert "configurePayment" not in plan_configuration(config, ADDRESSES).functions()

    def test_payment_disabled(self):
        """Disabled payments ignore amounts and tokens"""
        config = make_config(
            isPaymentEnabled=False,
            nativePaymentAmountInEther="1",
            paymentTokens=[{"tokenAddress": TOKEN, "amountInEther": "1"}],
        )
        functions = plan_configuration(config, ADDRESSES).functions()
        assert "configurePayment" not in functions
        assert "addPaymentTokens" not in functions

    def test_zero_amount_tokens_dropped(self):
        """Only tokens with a positive amount are added"""
        config = make_config(
            isPaymentEnabled=True,
            paymentTokens=[
                {"tokenAddress": TOKEN, "amountInEther": "0"},
                {"tokenAddress": NFT, "amountInEther": "1", "status": False},
            ],
        )
        plan = plan_configuration(config, ADDRESSES)
        call = calls_by_function(plan)["addPaymentTokens"]
        assert call.args == ([NFT], [10**18], [False])
        assert any("zero amount" in message for message in plan.skipped)

    def test_rewards(self):
        """Rewards are configured in wei"""
        config = make_config(isRewardsEnabled=True, rewardsPerMintInEther="10", maxRewardsPerUserInEther="100")
        call = calls_by_function(plan_configuration(config, ADDRESSES))["configureRewards"]
        assert call.args == (10 * 10**18, 100 * 10**18, True)

    def test_rewards_per_mint_above_max(self):
        """rewardsPerMint > maxRewardsPerUser is skipped with a message"""
        config = make_config(isRewardsEnabled=True, rewardsPerMintInEther="101", maxRewardsPerUserInEther="100")
        plan = plan_configuration(config, ADDRESSES)
        assert "configureRewards" not in plan.functions()
        assert "rewardsPerMint > maxRewardsPerUser is not allowed" in plan.skipped

    def test_equal_rewards_allowed(self):
        """rewardsPerMint == maxRewardsPerUser is valid"""
        config = make_config(isRewardsEnabled=True, rewardsPerMintInEther="5", maxRewardsPerUserInEther="5")
        assert "configureRewards" in plan_configuration(config, ADDRESSES).functions()

    def test_nft_whitelist_independent_of_amounts(self):
        """NFTs are whitelisted even when reward amounts are skipped"""
        config = make_config(
            isRewardsEnabled=True,
            rewardsPerMintInEther="0",
            maxRewardsPerUserInEther="0",
            rewardableNfts=[{"nftAddress": NFT}],
        )
        plan = plan_configuration(config, ADDRESSES)
        assert "configureRewards" not in plan.functions()
        assert calls_by_function(plan)["whitelistNftsForRewards"].args == ([NFT], [True])

    def test_planning_is_pure(self):
        """The same inputs produce the same plan"""
        config = make_config(isRewardsEnabled=True, rewardsPerMintInEther="1", maxRewardsPerUserInEther="2")
        assert plan_configuration(config, ADDRESSES) == plan_configuration(config, ADDRESSES)

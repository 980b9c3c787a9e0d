"""
Unit tests for block explorer verification, with the HTTP layer stubbed.
"""

import pytest
import requests

from spark_deploy import explorer
from spark_deploy.artifacts import Artifact
from spark_deploy.networks import NetworkSettings

ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

SEPOLIA = NetworkSettings(name="sepolia", chain_id=11155111)


class FakeResponse:

    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


@pytest.fixture
def artifact():
    abi = [{"type": "constructor", "inputs": [{"name": "owner", "type": "address"}],
            "stateMutability": "nonpayable"}]
    return Artifact(name="SparkRegistryFactory", abi=abi, bytecode="0x00",
                    source="# pragma version ~=0.4.2\n", compiler_version="v0.4.2")


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("ETHERSCAN_API_KEY", "test-key")


@pytest.fixture
def http(monkeypatch):
    """Queue responses for requests.post / requests.get and record requests"""
    state = {"post": [], "get": [], "requests": []}

    def fake_post(url, data=None, timeout=None):
        state["requests"].append(("post", url, data))
        return state["post"].pop(0)

    def fake_get(url, params=None, timeout=None):
        state["requests"].append(("get", url, params))
        response = state["get"].pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(explorer.requests, "post", fake_post)
    monkeypatch.setattr(explorer.requests, "get", fake_get)
    return state


@pytest.mark.unit
class TestVerifyContract:
    """End-to-end verification flow"""

    def test_local_network_skipped(self, artifact, http):
        """Local chains are never submitted"""
        assert explorer.verify_contract(NetworkSettings.local(), ADDRESS, artifact, [OWNER]) is True
        assert http["requests"] == []

    def test_unknown_explorer(self, artifact, http):
        """Networks without an explorer entry report failure"""
        network = NetworkSettings(name="unknown", chain_id=999)
        assert explorer.verify_contract(network, ADDRESS, artifact, [OWNER]) is False

    def test_missing_api_key(self, artifact, http, monkeypatch):
        """Without an API key verification fails without HTTP calls"""
        monkeypatch.delenv("ETHERSCAN_API_KEY", raising=False)
        assert explorer.verify_contract(SEPOLIA, ADDRESS, artifact, [OWNER]) is False
        assert http["requests"] == []

    def test_successful_verification(self, artifact, http, api_key):
        """Submit, poll pending, then pass"""
        http["post"].append(FakeResponse({"status": "1", "result": "guid-123"}))
        http["get"].append(FakeResponse({"status": "0", "result": "Pending in queue"}))
        http["get"].append(FakeResponse({"status": "1", "result": "Pass - Verified"}))

        assert explorer.verify_contract(SEPOLIA, ADDRESS, artifact, [OWNER], interval=0) is True

        method, url, data = http["requests"][0]
        assert url == explorer.EXPLORER_APIS["sepolia"]["api_url"]
        assert data["contractaddress"] == ADDRESS
        assert data["codeformat"] == "vyper-single-file"
        assert data["constructorArguements"] == artifact.encode_constructor_args([OWNER]).hex()
        assert http["requests"][-1][2]["guid"] == "guid-123"

    def test_already_verified(self, artifact, http, api_key):
        """An already verified contract counts as success"""
        http["post"].append(FakeResponse({"status": "0", "result": "Contract source code already verified"}))
        assert explorer.verify_contract(SEPOLIA, ADDRESS, artifact, [OWNER], interval=0) is True
        assert len(http["requests"]) == 1

    def test_rejected_submission(self, artifact, http, api_key):
        """A rejected submission reports failure"""
        http["post"].append(FakeResponse({"status": "0", "result": "Invalid constructor arguments"}))
        assert explorer.verify_contract(SEPOLIA, ADDRESS, artifact, [OWNER], interval=0) is False

    def test_failed_verification(self, artifact, http, api_key):
        """A failing status stops polling"""
        http["post"].append(FakeResponse({"status": "1", "result": "guid-123"}))
        http["get"].append(FakeResponse({"status": "0", "result": "Fail - Unable to verify"}))
        assert explorer.verify_contract(SEPOLIA, ADDRESS, artifact, [OWNER], interval=0) is False

    def test_polling_survives_request_errors(self, artifact, http, api_key):
        """A failed status request is retried on the next attempt"""
        http["post"].append(FakeResponse({"status": "1", "result": "guid-123"}))
        http["get"].append(requests.ConnectionError("reset"))
        http["get"].append(FakeResponse({"status": "1", "result": "Pass - Verified"}))
        assert explorer.verify_contract(SEPOLIA, ADDRESS, artifact, [OWNER], interval=0) is True


@pytest.mark.unit
class TestExplorerConfig:
    """Explorer lookup"""

    def test_explicit_explorer_name(self):
        """Settings may name a different explorer entry"""
        network = NetworkSettings(name="sepolia-fork", chain_id=11155111, explorer="sepolia")
        assert explorer.explorer_for(network)["name"] == "Etherscan Sepolia"

    def test_base_networks_use_basescan(self):
        """Base networks verify on Basescan"""
        network = NetworkSettings(name="baseSepolia", chain_id=84532)
        assert explorer.explorer_for(network)["api_key_env"] == "BASE_API_KEY"

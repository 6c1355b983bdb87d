"""Tests for the transaction-history collaborator and HTTP retries."""

from unittest.mock import Mock, patch

import requests
from web3 import Web3

from sip_discovery.http_helper import get_json_with_retries
from sip_discovery.history import TransactionHistory, parse_item

from conftest import CREATE_SELECTOR, OWNER, FakeContract, create_call_data

API = "https://indexer.test/api/evm/all/transactions"


def http_response(status=200, body=None):
    r = Mock()
    r.status_code = status
    r.json.return_value = body
    return r


class TestGetJsonWithRetries:
    @patch("sip_discovery.http_helper.time.sleep")
    @patch("sip_discovery.http_helper.requests.get")
    def test_retries_rate_limit_then_succeeds(self, get, sleep):
        get.side_effect = [http_response(429), http_response(200, {"items": []})]
        assert get_json_with_retries(API) == {"items": []}
        assert sleep.call_count == 1

    @patch("sip_discovery.http_helper.time.sleep")
    @patch("sip_discovery.http_helper.requests.get")
    def test_gives_up_on_client_error(self, get, sleep):
        get.return_value = http_response(404)
        assert get_json_with_retries(API) is None
        assert get.call_count == 1

    @patch("sip_discovery.http_helper.time.sleep")
    @patch("sip_discovery.http_helper.requests.get")
    def test_gives_up_after_retries(self, get, sleep):
        get.side_effect = requests.ConnectionError("down")
        assert get_json_with_retries(API, retries=2) is None
        assert get.call_count == 3


class TestParseItem:
    def test_fields(self):
        tx = parse_item({
            "txHash": "0x1", "methodId": "0xE1DC1C04", "status": True,
            "value": "1000000000000000000", "timestamp": "2023-11-14T22:13:20Z",
            "input": Web3.to_hex(create_call_data("K1")),
        })
        assert tx.method_id == CREATE_SELECTOR
        assert tx.value == 10**18
        assert tx.status is True
        assert tx.call_data == create_call_data("K1")

    def test_string_status_and_hex_value(self):
        tx = parse_item({"txHash": "0x1", "status": "false", "value": "0x10"})
        assert tx.status is False
        assert tx.value == 16
        assert tx.call_data == b""


class TestTransactionHistory:
    def setup_method(self):
        self.contract = FakeContract(inputs={"0xcreate": create_call_data("K1")})
        self.history = TransactionHistory(API, self.contract, CREATE_SELECTOR, limit=50)

    @patch("sip_discovery.history.get_json_with_retries")
    def test_query_parameters(self, get_json):
        get_json.return_value = {"items": []}
        self.history.fetch(OWNER)
        params = get_json.call_args.kwargs["params"]
        assert params["fromAddresses"] == OWNER
        assert params["toAddresses"] == self.contract.address
        assert params["limit"] == 50
        assert params["sort"] == "desc"

    @patch("sip_discovery.history.get_json_with_retries")
    def test_hydrates_create_inputs_only(self, get_json):
        get_json.return_value = {"items": [
            {"txHash": "0xcreate", "methodId": CREATE_SELECTOR, "status": True, "value": "1"},
            {"txHash": "0xexec", "methodId": "0x12345678", "status": True, "value": "0"},
        ]}
        result = self.history.fetch(OWNER)
        assert result.available
        assert [t.tx_id for t in result.transactions] == ["0xcreate", "0xexec"]
        assert result.transactions[0].call_data == create_call_data("K1")
        assert result.transactions[1].call_data == b""

    @patch("sip_discovery.history.get_json_with_retries")
    def test_hydration_failure_skips_one(self, get_json):
        get_json.return_value = {"items": [
            {"txHash": "0xunknown", "methodId": CREATE_SELECTOR, "status": True},
            {"txHash": "0xcreate", "methodId": CREATE_SELECTOR, "status": True},
        ]}
        result = self.history.fetch(OWNER)
        assert [t.tx_id for t in result.transactions] == ["0xcreate"]
        assert result.hydration_failures == 1

    @patch("sip_discovery.history.get_json_with_retries")
    def test_unavailable(self, get_json):
        get_json.return_value = None
        result = self.history.fetch(OWNER)
        assert not result.available
        assert result.transactions == []

    @patch("sip_discovery.history.get_json_with_retries")
    def test_malformed_items_skipped(self, get_json):
        get_json.return_value = {"items": [
            None,
            "0xdead",
            {"txHash": "0xbad", "value": {"wei": 1}},
            {"txHash": "0xok", "methodId": "0x12345678", "status": True},
        ]}
        result = self.history.fetch(OWNER)
        assert [t.tx_id for t in result.transactions] == ["0xok"]
        assert result.hydration_failures == 1

    @patch("sip_discovery.history.get_json_with_retries")
    def test_items_not_a_list(self, get_json):
        get_json.return_value = {"items": {"txHash": "0x1"}}
        result = self.history.fetch(OWNER)
        assert result.available
        assert result.transactions == []

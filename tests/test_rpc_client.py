import json

import pytest

from tokenvm.addresses import address
from tokenvm.rpc_client import AssetStatus, JSONRPCClient, Parser, RPCError, TxStatus
from tokenvm.rpc_server import JSONRPCServer
from tokenvm.storage import (
    MemoryDatabase,
    get_asset_from_state,
    get_balance_from_state,
    get_loan_from_state,
    get_transaction,
    set_asset,
    set_balance,
    set_loan,
    store_transaction,
)

HRP = "token"
OWNER = bytes(range(32))
ASSET = bytes([7]) * 32
TX = bytes([9]) * 32
DEST = bytes([3]) * 32
CHAIN = bytes([5]) * 32
URI = "http://node.example.com/ext/bc/chain/"


class FakeController:
    def __init__(self):
        self.db = MemoryDatabase()
        self.genesis_data = {"minUnitPrice": 1}
        self.book = {}
        self.hidden_tx_reads = 0
        self.balance_reads = 0

    def genesis(self):
        return self.genesis_data

    def get_transaction(self, tx_id):
        if self.hidden_tx_reads:
            self.hidden_tx_reads -= 1
            return None
        return get_transaction(self.db, tx_id)

    def get_asset_from_state(self, asset):
        return get_asset_from_state(self.db.read_state, asset)

    def get_balance_from_state(self, public_key, asset):
        self.balance_reads += 1
        return get_balance_from_state(self.db.read_state, public_key, asset)

    def orders(self, pair, limit):
        return self.book.get(pair, [])[:limit]

    def get_loan_from_state(self, asset, destination):
        return get_loan_from_state(self.db.read_state, asset, destination)


class Recorder:
    def __init__(self, server):
        self.server = server
        self.calls = []

    def __call__(self, url, payload):
        self.calls.append((url, payload))
        return self.server.handle(json.loads(json.dumps(payload)))


@pytest.fixture
def controller():
    return FakeController()


@pytest.fixture
def transport(controller):
    return Recorder(JSONRPCServer(controller, hrp=HRP))


@pytest.fixture
def client(transport):
    return JSONRPCClient(URI, CHAIN, transport=transport, poll_interval=0)


def test_endpoint(client, transport):
    client.balance(address(OWNER, HRP), ASSET)
    url, payload = transport.calls[0]
    assert url == "http://node.example.com/ext/bc/chain/tokenapi"
    assert payload["method"] == "tokenvm.balance"
    assert payload["params"] == [{"address": address(OWNER, HRP), "asset": ASSET.hex()}]


def test_genesis_is_cached(client, transport, controller):
    assert client.genesis() == controller.genesis_data
    assert client.genesis() == controller.genesis_data
    assert len(transport.calls) == 1


def test_tx_found(client, controller):
    store_transaction(controller.db, TX, 1234, False, 8)
    assert client.tx(TX) == TxStatus(found=True, success=False, timestamp=1234)


def test_tx_missing(client):
    assert client.tx(TX) == TxStatus(found=False, success=False, timestamp=-1)


def test_asset_found(client, controller):
    set_asset(controller.db, ASSET, b"coin", 10, OWNER, True)
    assert client.asset(ASSET) == AssetStatus(
        exists=True, metadata=b"coin", supply=10, owner=address(OWNER, HRP), warp=True
    )


def test_asset_missing(client):
    status = client.asset(ASSET)
    assert status.exists is False
    assert status.supply == 0


def test_balance_and_error(client, controller):
    set_balance(controller.db, OWNER, ASSET, 500)
    assert client.balance(address(OWNER, HRP), ASSET) == 500
    with pytest.raises(RPCError):
        client.balance("bogus", ASSET)


def test_orders(client, controller):
    controller.book["a-b"] = [{"id": "x", "remaining": 4}]
    assert client.orders("a-b") == [{"id": "x", "remaining": 4}]
    assert client.orders("c-d") == []


def test_loan(client, controller):
    set_loan(controller.db, ASSET, DEST, 110)
    assert client.loan(ASSET, DEST) == 110


def test_wait_for_transaction(client, controller):
    store_transaction(controller.db, TX, 1, True, 3)
    controller.hidden_tx_reads = 2
    assert client.wait_for_transaction(TX) is True
    assert controller.hidden_tx_reads == 0


def test_wait_for_balance(controller, transport):
    def funding_transport(url, payload):
        if controller.balance_reads == 2:
            set_balance(controller.db, OWNER, ASSET, 50)
        return transport(url, payload)

    client = JSONRPCClient(URI, CHAIN, transport=funding_transport, poll_interval=0)
    client.wait_for_balance(address(OWNER, HRP), ASSET, 50)
    assert client.balance(address(OWNER, HRP), ASSET) == 50
    assert controller.balance_reads >= 3


def test_wait_times_out(transport):
    client = JSONRPCClient(URI, CHAIN, transport=transport, poll_interval=0.01, wait_timeout=0.05)
    with pytest.raises(TimeoutError):
        client.wait_for_transaction(TX)


def test_parser(client, controller):
    assert client.parser() == Parser(chain_id=CHAIN, genesis=controller.genesis_data)
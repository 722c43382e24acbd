# tokenvm

`tokenvm` is the state layer and read-only JSON-RPC query service of a small
token ledger. It stores balances, assets, orders, loans and transaction
results in a byte-keyed key-value store. It encodes public keys as bech32
addresses, and it answers queries over that state as JSON-RPC 2.0 requests.

It has no dependencies outside the standard library.

## Install

```
pip install tokenvm
pip install "tokenvm[test]"   # adds pytest for the test suite
```

## State storage: `tokenvm.storage`

Identifiers (transaction, asset, chain and message ids) and public keys are
32 raw bytes. Integers are stored big-endian as unsigned 64-bit values. Every
key starts with a one-byte prefix:

| prefix | record        | key                            |
|--------|---------------|--------------------------------|
| `0x0`  | balance       | owner public key + asset id    |
| `0x1`  | asset         | asset id                       |
| `0x2`  | order         | transaction id                 |
| `0x3`  | loan          | asset id + destination id      |
| `0x4`  | height        | the prefix alone (`height_key()`) |
| `0x5`  | incoming warp | source chain id + message id   |
| `0x6`  | outgoing warp | transaction id                 |

Transaction results (`store_transaction`, `get_transaction`) also use prefix
`0x0`. Keep them in a different store from balances.

The functions take any object with `get(key)` (returning `None` when the key
is missing), `insert(key, value)` and `remove(key)`. `MemoryDatabase` is such
a store, backed by a dictionary. Its `read_state(keys)` method can be passed
to the `*_from_state` functions.

```python
from tokenvm.storage import (
    MemoryDatabase, add_balance, sub_balance, get_balance,
    get_balance_from_state, set_asset, get_asset,
)

db = MemoryDatabase()
owner = bytes(32)
asset = bytes(32)

add_balance(db, owner, asset, 100)
sub_balance(db, owner, asset, 40)
print(get_balance(db, owner, asset))                      # 60
print(get_balance_from_state(db.read_state, owner, asset))  # 60

set_asset(db, asset, b"TKN", 60, owner, False)
record = get_asset(db, asset)   # AssetRecord(metadata=b"TKN", supply=60, ...)
```

Lookups return data records or plain values:

- `get_transaction` returns a `TransactionRecord`, or `None` if there is no record.
- `get_asset` returns an `AssetRecord`, or `None` if there is no record.
- `get_order` returns an `OrderRecord`, or `None` if there is no record.
- `get_balance` and `get_loan` return 0 when there is no record.

`add_balance` and `add_loan` raise `tokenvm.errors.InvalidBalanceError` when
the result would overflow 64 bits. `sub_balance` and `sub_loan` raise it when
the result would go below zero. A balance or loan that reaches zero is removed
from the store, not stored as zero.

The following inputs raise `ValueError`:

- an id or key of the wrong length
- an integer outside its range
- asset metadata longer than 65535 bytes

## Addresses: `tokenvm.addresses`

`address(public_key, hrp)` encodes a 32-byte public key as a bech32 string
under the human-readable part `hrp`. `parse_address(text, hrp)` decodes it
back. Both raise `AddressError` (a `ValueError`) on bad input, such as a wrong
checksum, a wrong `hrp` or a wrong key size.

## Query service: `tokenvm.rpc_server`

`JSONRPCServer(controller, hrp="token", namespace="tokenvm")` answers
queries from any object that meets the `Controller` protocol. The protocol has
these methods:

- `genesis()`
- `get_transaction(tx_id)`
- `get_asset_from_state(asset)`
- `get_balance_from_state(public_key, asset)`
- `orders(pair, limit)`
- `get_loan_from_state(asset, destination)`

The query methods are `genesis()`, `tx(tx_id)`, `asset(asset)`,
`balance(address, asset)`, `orders(pair)` (at most 128 orders) and
`loan(asset, destination)`. Each returns a dictionary.

- `tx` raises `TxNotFoundError` when the transaction is unknown.
- `asset` raises `AssetNotFoundError` when the asset is unknown.
- `balance` raises `AddressError` when the address does not parse.

`handle(request)` takes one decoded JSON-RPC 2.0 request dictionary and
returns the response dictionary. Method names carry the namespace, for example
`"tokenvm.balance"`. In requests, ids are hex strings and asset metadata comes
back base64-encoded. Errors come back in the response's `error` member, not as
exceptions.

## Client: `tokenvm.rpc_client`

`JSONRPCClient(uri, chain_id)` sends requests to `uri + "/tokenapi"`. By
default it POSTs them over HTTP with `http_transport`. A different callable
can be passed as `transport=`.

- `tx(tx_id)` returns a `TxStatus`. `found` is false when the transaction is unknown.
- `asset(asset)` returns an `AssetStatus`. `exists` is false when the asset is unknown.
- `balance`, `loan` and `orders` return the values from the service.
- `genesis()` fetches the genesis once and caches it.
- `parser()` returns a `Parser` holding the chain id and the genesis.
- `wait_for_balance(address, asset, minimum)` polls every `poll_interval` seconds until the condition holds.
- `wait_for_transaction(tx_id)` polls the same way. It returns whether the transaction succeeded.
- Both wait methods raise `TimeoutError` if `wait_timeout` is set and runs out.

Errors from the service, and failures to reach it, raise `RPCError`.

## Version

`tokenvm.version.VERSION` is `SemanticVersion(0, 0, 1)`. It prints as `v0.0.1`.

## What it does not do

`tokenvm` does not produce blocks, execute or submit transactions, or match
orders. It has no implementation of the `Controller` protocol beyond the
storage functions, and it treats the genesis as an opaque value. It does not
listen on a network port either. To serve queries over HTTP, put
`JSONRPCServer.handle` behind a web server of your own.
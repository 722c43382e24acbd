"""State layout of the token VM: keys, record encoding and balance arithmetic.

Metadata
  0x0/ (tx)       [txID] => timestamp|success|units

State
  0x0/ (balance)  [owner|asset] => balance
  0x1/ (assets)   [asset] => metadataLen|metadata|supply|owner|warp
  0x2/ (orders)   [txID] => in|inTick|out|outTick|remaining|owner
  0x3/ (loans)    [asset|destination] => amount
  0x4/ (height)
  0x5/ (incoming warp)
  0x6/ (outgoing warp)
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import InvalidBalanceError

ID_LEN = 32
PUBLIC_KEY_LEN = 32
MAX_UINT64 = 2**64 - 1
MAX_UINT16 = 2**16 - 1
MIN_INT64 = -(2**63)
MAX_INT64 = 2**63 - 1

TX_PREFIX = 0x0
BALANCE_PREFIX = 0x0
ASSET_PREFIX = 0x1
ORDER_PREFIX = 0x2
LOAN_PREFIX = 0x3
HEIGHT_PREFIX = 0x4
INCOMING_WARP_PREFIX = 0x5
OUTGOING_WARP_PREFIX = 0x6

FAILURE_BYTE = 0x0
SUCCESS_BYTE = 0x1

_TX_VALUE = struct.Struct(">qBQ")
_UINT64 = struct.Struct(">Q")
_UINT16 = struct.Struct(">H")
_ORDER_VALUE = struct.Struct(f">{ID_LEN}sQ{ID_LEN}sQQ{PUBLIC_KEY_LEN}s")

ReadState = Callable[[Sequence[bytes]], Sequence[Optional[bytes]]]


class Database(Protocol):
    """Key-value store the state functions read from and write to."""

    def get(self, key: bytes) -> bytes | None: ...

    def insert(self, key: bytes, value: bytes) -> None: ...

    def remove(self, key: bytes) -> None: ...


class MemoryDatabase:
    """A dictionary-backed key-value store."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}

    def get(self, key: bytes) -> bytes | None:
        """Return the value under ``key``, or None when it is missing."""
        return self._data.get(bytes(key))

    def insert(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._data.pop(bytes(key), None)

    def read_state(self, keys: Sequence[bytes]) -> list[bytes | None]:
        """Return the value for each key, None where it is missing."""
        return [self.get(key) for key in keys]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and bytes(key) in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class TransactionRecord:
    timestamp: int
    success: bool
    units: int


@dataclass(frozen=True)
class AssetRecord:
    metadata: bytes
    supply: int
    owner: bytes
    warp: bool


@dataclass(frozen=True)
class OrderRecord:
    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    remaining: int
    owner: bytes


def _fixed(value: bytes, size: int, name: str) -> bytes:
    data = bytes(value)
    if len(data) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(data)}")
    return data


def _uint64(value: int, name: str) -> int:
    if not 0 <= value <= MAX_UINT64:
        raise ValueError(f"{name} must fit in an unsigned 64-bit integer")
    return value


def _id(value: bytes, name: str = "id") -> bytes:
    return _fixed(value, ID_LEN, name)


def _public_key(value: bytes) -> bytes:
    return _fixed(value, PUBLIC_KEY_LEN, "public key")


def _decode_uint64(value: bytes | None) -> int:
    return 0 if value is None else _UINT64.unpack_from(value)[0]


# Transactions


def prefix_tx_key(tx_id: bytes) -> bytes:
    return bytes([TX_PREFIX]) + _id(tx_id, "tx id")


def store_transaction(db: Database, tx_id: bytes, timestamp: int, success: bool, units: int) -> None:
    if not MIN_INT64 <= timestamp <= MAX_INT64:
        raise ValueError("timestamp must fit in a signed 64-bit integer")
    flag = SUCCESS_BYTE if success else FAILURE_BYTE
    value = _TX_VALUE.pack(timestamp, flag, _uint64(units, "units"))
    db.insert(prefix_tx_key(tx_id), value)


def get_transaction(db: Database, tx_id: bytes) -> TransactionRecord | None:
    value = db.get(prefix_tx_key(tx_id))
    if value is None:
        return None
    timestamp, flag, units = _TX_VALUE.unpack_from(value)
    return TransactionRecord(timestamp=timestamp, success=flag != FAILURE_BYTE, units=units)


# Balances


def prefix_balance_key(public_key: bytes, asset: bytes) -> bytes:
    return bytes([BALANCE_PREFIX]) + _public_key(public_key) + _id(asset, "asset")


def get_balance(db: Database, public_key: bytes, asset: bytes) -> int:
    """Return the balance, 0 when the account holds none of the asset."""
    return _decode_uint64(db.get(prefix_balance_key(public_key, asset)))


def get_balance_from_state(read_state: ReadState, public_key: bytes, asset: bytes) -> int:
    (value,) = read_state([prefix_balance_key(public_key, asset)])
    return _decode_uint64(value)


def set_balance(db: Database, public_key: bytes, asset: bytes, balance: int) -> None:
    key = prefix_balance_key(public_key, asset)
    db.insert(key, _UINT64.pack(_uint64(balance, "balance")))


def delete_balance(db: Database, public_key: bytes, asset: bytes) -> None:
    db.remove(prefix_balance_key(public_key, asset))


def add_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    key = prefix_balance_key(public_key, asset)
    balance = _decode_uint64(db.get(key))
    new_balance = balance + _uint64(amount, "amount")
    if new_balance > MAX_UINT64:
        raise InvalidBalanceError(
            f"could not add balance (asset={asset.hex()}, bal={balance}, "
            f"addr={public_key.hex()}, amount={amount})"
        )
    db.insert(key, _UINT64.pack(new_balance))


def sub_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    key = prefix_balance_key(public_key, asset)
    balance = _decode_uint64(db.get(key))
    new_balance = balance - _uint64(amount, "amount")
    if new_balance < 0:
        raise InvalidBalanceError(
            f"could not subtract balance (asset={asset.hex()}, bal={balance}, "
            f"addr={public_key.hex()}, amount={amount})"
        )
    if new_balance == 0:
        # An emptied account is deleted rather than stored as zero.
        db.remove(key)
    else:
        db.insert(key, _UINT64.pack(new_balance))


# Assets


def prefix_asset_key(asset: bytes) -> bytes:
    return bytes([ASSET_PREFIX]) + _id(asset, "asset")


def _decode_asset(value: bytes | None) -> AssetRecord | None:
    if value is None:
        return None
    (length,) = _UINT16.unpack_from(value)
    start = _UINT16.size
    metadata = value[start : start + length]
    offset = start + length
    (supply,) = _UINT64.unpack_from(value, offset)
    offset += _UINT64.size
    owner = value[offset : offset + PUBLIC_KEY_LEN]
    warp = value[offset + PUBLIC_KEY_LEN] == 0x1
    return AssetRecord(metadata=bytes(metadata), supply=supply, owner=bytes(owner), warp=warp)


def get_asset(db: Database, asset: bytes) -> AssetRecord | None:
    return _decode_asset(db.get(prefix_asset_key(asset)))


def get_asset_from_state(read_state: ReadState, asset: bytes) -> AssetRecord | None:
    (value,) = read_state([prefix_asset_key(asset)])
    return _decode_asset(value)


def set_asset(
    db: Database, asset: bytes, metadata: bytes, supply: int, owner: bytes, warp: bool
) -> None:
    metadata = bytes(metadata)
    if len(metadata) > MAX_UINT16:
        raise ValueError(f"metadata must be at most {MAX_UINT16} bytes")
    value = b"".join(
        (
            _UINT16.pack(len(metadata)),
            metadata,
            _UINT64.pack(_uint64(supply, "supply")),
            _public_key(owner),
            b"\x01" if warp else b"\x00",
        )
    )
    db.insert(prefix_asset_key(asset), value)


def delete_asset(db: Database, asset: bytes) -> None:
    db.remove(prefix_asset_key(asset))


# Orders


def prefix_order_key(tx_id: bytes) -> bytes:
    return bytes([ORDER_PREFIX]) + _id(tx_id, "tx id")


def set_order(
    db: Database,
    tx_id: bytes,
    in_asset: bytes,
    in_tick: int,
    out_asset: bytes,
    out_tick: int,
    supply: int,
    owner: bytes,
) -> None:
    value = _ORDER_VALUE.pack(
        _id(in_asset, "in asset"),
        _uint64(in_tick, "in tick"),
        _id(out_asset, "out asset"),
        _uint64(out_tick, "out tick"),
        _uint64(supply, "supply"),
        _public_key(owner),
    )
    db.insert(prefix_order_key(tx_id), value)


def get_order(db: Database, order: bytes) -> OrderRecord | None:
    value = db.get(prefix_order_key(order))
    if value is None:
        return None
    in_asset, in_tick, out_asset, out_tick, remaining, owner = _ORDER_VALUE.unpack_from(value)
    return OrderRecord(
        in_asset=in_asset,
        in_tick=in_tick,
        out_asset=out_asset,
        out_tick=out_tick,
        remaining=remaining,
        owner=owner,
    )


def delete_order(db: Database, order: bytes) -> None:
    db.remove(prefix_order_key(order))


# Loans


def prefix_loan_key(asset: bytes, destination: bytes) -> bytes:
    return bytes([LOAN_PREFIX]) + _id(asset, "asset") + _id(destination, "destination")


def get_loan(db: Database, asset: bytes, destination: bytes) -> int:
    return _decode_uint64(db.get(prefix_loan_key(asset, destination)))


def get_loan_from_state(read_state: ReadState, asset: bytes, destination: bytes) -> int:
    (value,) = read_state([prefix_loan_key(asset, destination)])
    return _decode_uint64(value)


def set_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    key = prefix_loan_key(asset, destination)
    db.insert(key, _UINT64.pack(_uint64(amount, "amount")))


def add_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan + _uint64(amount, "amount")
    if new_loan > MAX_UINT64:
        raise InvalidBalanceError(
            f"could not add loan (asset={asset.hex()}, "
            f"destination={destination.hex()}, amount={amount})"
        )
    set_loan(db, asset, destination, new_loan)


def sub_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan - _uint64(amount, "amount")
    if new_loan < 0:
        raise InvalidBalanceError(
            f"could not subtract loan (asset={asset.hex()}, "
            f"destination={destination.hex()}, amount={amount})"
        )
    if new_loan == 0:
        db.remove(prefix_loan_key(asset, destination))
    else:
        set_loan(db, asset, destination, new_loan)


# Other keys


def height_key() -> bytes:
    return bytes([HEIGHT_PREFIX])


def incoming_warp_key_prefix(source_chain_id: bytes, msg_id: bytes) -> bytes:
    return (
        bytes([INCOMING_WARP_PREFIX])
        + _id(source_chain_id, "source chain id")
        + _id(msg_id, "message id")
    )


def outgoing_warp_key_prefix(tx_id: bytes) -> bytes:
    return bytes([OUTGOING_WARP_PREFIX]) + _id(tx_id, "tx id")
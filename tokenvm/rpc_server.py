"""JSON-RPC service that answers token VM state queries."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from .addresses import AddressError, address, parse_address
from .errors import AssetNotFoundError, TxNotFoundError
from .storage import ID_LEN, AssetRecord, TransactionRecord

JSON_RPC_ENDPOINT = "/tokenapi"
ORDERS_TO_SEND = 128

DEFAULT_NAMESPACE = "tokenvm"
DEFAULT_HRP = "token"

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000


class Controller(Protocol):
    """State the JSON-RPC service reads from."""

    def genesis(self) -> Any: ...

    def get_transaction(self, tx_id: bytes) -> TransactionRecord | None: ...

    def get_asset_from_state(self, asset: bytes) -> AssetRecord | None: ...

    def get_balance_from_state(self, public_key: bytes, asset: bytes) -> int: ...

    def orders(self, pair: str, limit: int) -> Sequence[Mapping[str, Any]]: ...

    def get_loan_from_state(self, asset: bytes, destination: bytes) -> int: ...


class _Fault(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _params(raw: Any) -> Mapping[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, list) and len(raw) <= 1:
        if not raw:
            return {}
        if isinstance(raw[0], Mapping):
            return raw[0]
        if raw[0] is None:
            return {}
    raise _Fault(INVALID_PARAMS, "params must be a single object")


def _id_param(params: Mapping[str, Any], key: str) -> bytes:
    value = params.get(key)
    if value in (None, ""):
        return bytes(ID_LEN)
    if not isinstance(value, str):
        raise _Fault(INVALID_PARAMS, f"{key} must be a hex string")
    try:
        decoded = bytes.fromhex(value)
    except ValueError as exc:
        raise _Fault(INVALID_PARAMS, f"{key} is not valid hex") from exc
    if len(decoded) != ID_LEN:
        raise _Fault(INVALID_PARAMS, f"{key} must be {ID_LEN} bytes")
    return decoded


def _str_param(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _Fault(INVALID_PARAMS, f"{key} must be a string")
    return value


class JSONRPCServer:
    """Answers genesis, transaction, asset, balance, order and loan queries."""

    def __init__(
        self,
        controller: Controller,
        *,
        hrp: str = DEFAULT_HRP,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._controller = controller
        self._hrp = hrp
        self._namespace = namespace
        handlers: dict[str, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
            "genesis": lambda p: self.genesis(),
            "tx": lambda p: self.tx(_id_param(p, "txId")),
            "asset": lambda p: self.asset(_id_param(p, "asset")),
            "balance": lambda p: self.balance(_str_param(p, "address"), _id_param(p, "asset")),
            "orders": lambda p: self.orders(_str_param(p, "pair")),
            "loan": lambda p: self.loan(_id_param(p, "asset"), _id_param(p, "destination")),
        }
        self._methods = {f"{namespace}.{name}": handler for name, handler in handlers.items()}

    def genesis(self) -> dict[str, Any]:
        return {"genesis": self._controller.genesis()}

    def tx(self, tx_id: bytes) -> dict[str, Any]:
        record = self._controller.get_transaction(tx_id)
        if record is None:
            raise TxNotFoundError()
        return {"timestamp": record.timestamp, "success": record.success, "units": record.units}

    def asset(self, asset: bytes) -> dict[str, Any]:
        record = self._controller.get_asset_from_state(asset)
        if record is None:
            raise AssetNotFoundError()
        return {
            "metadata": base64.b64encode(record.metadata).decode("ascii"),
            "supply": record.supply,
            "owner": address(record.owner, self._hrp),
            "warp": record.warp,
        }

    def balance(self, address: str, asset: bytes) -> dict[str, Any]:
        public_key = parse_address(address, self._hrp)
        return {"amount": self._controller.get_balance_from_state(public_key, asset)}

    def orders(self, pair: str) -> dict[str, Any]:
        return {"orders": list(self._controller.orders(pair, ORDERS_TO_SEND))}

    def loan(self, asset: bytes, destination: bytes) -> dict[str, Any]:
        return {"amount": self._controller.get_loan_from_state(asset, destination)}

    def handle(self, request: Any) -> dict[str, Any]:
        """Answer one decoded JSON-RPC 2.0 request with a response object."""
        request_id = request.get("id") if isinstance(request, Mapping) else None
        try:
            if not isinstance(request, Mapping):
                raise _Fault(INVALID_REQUEST, "invalid request")
            method = request.get("method")
            handler = self._methods.get(method) if isinstance(method, str) else None
            if handler is None:
                raise _Fault(METHOD_NOT_FOUND, f"method not found: {method}")
            result = handler(_params(request.get("params")))
        except _Fault as fault:
            return self._error(request_id, fault.code, fault.message)
        except (AddressError, binascii.Error) as exc:
            return self._error(request_id, SERVER_ERROR, str(exc))
        except Exception as exc:  # errors from the controller reach the caller as messages
            return self._error(request_id, SERVER_ERROR, str(exc))
        return {"jsonrpc": "2.0", "result": result, "id": request_id}

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "error": {"code": code, "message": message},
            "id": request_id,
        }
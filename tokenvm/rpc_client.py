"""Client for the token VM JSON-RPC service."""

from __future__ import annotations

import base64
import itertools
import json
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import AssetNotFoundError, TxNotFoundError
from .rpc_server import DEFAULT_NAMESPACE, JSON_RPC_ENDPOINT

logger = logging.getLogger(__name__)

Transport = Callable[[str, Mapping[str, Any]], Mapping[str, Any]]


class RPCError(Exception):
    """The service answered with an error or could not be reached."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass(frozen=True)
class TxStatus:
    found: bool
    success: bool
    timestamp: int


@dataclass(frozen=True)
class AssetStatus:
    exists: bool
    metadata: bytes
    supply: int
    owner: str
    warp: bool


@dataclass(frozen=True)
class Parser:
    """Chain identity and genesis needed to parse the chain's transactions."""

    chain_id: bytes
    genesis: Any


def http_transport(url: str, payload: Mapping[str, Any], timeout: float = 30.0) -> Mapping[str, Any]:
    """POST a JSON-RPC payload and return the decoded response."""
    request = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as exc:
        body = exc.read()
        try:
            return json.loads(body)
        except ValueError:
            raise RPCError(f"http status {exc.code}", exc.code) from exc
    except urllib.error.URLError as exc:
        raise RPCError(str(exc.reason)) from exc
    try:
        return json.loads(body)
    except ValueError as exc:
        raise RPCError("invalid JSON response") from exc


class JSONRPCClient:
    """Queries one chain's token VM service."""

    def __init__(
        self,
        uri: str,
        chain_id: bytes,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        transport: Transport | None = None,
        poll_interval: float = 0.5,
        wait_timeout: float | None = None,
    ) -> None:
        self.endpoint = uri.removesuffix("/") + JSON_RPC_ENDPOINT
        self.chain_id = bytes(chain_id)
        self._namespace = namespace
        self._transport = transport or http_transport
        self._poll_interval = poll_interval
        self._wait_timeout = wait_timeout
        self._ids = itertools.count(1)
        self._genesis: Any = None

    def _send(self, method: str, params: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "method": f"{self._namespace}.{method}",
            "params": [dict(params or {})],
            "id": next(self._ids),
        }
        response = self._transport(self.endpoint, payload)
        error = response.get("error")
        if error:
            if isinstance(error, Mapping):
                raise RPCError(str(error.get("message", "")), error.get("code"))
            raise RPCError(str(error))
        return response.get("result") or {}

    def genesis(self) -> Any:
        if self._genesis is None:
            self._genesis = self._send("genesis").get("genesis")
        return self._genesis

    def tx(self, tx_id: bytes) -> TxStatus:
        try:
            result = self._send("tx", {"txId": bytes(tx_id).hex()})
        except RPCError as exc:
            if TxNotFoundError.message in exc.message:
                return TxStatus(found=False, success=False, timestamp=-1)
            raise
        return TxStatus(found=True, success=bool(result.get("success")), timestamp=int(result.get("timestamp", 0)))

    def asset(self, asset: bytes) -> AssetStatus:
        try:
            result = self._send("asset", {"asset": bytes(asset).hex()})
        except RPCError as exc:
            if AssetNotFoundError.message in exc.message:
                return AssetStatus(exists=False, metadata=b"", supply=0, owner="", warp=False)
            raise
        return AssetStatus(
            exists=True,
            metadata=base64.b64decode(result.get("metadata") or ""),
            supply=int(result.get("supply", 0)),
            owner=str(result.get("owner", "")),
            warp=bool(result.get("warp")),
        )

    def balance(self, address: str, asset: bytes) -> int:
        result = self._send("balance", {"address": address, "asset": bytes(asset).hex()})
        return int(result.get("amount", 0))

    def orders(self, pair: str) -> list[Any]:
        return list(self._send("orders", {"pair": pair}).get("orders") or [])

    def loan(self, asset: bytes, destination: bytes) -> int:
        result = self._send(
            "loan", {"asset": bytes(asset).hex(), "destination": bytes(destination).hex()}
        )
        return int(result.get("amount", 0))

    def _wait(self, check: Callable[[], bool]) -> None:
        deadline = None if self._wait_timeout is None else time.monotonic() + self._wait_timeout
        while not check():
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError("condition not met before the wait timeout")
            time.sleep(self._poll_interval)

    def wait_for_balance(self, address: str, asset: bytes, minimum: int) -> None:
        """Block until ``address`` holds at least ``minimum`` of ``asset``."""

        def check() -> bool:
            reached = self.balance(address, asset) >= minimum
            if not reached:
                logger.info("waiting for %d balance: %s", minimum, address)
            return reached

        self._wait(check)

    def wait_for_transaction(self, tx_id: bytes) -> bool:
        """Block until the transaction is known; return whether it succeeded."""
        outcome: list[TxStatus] = []

        def check() -> bool:
            status = self.tx(tx_id)
            outcome[:] = [status]
            return status.found

        self._wait(check)
        return outcome[0].success

    def parser(self) -> Parser:
        return Parser(chain_id=self.chain_id, genesis=self.genesis())
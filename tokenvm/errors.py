"""Errors raised by the token VM state layer and its RPC service."""

from __future__ import annotations


class TokenVMError(Exception):
    """Base class for token VM errors; an optional detail follows the message."""

    message = "token vm error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class TxNotFoundError(TokenVMError):
    """The requested transaction is not known."""

    message = "tx not found"


class AssetNotFoundError(TokenVMError):
    """The requested asset does not exist."""

    message = "asset not found"


class InvalidBalanceError(TokenVMError):
    """A balance or loan update would overflow or go below zero."""

    message = "invalid balance"
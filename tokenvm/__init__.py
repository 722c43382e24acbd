"""Key-value state layout, bech32 addresses and a JSON-RPC query service for a token ledger."""

__version__ = "0.0.1"
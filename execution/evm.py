from __future__ import annotations

from functools import lru_cache
from typing import Any

from eth_utils import is_hex_address as _is_hex_address
from eth_utils import to_checksum_address
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware
from web3.providers.rpc import HTTPProvider

from errors import ConfigurationError, InvalidTransactionError


@lru_cache(maxsize=4)
def get_web3(url: str, timeout: float = 10.0) -> Web3:
    """
    Web3 client for the target node.

    Permissioned networks (IBFT / QBFT / Raft) put validator data in extraData,
    so the PoA middleware is always installed.
    """
    if not url:
        raise ConfigurationError("Missing target node URL. Set NODE_URL.")
    w3 = Web3(HTTPProvider(url, request_kwargs={"timeout": float(timeout)}))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    if not w3.is_connected():
        raise ConfigurationError(f"RPC not reachable ({url})", {"url": url})
    return w3


def is_hex_address(s: str) -> bool:
    v = (s or "").strip()
    if not (v.startswith("0x") and len(v) == 42):
        return False
    return _is_hex_address(v)


def checksum(address: str) -> str:
    if not is_hex_address(address):
        raise InvalidTransactionError(f"Invalid address: {address!r}", {"address": address})
    return to_checksum_address(address)


def to_hex(v: Any) -> str:
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    s = str(v)
    return s if s.startswith("0x") else "0x" + s


def rpc_request(w3: Web3, method: str, params: list) -> Any:
    """Raw JSON-RPC call for methods web3.py does not wrap (eea_*, priv_*)."""
    return w3.manager.request_blocking(method, params)


def send_raw_transaction(w3: Web3, raw_tx: bytes) -> str:
    tx_hash = w3.eth.send_raw_transaction(raw_tx)
    # tx_hash is HexBytes
    return w3.to_hex(tx_hash)

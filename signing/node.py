from __future__ import annotations

from typing import TYPE_CHECKING

from eth_utils import keccak, to_checksum_address
from web3 import Web3

from errors import NoAccountsAvailable, SigningServiceError, classify_exception
from observability import build_log_context, log_event
from signing import encoding
from signing.base import Account, SignedTransaction, SigningBackend

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction


class NativeNodeBackend(SigningBackend):
    """
    Sign with the first account the target node manages.

    Public transactions are signed through eth_signTransaction and submitted like
    any other raw transaction. Private transactions are not signed here at all:
    the node signs and submits them in one eea_sendTransaction call, so the
    pipeline hands them to the privacy client instead (see `node_managed`).
    """

    name = "node"
    supports_privacy = True
    node_managed = True
    default_call_gas = 500000
    default_deploy_gas = 500000

    def __init__(self, w3: Web3) -> None:
        self._w3 = w3
        self._ctx = build_log_context(backend=self.name)

    def resolve_account(self) -> Account:
        accounts = list(self._w3.eth.accounts or [])
        if not accounts:
            raise NoAccountsAvailable("Node has no managed accounts")
        address = to_checksum_address(accounts[0])
        log_event("account_resolved", ctx=self._ctx, data={"address": address, "found": len(accounts)})
        return Account(address=address)

    def sign(self, tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
        if tx.privacy is not None:
            raise SigningServiceError(
                "Node-managed private transactions are signed by eea_sendTransaction",
                {"address": account.address},
            )
        params = dict(tx.to_dict())
        params["from"] = account.address
        try:
            result = self._w3.eth.sign_transaction(params)
            raw = bytes(result["raw"])
            v, r, s = encoding.decode_signature(raw)
        except Exception as e:
            err = classify_exception(e)
            raise SigningServiceError(
                f"Node failed to sign the transaction: {err.message}",
                {"cause_code": err.code, "address": account.address},
            ) from e
        return SignedTransaction(unsigned=tx, v=v, r=r, s=s, raw_transaction=raw, hash=keccak(raw))

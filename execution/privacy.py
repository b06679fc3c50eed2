"""
EEA / Besu private transaction adapter.

Private nonces, private submission and private receipts go through their own
RPC methods. Privacy-group lifecycle calls are passed straight through to the
node; nothing about group membership is cached here.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from web3 import Web3

from errors import SubmissionError, classify_exception
from execution.evm import rpc_request
from observability import build_log_context, log_event

if TYPE_CHECKING:
    from execution.builder import PrivacyFields, UnsignedTransaction

PRIVACY_CTX = build_log_context(component="privacy")


def _to_int(v: Any) -> int:
    if isinstance(v, int):
        return v
    s = str(v).strip()
    return int(s, 16) if s.startswith("0x") else int(s)


class PrivacyClient:
    def __init__(
        self,
        w3: Web3,
        *,
        receipt_timeout: float = 120.0,
        poll_interval: float = 1.0,
    ) -> None:
        self._w3 = w3
        self._receipt_timeout = receipt_timeout
        self._poll_interval = poll_interval

    def _request(self, method: str, params: list) -> Any:
        return rpc_request(self._w3, method, params)

    def get_private_nonce(self, address: str, privacy: "PrivacyFields") -> int:
        """
        Private nonce scoped to the privacy group, or to the
        (privateFrom, privateFor) set. Independent of the public nonce.
        """
        if privacy.privacy_group_id:
            result = self._request("priv_getTransactionCount", [address, privacy.privacy_group_id])
        else:
            result = self._request(
                "priv_getEeaTransactionCount",
                [address, privacy.private_from, list(privacy.private_for)],
            )
        return _to_int(result)

    def send_raw_transaction(self, payload: str) -> str:
        try:
            tx_hash = self._request("eea_sendRawTransaction", [payload])
        except Exception as e:
            err = classify_exception(e)
            raise SubmissionError(
                f"Private transaction rejected: {err.message}", {"cause_code": err.code}
            ) from e
        log_event("private_tx_sent", ctx=PRIVACY_CTX, data={"tx_hash": tx_hash, "signed_by": "client"})
        return str(tx_hash)

    def send_transaction(self, tx: "UnsignedTransaction", from_address: str) -> str:
        """eea_sendTransaction: the node signs with its own account and submits."""
        if tx.privacy is None:
            raise ValueError("send_transaction requires privacy fields")
        params: Dict[str, Any] = {
            "from": from_address,
            "data": tx.data,
            "gas": hex(tx.gas),
            "gasPrice": hex(tx.gas_price),
            "nonce": hex(tx.nonce),
        }
        if tx.to:
            params["to"] = tx.to
        params.update(tx.privacy.to_rpc())
        try:
            tx_hash = self._request("eea_sendTransaction", [params])
        except Exception as e:
            err = classify_exception(e)
            raise SubmissionError(
                f"Private transaction rejected: {err.message}", {"cause_code": err.code}
            ) from e
        log_event("private_tx_sent", ctx=PRIVACY_CTX, data={"tx_hash": tx_hash, "signed_by": "node"})
        return str(tx_hash)

    def get_private_receipt(self, tx_hash: str, private_from: Optional[str] = None) -> Optional[Dict[str, Any]]:
        params: List[Any] = [tx_hash]
        if private_from:
            params.append(private_from)
        return self._request("priv_getTransactionReceipt", params)

    def wait_for_private_receipt(self, tx_hash: str, private_from: Optional[str] = None) -> Dict[str, Any]:
        """Poll for the private receipt until it appears or the timeout passes."""
        deadline = time.monotonic() + self._receipt_timeout
        while True:
            receipt = self.get_private_receipt(tx_hash, private_from)
            if receipt:
                return dict(receipt)
            if time.monotonic() >= deadline:
                raise SubmissionError(
                    f"Timed out waiting for private receipt of {tx_hash}",
                    {"tx_hash": tx_hash, "timeout_sec": self._receipt_timeout},
                    code="receipt_timeout",
                )
            time.sleep(self._poll_interval)

    def find_privacy_groups(self, addresses: List[str]) -> List[Dict[str, Any]]:
        return list(self._request("priv_findPrivacyGroup", [list(addresses)]) or [])

    def create_privacy_group(
        self,
        addresses: List[str],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        options: Dict[str, Any] = {"addresses": list(addresses)}
        if name:
            options["name"] = name
        if description:
            options["description"] = description
        group_id = self._request("priv_createPrivacyGroup", [options])
        log_event("privacy_group_created", ctx=PRIVACY_CTX, data={"privacy_group_id": group_id})
        return str(group_id)

    def delete_privacy_group(self, group_id: str) -> str:
        result = self._request("priv_deletePrivacyGroup", [group_id])
        log_event("privacy_group_deleted", ctx=PRIVACY_CTX, data={"privacy_group_id": group_id})
        return str(result)

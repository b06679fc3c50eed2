from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from web3 import Web3

from errors import SubmissionError, classify_exception
from execution.evm import send_raw_transaction, to_hex
from execution.privacy import PrivacyClient
from observability import build_log_context, log_event
from signing.base import SignedTransaction

SUBMIT_CTX = build_log_context(component="submitter")


def _status_ok(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str):
        return int(v, 16) == 1 if v.startswith("0x") else v.strip().lower() in {"1", "true", "success"}
    return bool(int(v))


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    status: bool
    contract_address: Optional[str] = None
    output: Optional[str] = None
    block_number: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_rpc(cls, receipt: Dict[str, Any]) -> "Receipt":
        tx_hash = receipt.get("transactionHash") or receipt.get("commitmentHash") or ""
        block = receipt.get("blockNumber")
        if isinstance(block, str):
            block = int(block, 16) if block.startswith("0x") else int(block)
        return cls(
            transaction_hash=to_hex(tx_hash) if tx_hash else "",
            status=_status_ok(receipt.get("status")),
            contract_address=receipt.get("contractAddress"),
            output=receipt.get("output"),
            block_number=block,
            raw=dict(receipt),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_hash": self.transaction_hash,
            "status": "success" if self.status else "failure",
            "contract_address": self.contract_address,
            "output": self.output,
            "block_number": self.block_number,
        }


class Submitter:
    """
    Sends a signed transaction and waits for its receipt.

    Public transactions go through eth_sendRawTransaction and web3's receipt
    wait; private ones through eea_sendRawTransaction and priv receipt polling.
    Nothing is retried.
    """

    def __init__(self, w3: Web3, privacy_client: PrivacyClient, *, receipt_timeout: float = 120.0) -> None:
        self._w3 = w3
        self._privacy = privacy_client
        self._receipt_timeout = receipt_timeout

    def submit(self, signed: SignedTransaction) -> Receipt:
        log_event(
            "tx_signed",
            ctx=SUBMIT_CTX,
            data={"tx_hash": signed.hash_hex, "payload": signed.payload, "private": signed.unsigned.is_private},
        )
        if signed.unsigned.privacy is not None:
            tx_hash = self._privacy.send_raw_transaction(signed.payload)
            return self.confirm_private(tx_hash, signed.unsigned.privacy.private_from)
        return self.confirm_public(self._send_public(signed))

    def _send_public(self, signed: SignedTransaction) -> str:
        try:
            return send_raw_transaction(self._w3, signed.raw_transaction)
        except Exception as e:
            err = classify_exception(e)
            raise SubmissionError(
                f"Failed to execute the transaction. Error: {err.message}",
                {"cause_code": err.code, "tx_hash": signed.hash_hex},
            ) from e

    def confirm_public(self, tx_hash: str) -> Receipt:
        try:
            raw = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except Exception as e:
            err = classify_exception(e)
            code = "receipt_timeout" if err.code == "receipt_timeout" else "submission_error"
            raise SubmissionError(
                f"No receipt for {tx_hash}: {err.message}", {"tx_hash": tx_hash}, code=code
            ) from e
        return self._check(Receipt.from_rpc(dict(raw)))

    def confirm_private(self, tx_hash: str, private_from: Optional[str]) -> Receipt:
        raw = self._privacy.wait_for_private_receipt(tx_hash, private_from)
        receipt = Receipt.from_rpc(raw)
        if not receipt.transaction_hash:
            receipt = Receipt(
                transaction_hash=tx_hash,
                status=receipt.status,
                contract_address=receipt.contract_address,
                output=receipt.output,
                block_number=receipt.block_number,
                raw=receipt.raw,
            )
        return self._check(receipt)

    def _check(self, receipt: Receipt) -> Receipt:
        if not receipt.status:
            raise SubmissionError(
                "Transaction failed",
                {"receipt": receipt.to_dict()},
                code="transaction_failed",
            )
        log_event("tx_confirmed", ctx=SUBMIT_CTX, data=receipt.to_dict())
        return receipt

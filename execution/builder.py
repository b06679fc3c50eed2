from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from web3 import Web3

from errors import InvalidTransactionError
from execution.evm import checksum
from execution.gas import GasEstimator
from observability import build_log_context, log_event
from signing import encoding
from signing.base import Account

if TYPE_CHECKING:
    from execution.privacy import PrivacyClient

BUILDER_CTX = build_log_context(component="tx_builder")


@dataclass(frozen=True)
class PrivacyFields:
    """
    Private transaction addressing. Either a private-for set or a privacy group
    id, never both.
    """

    private_from: str
    private_for: Tuple[str, ...] = ()
    privacy_group_id: Optional[str] = None
    restriction: str = "restricted"

    def __post_init__(self) -> None:
        if not self.private_from:
            raise InvalidTransactionError("privateFrom is required for private transactions")
        if self.private_for and self.privacy_group_id:
            raise InvalidTransactionError(
                "privateFor and privacyGroupId are mutually exclusive",
                {"private_for": list(self.private_for), "privacy_group_id": self.privacy_group_id},
            )
        if not self.private_for and not self.privacy_group_id:
            raise InvalidTransactionError("Either privateFor or privacyGroupId must be set")

    def to_rpc(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"privateFrom": self.private_from, "restriction": self.restriction}
        if self.privacy_group_id:
            params["privacyGroupId"] = self.privacy_group_id
        else:
            params["privateFor"] = list(self.private_for)
        return params


@dataclass(frozen=True)
class UnsignedTransaction:
    nonce: int
    to: Optional[str]
    data: str
    gas: int
    gas_price: int = 0
    value: int = 0
    chain_id: Optional[int] = None
    privacy: Optional[PrivacyFields] = field(default=None)

    @property
    def is_contract_creation(self) -> bool:
        return not self.to

    @property
    def is_private(self) -> bool:
        return self.privacy is not None

    def to_dict(self) -> Dict[str, Any]:
        """web3-style transaction dict (no signature fields)."""
        tx: Dict[str, Any] = {
            "nonce": self.nonce,
            "gasPrice": self.gas_price,
            "gas": self.gas,
            "value": self.value,
            "data": self.data,
        }
        if self.to:
            tx["to"] = self.to
        if self.chain_id:
            tx["chainId"] = self.chain_id
        return tx

    def signing_hash(self) -> bytes:
        return encoding.signing_hash(self)


class TransactionBuilder:
    """
    Assembles unsigned transactions: nonce, zero gas price, estimated gas and
    optional chain id.
    """

    def __init__(
        self,
        w3: Web3,
        estimator: GasEstimator,
        privacy_client: "PrivacyClient | None" = None,
        *,
        chain_id: Optional[int] = None,
    ) -> None:
        self._w3 = w3
        self._estimator = estimator
        self._privacy = privacy_client
        self._chain_id = chain_id

    def next_nonce(self, account: Account, privacy: Optional[PrivacyFields] = None) -> int:
        if privacy is None:
            return int(self._w3.eth.get_transaction_count(account.address, "pending"))
        if self._privacy is None:
            raise InvalidTransactionError("Private transaction requested but no privacy client is configured")
        return self._privacy.get_private_nonce(account.address, privacy)

    def estimate_gas(self, account: Account, *, to: Optional[str], data: str, default_gas: int) -> int:
        candidate: Dict[str, Any] = {"from": account.address, "data": data}
        if to:
            candidate["to"] = to
        return self._estimator.estimate(candidate, default_gas)

    def build(
        self,
        account: Account,
        *,
        to: Optional[str],
        data: str,
        default_gas: int,
        privacy: Optional[PrivacyFields] = None,
    ) -> UnsignedTransaction:
        to_addr = checksum(to) if to else None
        if not data.startswith("0x"):
            data = "0x" + data

        nonce = self.next_nonce(account, privacy)

        if privacy is None:
            gas = self.estimate_gas(account, to=to_addr, data=data, default_gas=default_gas)
        else:
            # eth_estimateGas only sees public state; the private contract has no public code
            gas = default_gas

        tx = UnsignedTransaction(
            nonce=nonce,
            to=to_addr,
            data=data,
            gas=gas,
            gas_price=0,
            value=0,
            chain_id=self._chain_id,
            privacy=privacy,
        )
        log_event(
            "tx_built",
            ctx=BUILDER_CTX,
            data={
                "from": account.address,
                "to": to_addr,
                "nonce": nonce,
                "gas": gas,
                "private": privacy is not None,
                "contract_creation": tx.is_contract_creation,
            },
        )
        return tx

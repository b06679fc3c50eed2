from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction


@dataclass(frozen=True)
class Account:
    """
    Signing identity for one invocation.

    Exactly one of `private_key` / `key_handle` is set, or neither for
    node-managed accounts.
    """

    address: str
    private_key: Optional[bytes] = field(default=None, repr=False)
    key_handle: Optional[str] = None

    def __post_init__(self) -> None:
        if self.private_key is not None and self.key_handle is not None:
            raise ValueError("Account cannot carry both a private key and a key handle")


@dataclass(frozen=True)
class Signature:
    r: int
    s: int
    recovery_id: Optional[int] = None


@dataclass(frozen=True)
class SignedTransaction:
    unsigned: "UnsignedTransaction"
    v: int
    r: int
    s: int
    raw_transaction: bytes
    hash: bytes

    @property
    def payload(self) -> str:
        return "0x" + self.raw_transaction.hex()

    @property
    def hash_hex(self) -> str:
        return "0x" + self.hash.hex()


class SigningBackend(ABC):
    """
    A key-holding backend: resolves the signing account and signs transactions.

    Default gas values are used when the node cannot estimate.
    """

    name: str = "base"
    supports_privacy: bool = False
    # True when the node itself holds the key and signs private transactions on submit
    node_managed: bool = False
    default_call_gas: int = 500000
    default_deploy_gas: int = 500000

    @abstractmethod
    def resolve_account(self) -> Account:
        raise NotImplementedError

    @abstractmethod
    def sign(self, tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
        raise NotImplementedError

    def default_gas(self, *, contract_creation: bool) -> int:
        return self.default_deploy_gas if contract_creation else self.default_call_gas

from __future__ import annotations

from typing import TYPE_CHECKING

from eth_account import Account as EthAccount
from eth_keys import keys
from eth_utils import ValidationError, keccak

from errors import SigningServiceError
from signing import encoding
from signing.base import Account, SignedTransaction
from signing.recovery import encode_v

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction


def sign_with_private_key(tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
    """
    Sign with a key held in process memory.

    Public transactions use eth_account's legacy signer; private transactions
    hash the private RLP form and sign it with eth_keys. Either way the
    recovery id is known directly.
    """
    if account.private_key is None:
        raise SigningServiceError("Account has no private key to sign with", {"address": account.address})

    try:
        if tx.privacy is None:
            signed = EthAccount.sign_transaction(tx.to_dict(), account.private_key)
            return SignedTransaction(
                unsigned=tx,
                v=int(signed.v),
                r=int(signed.r),
                s=int(signed.s),
                raw_transaction=bytes(signed.raw_transaction),
                hash=bytes(signed.hash),
            )

        digest = encoding.signing_hash(tx)
        sig = keys.PrivateKey(account.private_key).sign_msg_hash(digest)
        v = encode_v(sig.v, tx.chain_id)
        raw = encoding.encode_signed(tx, v, sig.r, sig.s)
    except (TypeError, ValueError, ValidationError) as e:
        raise SigningServiceError(f"Local signing failed: {e}", {"address": account.address}) from e

    return SignedTransaction(
        unsigned=tx,
        v=v,
        r=sig.r,
        s=sig.s,
        raw_transaction=raw,
        hash=keccak(raw),
    )

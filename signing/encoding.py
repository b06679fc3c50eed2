from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

import rlp
from eth_utils import big_endian_to_int, keccak

if TYPE_CHECKING:
    from execution.builder import PrivacyFields, UnsignedTransaction


def _rlp_int(i: int) -> bytes:
    if i == 0:
        return b""
    return int(i).to_bytes((int(i).bit_length() + 7) // 8, "big")


def _to_bytes(v: Any) -> bytes:
    if v is None:
        return b""
    if isinstance(v, bytes):
        return v
    s = str(v).strip()
    if s.startswith("0x"):
        s = s[2:]
    return bytes.fromhex(s) if s else b""


def _to_address_bytes(v: Optional[str]) -> bytes:
    if not v:
        return b""
    b = _to_bytes(v)
    if len(b) != 20:
        raise ValueError("to must be 20 bytes")
    return b


def _enclave_key(v: str) -> bytes:
    return base64.b64decode(v)


def _base_fields(tx: "UnsignedTransaction") -> List[Any]:
    return [
        _rlp_int(tx.nonce),
        _rlp_int(tx.gas_price),
        _rlp_int(tx.gas),
        _to_address_bytes(tx.to),
        _rlp_int(tx.value),
        _to_bytes(tx.data),
    ]


def _privacy_fields(privacy: "PrivacyFields") -> List[Any]:
    if privacy.privacy_group_id:
        target: Any = _enclave_key(privacy.privacy_group_id)
    else:
        target = [_enclave_key(k) for k in privacy.private_for]
    return [_enclave_key(privacy.private_from), target, privacy.restriction.encode()]


def signing_payload(tx: "UnsignedTransaction") -> bytes:
    """
    RLP of the fields covered by the signature.

    With a chain id the EIP-155 placeholders (chainId, 0, 0) follow the data field;
    private transactions append privateFrom, privateFor|privacyGroupId and restriction.
    """
    items = _base_fields(tx)
    if tx.chain_id:
        items += [_rlp_int(tx.chain_id), b"", b""]
    if tx.privacy is not None:
        items += _privacy_fields(tx.privacy)
    return rlp.encode(items)


def signing_hash(tx: "UnsignedTransaction") -> bytes:
    return keccak(signing_payload(tx))


def encode_signed(tx: "UnsignedTransaction", v: int, r: int, s: int) -> bytes:
    items = _base_fields(tx) + [_rlp_int(v), _rlp_int(r), _rlp_int(s)]
    if tx.privacy is not None:
        items += _privacy_fields(tx.privacy)
    return rlp.encode(items)


def decode_signature(raw: bytes) -> Tuple[int, int, int]:
    """Extract (v, r, s) from a serialized legacy or private transaction."""
    items = rlp.decode(raw)
    if not isinstance(items, list) or len(items) < 9:
        raise ValueError("not a legacy signed transaction")
    v, r, s = (big_endian_to_int(x) for x in items[6:9])
    return v, r, s


def hex_to_bytes(v: str) -> bytes:
    return _to_bytes(v)

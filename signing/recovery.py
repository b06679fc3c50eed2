"""
Recovery-id resolution for detached (r, s) signatures.

A remote key service returns only (r, s). Which of the candidate curve points
produced it is found by recovering the public key for every recovery id and
comparing the derived address with the known signer address.
"""

from __future__ import annotations

from typing import Optional, Tuple

from eth_keys import keys
from eth_keys.backends.native.jacobian import from_jacobian, inv, is_identity, jacobian_add, jacobian_multiply
from eth_keys.constants import SECPK1_A, SECPK1_B, SECPK1_G, SECPK1_N, SECPK1_P
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import big_endian_to_int, keccak

from errors import RecoveryIdNotFound

SECP256K1_HALF_N = SECPK1_N // 2

RECOVERY_IDS = (0, 1, 2, 3)


def normalize_sig(r: int, s: int) -> Tuple[int, int]:
    """Reject out-of-range values and move s into the lower half of the curve order."""
    if r <= 0 or r >= SECPK1_N:
        raise ValueError("invalid r")
    if s <= 0 or s >= SECPK1_N:
        raise ValueError("invalid s")
    if s > SECP256K1_HALF_N:
        s = SECPK1_N - s
    return r, s


def split_raw_signature(sig: bytes) -> Tuple[int, int]:
    """64 raw bytes: first 32 are r, last 32 are s."""
    if len(sig) != 64:
        raise ValueError(f"expected a 64 byte signature, got {len(sig)}")
    return big_endian_to_int(sig[:32]), big_endian_to_int(sig[32:])


def address_from_public_point(x: int | bytes, y: int | bytes) -> str:
    """keccak(x || y), low-order 20 bytes, lowercase 0x-prefixed hex."""
    xb = x.to_bytes(32, "big") if isinstance(x, int) else x.rjust(32, b"\x00")
    yb = y.to_bytes(32, "big") if isinstance(y, int) else y.rjust(32, b"\x00")
    if len(xb) != 32 or len(yb) != 32:
        raise ValueError("public point coordinates must fit in 32 bytes")
    return "0x" + keccak(xb + yb)[-20:].hex()


def _recover_high_x(msg_hash: bytes, recovery_id: int, r: int, s: int) -> Optional[keys.PublicKey]:
    # recovery ids 2 and 3 use x = r + n, only possible while that stays below p
    x = r + SECPK1_N
    if x >= SECPK1_P:
        return None
    alpha = (x * x * x + SECPK1_A * x + SECPK1_B) % SECPK1_P
    beta = pow(alpha, (SECPK1_P + 1) // 4, SECPK1_P)
    if (beta * beta - alpha) % SECPK1_P != 0:
        return None
    y = beta if beta % 2 == recovery_id % 2 else SECPK1_P - beta
    z = big_endian_to_int(msg_hash)
    gz = jacobian_multiply((SECPK1_G[0], SECPK1_G[1], 1), (SECPK1_N - z) % SECPK1_N)
    xy = jacobian_multiply((x, y, 1), s)
    q = jacobian_multiply(jacobian_add(gz, xy), inv(r, SECPK1_N))
    if is_identity(q):
        return None
    qx, qy = from_jacobian(q)
    return keys.PublicKey(qx.to_bytes(32, "big") + qy.to_bytes(32, "big"))


def recover_public_key(msg_hash: bytes, recovery_id: int, r: int, s: int) -> Optional[keys.PublicKey]:
    if recovery_id not in RECOVERY_IDS:
        raise ValueError(f"recovery id must be one of {RECOVERY_IDS}")
    if recovery_id >= 2:
        return _recover_high_x(msg_hash, recovery_id, r, s)
    try:
        sig = keys.Signature(vrs=(recovery_id, r, s))
        return sig.recover_public_key_from_msg_hash(msg_hash)
    except (BadSignature, ValidationError):
        return None


def resolve_recovery_id(msg_hash: bytes, r: int, s: int, expected_address: str) -> int:
    """
    First recovery id in 0..3 whose recovered address equals `expected_address`
    (case-insensitive). Raises RecoveryIdNotFound rather than guessing.
    """
    exp = expected_address.strip().lower()
    if not exp.startswith("0x"):
        exp = "0x" + exp
    for recid in RECOVERY_IDS:
        pub = recover_public_key(msg_hash, recid, r, s)
        if pub is not None and pub.to_checksum_address().lower() == exp:
            return recid
    raise RecoveryIdNotFound(
        "could not determine recovery id (signature does not match the signer address)",
        {"expected_address": exp, "msg_hash": "0x" + msg_hash.hex()},
    )


def encode_v(recovery_id: int, chain_id: Optional[int] = None) -> int:
    """recovery_id + 27, plus chain_id * 2 + 8 when replay protection is on."""
    v = recovery_id + 27
    if chain_id:
        v += chain_id * 2 + 8
    return v

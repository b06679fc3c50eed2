from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests
from eth_utils import keccak, to_checksum_address

from errors import (
    AccountResolutionError,
    PrivateTransactionUnsupportedError,
    SigningServiceError,
    classify_exception,
)
from observability import build_log_context, log_event
from signing import encoding
from signing.base import Account, Signature, SignedTransaction, SigningBackend
from signing.recovery import (
    address_from_public_point,
    encode_v,
    normalize_sig,
    resolve_recovery_id,
    split_raw_signature,
)

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction

KEYVAULT_API_VERSION = "7.4"
KEYVAULT_SCOPE = "https://vault.azure.net/.default"
AAD_TOKEN_URL = "https://login.microsoftonline.com/{directory_id}/oauth2/v2.0/token"
SIGNING_ALGORITHM = "ES256K"


def _b64url_decode(v: str) -> bytes:
    return base64.urlsafe_b64decode(v + "=" * (-len(v) % 4))


def _b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode()


class AzureKeyVaultBackend(SigningBackend):
    """
    Cloud KMS signer backed by an Azure Key Vault secp256k1 key.

    The key never leaves the vault. Only the transaction hash is sent for
    signing; the vault answers with a bare 64-byte (r, s) pair, so the recovery
    id is recovered locally against the vault key's address and the raw
    transaction is assembled here.
    """

    name = "azure_kms"
    supports_privacy = False
    default_call_gas = 50000
    default_deploy_gas = 500000

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        directory_id: str,
        service_name: str,
        key_name: str,
        key_version: str,
        timeout: float = 10.0,
        vault_url: Optional[str] = None,
        token_url: Optional[str] = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url or AAD_TOKEN_URL.format(directory_id=directory_id)
        self._vault_url = (vault_url or f"https://{service_name}.vault.azure.net").rstrip("/")
        self._key_name = key_name
        self._key_version = key_version
        self._timeout = timeout
        self._token: Optional[str] = None
        self._cached_account: Optional[Account] = None
        self._ctx = build_log_context(backend=self.name, key=f"{key_name}/{key_version}")

    @property
    def _key_url(self) -> str:
        return f"{self._vault_url}/keys/{self._key_name}/{self._key_version}"

    def _access_token(self) -> str:
        if self._token:
            return self._token
        r = requests.post(
            self._token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": KEYVAULT_SCOPE,
            },
            timeout=self._timeout,
        )
        r.raise_for_status()
        token = str(r.json().get("access_token") or "").strip()
        if not token:
            raise ValueError("Azure AD returned an empty access token")
        self._token = token
        return token

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token()}"}

    def get_public_key(self) -> Dict[str, Any]:
        r = requests.get(
            self._key_url,
            params={"api-version": KEYVAULT_API_VERSION},
            headers=self._headers(),
            timeout=self._timeout,
        )
        r.raise_for_status()
        jwk = r.json().get("key") or {}
        if jwk.get("kty") not in ("EC", "EC-HSM") or not jwk.get("x") or not jwk.get("y"):
            raise ValueError(f"Key vault key is not an EC key: kty={jwk.get('kty')!r}")
        return jwk

    def resolve_account(self) -> Account:
        # KMS only exposes the public point; the address is keccak(x || y)[-20:].
        if self._cached_account is not None:
            return self._cached_account
        try:
            jwk = self.get_public_key()
            address = address_from_public_point(_b64url_decode(jwk["x"]), _b64url_decode(jwk["y"]))
        except Exception as e:
            err = classify_exception(e)
            raise AccountResolutionError(
                f"Failed to retrieve the signing key from Azure: {err.message}",
                {"cause_code": err.code, "key": f"{self._key_name}/{self._key_version}"},
            ) from e
        self._cached_account = Account(
            address=to_checksum_address(address),
            key_handle=f"{self._key_name}/{self._key_version}",
        )
        log_event("account_resolved", ctx=self._ctx, data={"address": address})
        return self._cached_account

    def sign_digest(self, digest32: bytes) -> bytes:
        if len(digest32) != 32:
            raise ValueError("expected a 32 byte digest")
        r = requests.post(
            f"{self._key_url}/sign",
            params={"api-version": KEYVAULT_API_VERSION},
            json={"alg": SIGNING_ALGORITHM, "value": _b64url_encode(digest32)},
            headers=self._headers(),
            timeout=self._timeout,
        )
        r.raise_for_status()
        value = str(r.json().get("value") or "")
        if not value:
            raise ValueError("Key vault returned an empty signature")
        return _b64url_decode(value)

    def sign(self, tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
        if tx.privacy is not None:
            raise PrivateTransactionUnsupportedError("Private transactions are not supported with external signing")

        digest = tx.signing_hash()
        try:
            r, s = normalize_sig(*split_raw_signature(self.sign_digest(digest)))
        except Exception as e:
            err = classify_exception(e)
            raise SigningServiceError(
                f"Failed to get signature from the signing service: {err.message}",
                {"cause_code": err.code},
            ) from e

        # the vault does not report which curve point it used
        sig = Signature(r=r, s=s, recovery_id=resolve_recovery_id(digest, r, s, account.address))
        v = encode_v(sig.recovery_id, tx.chain_id)
        raw = encoding.encode_signed(tx, v, sig.r, sig.s)
        log_event("tx_signed_remote", ctx=self._ctx, data={"recovery_id": sig.recovery_id, "v": v})
        return SignedTransaction(unsigned=tx, v=v, r=sig.r, s=sig.s, raw_transaction=raw, hash=keccak(raw))

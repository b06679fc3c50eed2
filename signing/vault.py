from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import requests
from eth_utils import keccak, to_checksum_address

from errors import (
    AccountResolutionError,
    ConfigurationError,
    NoAccountsAvailable,
    PrivateTransactionUnsupportedError,
    SigningServiceError,
    classify_exception,
)
from observability import build_log_context, log_event
from signing import encoding
from signing.base import Account, SignedTransaction, SigningBackend

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction

MAX_DETAIL_WORKERS = 8


@dataclass(frozen=True)
class VaultAccount:
    key: str
    address: str


class VaultPluginBackend(SigningBackend):
    """
    HashiCorp Vault ethereum secrets plugin.

    Protocol (HTTP JSON, bearer token):
    LIST {url}/v1/{plugin}/accounts             -> {"data": {"keys": [...]}}
    GET  {url}/v1/{plugin}/accounts/{key}       -> {"data": {"address": "0x..."}}
    POST {url}/v1/{plugin}/accounts/{key}/sign  -> {"data": {"signed_transaction": "0x..."}}

    The plugin signs the whole transaction; its payload is submitted verbatim.
    """

    name = "vault"
    supports_privacy = False
    default_call_gas = 50000
    default_deploy_gas = 500000

    def __init__(
        self,
        url: str,
        token: str,
        *,
        plugin_path: str = "ethereum",
        account_key: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = f"{url.rstrip('/')}/v1/{plugin_path.strip('/')}"
        self._token = token
        self._account_key = account_key
        self._timeout = timeout
        self._ctx = build_log_context(backend=self.name, plugin_path=plugin_path)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def list_account_keys(self) -> List[str]:
        r = requests.request("LIST", f"{self._base_url}/accounts", headers=self._headers(), timeout=self._timeout)
        r.raise_for_status()
        keys = ((r.json() or {}).get("data") or {}).get("keys") or []
        return [str(k) for k in keys]

    def get_account(self, key: str) -> VaultAccount:
        r = requests.get(f"{self._base_url}/accounts/{key}", headers=self._headers(), timeout=self._timeout)
        r.raise_for_status()
        addr = str(((r.json() or {}).get("data") or {}).get("address") or "").strip()
        if not addr:
            raise ValueError(f"Vault account '{key}' has no address")
        return VaultAccount(key=key, address=addr)

    def list_accounts(self) -> List[VaultAccount]:
        """Every plugin account, fetched concurrently, in the order the plugin listed them."""
        keys = self.list_account_keys()
        if not keys:
            return []
        with ThreadPoolExecutor(max_workers=min(MAX_DETAIL_WORKERS, len(keys))) as pool:
            return list(pool.map(self.get_account, keys))

    def _select(self, accounts: List[VaultAccount]) -> VaultAccount:
        if not accounts:
            raise NoAccountsAvailable("Failed to find accounts in HashiCorp Vault")
        if self._account_key:
            for acct in accounts:
                if acct.key == self._account_key:
                    return acct
            raise AccountResolutionError(
                f"Vault account key '{self._account_key}' not found",
                {"available": [a.key for a in accounts]},
            )
        if len(accounts) > 1:
            # the plugin does not define a listing order, so never pick one implicitly
            raise ConfigurationError(
                f"Found {len(accounts)} accounts in HashiCorp Vault; set VAULT_ACCOUNT_KEY to choose one",
                {"available": [a.key for a in accounts]},
            )
        return accounts[0]

    def resolve_account(self) -> Account:
        try:
            accounts = self.list_accounts()
        except Exception as e:
            err = classify_exception(e)
            raise AccountResolutionError(
                f"Failed to find accounts in HashiCorp Vault: {err.message}", {"cause_code": err.code}
            ) from e
        chosen = self._select(accounts)
        log_event(
            "account_resolved",
            ctx=self._ctx,
            data={"address": chosen.address, "key": chosen.key, "found": len(accounts)},
        )
        return Account(address=to_checksum_address(chosen.address), key_handle=chosen.key)

    def _sign_body(self, tx: "UnsignedTransaction") -> Dict[str, Any]:
        data = tx.data[2:] if tx.data.startswith("0x") else tx.data
        body: Dict[str, Any] = {
            "data": data,
            "nonce": hex(tx.nonce),
            "gasPrice": tx.gas_price,
            "gas": tx.gas,
        }
        if tx.to:
            body["to"] = tx.to
        if tx.chain_id:
            body["chainId"] = tx.chain_id
        return body

    def sign(self, tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
        if tx.privacy is not None:
            raise PrivateTransactionUnsupportedError("Private transactions are not supported with external signing")
        if not account.key_handle:
            raise SigningServiceError("Vault account has no plugin key", {"address": account.address})

        try:
            r = requests.post(
                f"{self._base_url}/accounts/{account.key_handle}/sign",
                json=self._sign_body(tx),
                headers=self._headers(),
                timeout=self._timeout,
            )
            r.raise_for_status()
            raw_hex = str(((r.json() or {}).get("data") or {}).get("signed_transaction") or "").strip()
            if not raw_hex:
                raise ValueError("Vault did not return signed_transaction")
            raw = encoding.hex_to_bytes(raw_hex)
            v, sig_r, sig_s = encoding.decode_signature(raw)
        except Exception as e:
            err = classify_exception(e)
            raise SigningServiceError(
                f"Failed to call vault to sign the transaction: {err.message}",
                {"cause_code": err.code, "key": account.key_handle},
            ) from e

        return SignedTransaction(unsigned=tx, v=v, r=sig_r, s=sig_s, raw_transaction=raw, hash=keccak(raw))

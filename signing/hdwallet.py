from __future__ import annotations

from typing import TYPE_CHECKING

import requests
from eth_account import Account as EthAccount
from eth_utils import ValidationError

from errors import AccountResolutionError, WalletServiceUnavailable
from observability import build_log_context, log_event
from signing.base import Account, SignedTransaction, SigningBackend
from signing.local_key import sign_with_private_key

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction


class HDWalletBackend(SigningBackend):
    """
    HD wallet service that hands out derived accounts.

    Protocol (HTTP JSON):
    GET {url}/wallets/{wallet_id}/accounts/{index}
    response: {"address": "0x...", "privateKey": "..."}

    The key is used to sign locally; nothing else is sent back to the service.
    """

    name = "hdwallet"
    supports_privacy = True
    default_call_gas = 500000
    default_deploy_gas = 700000

    def __init__(self, url: str, wallet_id: str, account_index: int, *, timeout: float = 10.0) -> None:
        self._base_url = url.rstrip("/")
        self._wallet_id = wallet_id
        self._account_index = int(account_index)
        self._timeout = timeout
        self._ctx = build_log_context(backend=self.name, wallet_id=wallet_id, account_index=self._account_index)

    def resolve_account(self) -> Account:
        url = f"{self._base_url}/wallets/{self._wallet_id}/accounts/{self._account_index}"
        try:
            r = requests.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise WalletServiceUnavailable(f"Failed to reach HD wallet service: {e}", {"url": url}) from e
        if r.status_code != 200:
            raise WalletServiceUnavailable(
                f"HD wallet service returned HTTP {r.status_code}",
                {"url": url, "status": r.status_code},
            )

        try:
            data = r.json()
            if not isinstance(data, dict):
                raise AccountResolutionError(
                    f"HD wallet returned {type(data).__name__}, expected a JSON object", {"url": url}
                )
            pk = str(data.get("privateKey") or "").strip()
            local = EthAccount.from_key(pk if pk.startswith("0x") else "0x" + pk)
        except (ValueError, ValidationError, AttributeError) as e:
            raise AccountResolutionError(f"HD wallet returned an unusable account: {e}", {"url": url}) from e

        addr = str(data.get("address") or "").strip()
        if addr and addr.lower() != local.address.lower():
            raise AccountResolutionError(
                "HD wallet address does not match its private key",
                {"address": addr, "derived": local.address},
            )
        log_event("account_resolved", ctx=self._ctx, data={"address": local.address})
        return Account(address=local.address, private_key=bytes(local.key))

    def sign(self, tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
        return sign_with_private_key(tx, account)

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from eth_account import Account as EthAccount

from errors import KeystoreCorrupt
from observability import build_log_context, log_event
from signing.base import Account, SignedTransaction, SigningBackend
from signing.local_key import sign_with_private_key

if TYPE_CHECKING:
    from execution.builder import UnsignedTransaction

KEYSTORE_FILENAME = "local-account.json"

# Keys on permissioned networks are protected by the host, not by a passphrase.
KEYSTORE_PASSPHRASE = ""  # nosec B105


class LocalKeystoreBackend(SigningBackend):
    """
    Local account kept in `<keystore_dir>/local-account.json`.

    The key is generated and written on first use, encrypted with an empty
    passphrase. Concurrent first runs from two processes are not guarded.
    """

    name = "keystore"
    supports_privacy = True
    default_call_gas = 500000
    default_deploy_gas = 700000

    def __init__(self, keystore_dir: str | Path, *, kdf: Optional[str] = None, iterations: Optional[int] = None) -> None:
        self._dir = Path(keystore_dir).expanduser()
        self._kdf = kdf
        self._iterations = iterations
        self._account: Optional[Account] = None
        self._ctx = build_log_context(backend=self.name)

    @property
    def path(self) -> Path:
        return self._dir / KEYSTORE_FILENAME

    def _load(self) -> Account:
        try:
            keystore = json.loads(self.path.read_text())
            pk_bytes = EthAccount.decrypt(keystore, KEYSTORE_PASSPHRASE)
        except (OSError, ValueError, TypeError, KeyError) as e:
            raise KeystoreCorrupt(
                f"Keystore file exists but cannot be decrypted: {self.path}",
                {"path": str(self.path), "cause": str(e)},
            ) from e
        local = EthAccount.from_key(pk_bytes)
        return Account(address=local.address, private_key=bytes(local.key))

    def _generate(self) -> Account:
        log_event("keystore_missing", ctx=self._ctx, data={"path": str(self.path)})
        local = EthAccount.create()
        keystore = EthAccount.encrypt(local.key, KEYSTORE_PASSPHRASE, kdf=self._kdf, iterations=self._iterations)
        self._dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(keystore))
        return Account(address=local.address, private_key=bytes(local.key))

    def resolve_account(self) -> Account:
        if self._account is not None:
            return self._account
        self._account = self._load() if self.path.exists() else self._generate()
        log_event("account_resolved", ctx=self._ctx, data={"address": self._account.address, "path": str(self.path)})
        return self._account

    def sign(self, tx: "UnsignedTransaction", account: Account) -> SignedTransaction:
        return sign_with_private_key(tx, account)

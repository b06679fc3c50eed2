from __future__ import annotations

from web3 import Web3

from app.core.settings import Settings, SignerType
from errors import ConfigurationError

from .azure_kms import AzureKeyVaultBackend
from .base import SigningBackend
from .hdwallet import HDWalletBackend
from .keystore import LocalKeystoreBackend
from .node import NativeNodeBackend
from .vault import VaultPluginBackend


def get_backend(settings: Settings, w3: Web3) -> SigningBackend:
    """
    Select the signing backend based on SIGNER_TYPE.

    Supported:
    - keystore (default): generated account in KEYSTORE_DIR
    - hdwallet: HDWALLET_URL + HDWALLET_ID + HDWALLET_ACCOUNT_INDEX
    - azure_kms: Azure AD app credentials + KEYVAULT_* key coordinates
    - vault: VAULT_URL + VAULT_TOKEN (+ VAULT_ACCOUNT_KEY)
    - node: first account managed by the target node
    """
    signer_type = settings.SIGNER_TYPE
    timeout = settings.HTTP_TIMEOUT_SEC
    if signer_type == SignerType.KEYSTORE:
        return LocalKeystoreBackend(settings.KEYSTORE_DIR)
    if signer_type == SignerType.HDWALLET:
        return HDWalletBackend(
            settings.HDWALLET_URL or "",
            settings.HDWALLET_ID or "",
            settings.HDWALLET_ACCOUNT_INDEX or 0,
            timeout=timeout,
        )
    if signer_type == SignerType.AZURE_KMS:
        return AzureKeyVaultBackend(
            client_id=settings.CLIENT_ID or "",
            client_secret=settings.CLIENT_SECRET or "",
            directory_id=settings.DIRECTORY_ID or "",
            service_name=settings.KEYVAULT_SERVICE_NAME or "",
            key_name=settings.KEYVAULT_KEY_NAME or "",
            key_version=settings.KEYVAULT_KEY_VERSION or "",
            timeout=timeout,
        )
    if signer_type == SignerType.VAULT:
        return VaultPluginBackend(
            settings.VAULT_URL or "",
            settings.VAULT_TOKEN or "",
            plugin_path=settings.VAULT_PLUGIN_PATH,
            account_key=settings.VAULT_ACCOUNT_KEY,
            timeout=timeout,
        )
    if signer_type == SignerType.NODE:
        return NativeNodeBackend(w3)
    raise ConfigurationError(f"Unsupported SIGNER_TYPE: {signer_type}")

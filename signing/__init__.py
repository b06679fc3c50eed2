from .azure_kms import AzureKeyVaultBackend
from .base import Account, Signature, SignedTransaction, SigningBackend
from .hdwallet import HDWalletBackend
from .keystore import LocalKeystoreBackend
from .node import NativeNodeBackend
from .vault import VaultPluginBackend

__all__ = [
    "Account",
    "Signature",
    "SignedTransaction",
    "SigningBackend",
    "LocalKeystoreBackend",
    "HDWalletBackend",
    "AzureKeyVaultBackend",
    "VaultPluginBackend",
    "NativeNodeBackend",
]

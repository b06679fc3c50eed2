from unittest.mock import MagicMock

import pytest

from app.core.settings import Settings
from signing.azure_kms import AzureKeyVaultBackend
from signing.factory import get_backend
from signing.hdwallet import HDWalletBackend
from signing.keystore import LocalKeystoreBackend
from signing.node import NativeNodeBackend
from signing.vault import VaultPluginBackend


@pytest.mark.parametrize(
    "env,expected",
    [
        ({}, LocalKeystoreBackend),
        ({"SIGNER_TYPE": "hdwallet", "HDWALLET_URL": "http://w", "HDWALLET_ID": "w1", "HDWALLET_ACCOUNT_INDEX": "1"}, HDWalletBackend),
        (
            {
                "SIGNER_TYPE": "azure_kms",
                "CLIENT_ID": "c",
                "CLIENT_SECRET": "s",
                "DIRECTORY_ID": "d",
                "KEYVAULT_SERVICE_NAME": "v",
                "KEYVAULT_KEY_NAME": "k",
                "KEYVAULT_KEY_VERSION": "1",
            },
            AzureKeyVaultBackend,
        ),
        ({"SIGNER_TYPE": "vault", "VAULT_URL": "http://vault", "VAULT_TOKEN": "t"}, VaultPluginBackend),
        ({"SIGNER_TYPE": "node"}, NativeNodeBackend),
    ],
)
def test_get_backend_dispatch(clean_env, tmp_path, env, expected):
    clean_env.setenv("KEYSTORE_DIR", str(tmp_path))
    for k, v in env.items():
        clean_env.setenv(k, v)
    backend = get_backend(Settings(), MagicMock())
    assert isinstance(backend, expected)
    assert backend.name == Settings().SIGNER_TYPE.value


def test_backend_gas_defaults():
    assert LocalKeystoreBackend("/tmp/unused").default_gas(contract_creation=True) == 700000
    assert VaultPluginBackend("http://v", "t").default_gas(contract_creation=False) == 50000
    assert VaultPluginBackend("http://v", "t").default_gas(contract_creation=True) == 500000
    assert not AzureKeyVaultBackend.supports_privacy
    assert not VaultPluginBackend.supports_privacy
    assert LocalKeystoreBackend.supports_privacy and HDWalletBackend.supports_privacy

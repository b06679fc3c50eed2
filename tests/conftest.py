import os
import sys

import pytest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from eth_account import Account as EthAccount

from signing.base import Account

# Well-known development key; never funded anywhere that matters.
TEST_PRIVATE_KEY = bytes.fromhex("4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318")


@pytest.fixture
def local_account():
    acct = EthAccount.from_key(TEST_PRIVATE_KEY)
    return Account(address=acct.address, private_key=TEST_PRIVATE_KEY)


@pytest.fixture
def clean_env(monkeypatch):
    for k in list(os.environ.keys()):
        if k.startswith(("SIGNER_", "VAULT_", "HDWALLET_", "KEYVAULT_", "PRIVATE_", "PRIVACY_")) or k in {
            "NODE_URL",
            "CHAIN_ID",
            "CLIENT_ID",
            "CLIENT_SECRET",
            "DIRECTORY_ID",
            "KEYSTORE_DIR",
        }:
            monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("NODE_URL", "http://localhost:8545")
    return monkeypatch


SIMPLESTORAGE_ABI = [
    {"type": "constructor", "inputs": [{"name": "initVal", "type": "uint256"}], "stateMutability": "nonpayable"},
    {
        "type": "function",
        "name": "set",
        "inputs": [{"name": "x", "type": "uint256"}],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "get",
        "inputs": [],
        "outputs": [{"name": "retVal", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "query",
        "inputs": [],
        "outputs": [{"name": "retVal", "type": "uint256"}],
        "stateMutability": "nonpayable",
    },
]

# Enclave public keys are base64 encoded 32 byte values.
ENCLAVE_KEY_A = "A1aVtMxLCUHmBVHXoZzzBgPbW/wj5axDpW9X8l91SGo="
ENCLAVE_KEY_B = "Ko2bVqD+nNlNYL5EE7y3IdOnviftjiizpjRt+HTuFBs="
PRIVACY_GROUP_ID = "DyAOiF/ynpc+JXa2YAGB0bCitSlOMNm+ShmB/7M6C4w="

CONTRACT_ADDRESS = "0x" + "de" * 20

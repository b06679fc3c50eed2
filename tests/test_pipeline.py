from unittest.mock import MagicMock

import pytest
from eth_abi import encode
from eth_utils import to_checksum_address

from contracts.artifacts import ContractArtifact
from errors import InvalidTransactionError, PrivateTransactionUnsupportedError
from execution.abi import encode_call
from execution.builder import PrivacyFields
from execution.pipeline import TransactionPipeline, privacy_fields_from_settings
from execution.submit import Receipt
from signing.base import Account
from signing.node import NativeNodeBackend

from conftest import CONTRACT_ADDRESS, ENCLAVE_KEY_A, ENCLAVE_KEY_B, PRIVACY_GROUP_ID, SIMPLESTORAGE_ABI

SENDER = to_checksum_address("0x" + "ab" * 20)
RECEIPT = Receipt(transaction_hash="0x" + "11" * 32, status=True, contract_address=CONTRACT_ADDRESS)


def _backend(supports_privacy=True, node_managed=False, call_gas=50000, deploy_gas=500000):
    backend = MagicMock()
    backend.name = "test"
    backend.supports_privacy = supports_privacy
    backend.node_managed = node_managed
    backend.resolve_account.return_value = Account(address=SENDER, key_handle="k")
    backend.default_gas.side_effect = lambda contract_creation: deploy_gas if contract_creation else call_gas
    return backend


def _pipeline(backend, w3=None):
    builder = MagicMock()
    submitter = MagicMock()
    submitter.submit.return_value = RECEIPT
    submitter.confirm_private.return_value = RECEIPT
    privacy_client = MagicMock()
    return TransactionPipeline(backend, builder, submitter, privacy_client, w3 or MagicMock())


def test_send_signs_and_submits():
    backend = _backend()
    p = _pipeline(backend)
    assert p.send(CONTRACT_ADDRESS, "0x60fe47b1") is RECEIPT

    build_kwargs = p._builder.build.call_args[1]
    assert build_kwargs["default_gas"] == 50000
    assert build_kwargs["privacy"] is None
    backend.sign.assert_called_once_with(p._builder.build.return_value, backend.resolve_account.return_value)
    p._submitter.submit.assert_called_once_with(backend.sign.return_value)


def test_private_through_unsupported_backend_fails_before_network():
    backend = _backend(supports_privacy=False)
    p = _pipeline(backend)
    privacy = PrivacyFields(private_from=ENCLAVE_KEY_A, private_for=(ENCLAVE_KEY_B,))
    with pytest.raises(PrivateTransactionUnsupportedError):
        p.send(CONTRACT_ADDRESS, "0x", privacy=privacy)
    backend.resolve_account.assert_not_called()
    p._builder.build.assert_not_called()


def test_node_private_transactions_are_sent_by_the_node():
    w3 = MagicMock()
    w3.eth.accounts = [SENDER]
    backend = NativeNodeBackend(w3)
    p = _pipeline(backend, w3)
    p._privacy.send_transaction.return_value = "0xhash"
    privacy = PrivacyFields(private_from=ENCLAVE_KEY_A, privacy_group_id=PRIVACY_GROUP_ID)

    assert p.send(CONTRACT_ADDRESS, "0x", privacy=privacy) is RECEIPT

    p._privacy.send_transaction.assert_called_once_with(p._builder.build.return_value, SENDER)
    p._submitter.confirm_private.assert_called_once_with("0xhash", ENCLAVE_KEY_A)
    p._submitter.submit.assert_not_called()
    w3.eth.sign_transaction.assert_not_called()


def test_send_without_recipient_uses_deploy_gas_default():
    p = _pipeline(_backend(call_gas=50000, deploy_gas=500000))

    p.send(None, "0x6080")
    kwargs = p._builder.build.call_args[1]
    assert kwargs["to"] is None
    assert kwargs["default_gas"] == 500000

    p.send(CONTRACT_ADDRESS, "0x60fe47b1")
    assert p._builder.build.call_args[1]["default_gas"] == 50000


def test_deploy_appends_constructor_argument():
    backend = _backend()
    p = _pipeline(backend)
    artifact = ContractArtifact(name="simplestorage", abi=SIMPLESTORAGE_ABI, bytecode="0x6080")

    assert p.deploy(artifact) is RECEIPT

    kwargs = p._builder.build.call_args[1]
    assert kwargs["to"] is None
    assert kwargs["data"] == "0x6080" + encode(["uint256"], [10]).hex()
    assert kwargs["default_gas"] == 500000


def test_set_value_targets_contract():
    p = _pipeline(_backend())
    p.set_value(CONTRACT_ADDRESS, SIMPLESTORAGE_ABI, 42)
    kwargs = p._builder.build.call_args[1]
    assert kwargs["to"] == to_checksum_address(CONTRACT_ADDRESS)
    assert kwargs["data"] == "0x60fe47b1" + encode(["uint256"], [42]).hex()


def test_public_query_uses_eth_call():
    w3 = MagicMock()
    w3.eth.call.return_value = encode(["uint256"], [42])
    p = _pipeline(_backend(), w3)
    assert p.query(CONTRACT_ADDRESS, SIMPLESTORAGE_ABI) == 42
    call = w3.eth.call.call_args[0][0]
    assert call["to"] == to_checksum_address(CONTRACT_ADDRESS)
    assert call["data"] == "0x6d4ce63c"
    p._builder.build.assert_not_called()


def test_private_query_reads_receipt_output():
    p = _pipeline(_backend())
    p._submitter.submit.return_value = Receipt(
        transaction_hash="0x" + "22" * 32, status=True, output="0x" + encode(["uint256"], [7]).hex()
    )
    privacy = PrivacyFields(private_from=ENCLAVE_KEY_A, privacy_group_id=PRIVACY_GROUP_ID)
    assert p.query(CONTRACT_ADDRESS, SIMPLESTORAGE_ABI, privacy=privacy) == 7
    kwargs = p._builder.build.call_args[1]
    assert kwargs["data"] == encode_call(SIMPLESTORAGE_ABI, "query")
    assert kwargs["privacy"] is privacy


def test_privacy_fields_from_settings():
    public = MagicMock(PRIVATE_FROM=None, PRIVATE_FOR=(), PRIVACY_GROUP_ID=None)
    assert privacy_fields_from_settings(public) is None

    grouped = MagicMock(PRIVATE_FROM=ENCLAVE_KEY_A, PRIVATE_FOR=(), PRIVACY_GROUP_ID=PRIVACY_GROUP_ID)
    fields = privacy_fields_from_settings(grouped)
    assert fields.privacy_group_id == PRIVACY_GROUP_ID
    assert fields.private_for == ()


def test_call_output_dry_runs_set_from_signing_account():
    w3 = MagicMock()
    w3.eth.call.return_value = b""
    backend = _backend()
    p = _pipeline(backend, w3)
    p._builder.estimate_gas.return_value = 26000

    result = p.call_output(CONTRACT_ADDRESS, SIMPLESTORAGE_ABI, 42)

    call = w3.eth.call.call_args[0][0]
    assert call["from"] == SENDER
    assert call["to"] == to_checksum_address(CONTRACT_ADDRESS)
    assert call["data"] == "0x60fe47b1" + encode(["uint256"], [42]).hex()
    assert call["gas"] == 26000
    assert p._builder.estimate_gas.call_args[1]["default_gas"] == 50000
    assert result == {"from": SENDER, "gas": 26000, "output": "0x", "decoded": None}
    backend.sign.assert_not_called()
    p._submitter.submit.assert_not_called()


def test_call_output_rejects_private_contracts():
    w3 = MagicMock()
    p = _pipeline(_backend(), w3)
    privacy = PrivacyFields(private_from=ENCLAVE_KEY_A, privacy_group_id=PRIVACY_GROUP_ID)
    with pytest.raises(InvalidTransactionError):
        p.call_output(CONTRACT_ADDRESS, SIMPLESTORAGE_ABI, 42, privacy=privacy)
    w3.eth.call.assert_not_called()

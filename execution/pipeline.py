"""
Deploy / set / query against the target contract.

Every call runs the same flow regardless of the signing backend:

    resolve account -> build (nonce, gas) -> sign -> submit -> confirm

The one branch is node-managed private transactions, which the node signs and
submits in a single eea_sendTransaction call.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from web3 import Web3

from errors import InvalidTransactionError, PrivateTransactionUnsupportedError
from execution.abi import decode_output, encode_call, encode_deploy
from execution.builder import PrivacyFields, TransactionBuilder
from execution.evm import checksum
from execution.privacy import PrivacyClient
from execution.submit import Receipt, Submitter
from observability import build_log_context, log_event
from signing.base import SigningBackend

PIPELINE_CTX = build_log_context(component="pipeline")

DEFAULT_CONSTRUCTOR_ARGS = (10,)


def privacy_fields_from_settings(settings: Any) -> Optional[PrivacyFields]:
    """PrivacyFields from PRIVATE_FROM / PRIVATE_FOR / PRIVACY_GROUP_ID, or None for public."""
    if not (settings.PRIVATE_FOR or settings.PRIVACY_GROUP_ID):
        return None
    return PrivacyFields(
        private_from=settings.PRIVATE_FROM or "",
        private_for=tuple(settings.PRIVATE_FOR or ()),
        privacy_group_id=settings.PRIVACY_GROUP_ID,
    )


class TransactionPipeline:
    def __init__(
        self,
        backend: SigningBackend,
        builder: TransactionBuilder,
        submitter: Submitter,
        privacy_client: PrivacyClient,
        w3: Web3,
    ) -> None:
        self.backend = backend
        self._builder = builder
        self._submitter = submitter
        self._privacy = privacy_client
        self._w3 = w3

    def send(
        self,
        to: Optional[str],
        data: str,
        *,
        privacy: Optional[PrivacyFields] = None,
    ) -> Receipt:
        """Run the shared flow; a transaction without a recipient is a contract creation."""
        if privacy is not None and not self.backend.supports_privacy:
            raise PrivateTransactionUnsupportedError(
                f"Signer '{self.backend.name}' does not support private transactions",
                {"signer": self.backend.name},
            )
        contract_creation = not to

        account = self.backend.resolve_account()
        tx = self._builder.build(
            account,
            to=to,
            data=data,
            default_gas=self.backend.default_gas(contract_creation=contract_creation),
            privacy=privacy,
        )

        if privacy is not None and self.backend.node_managed:
            tx_hash = self._privacy.send_transaction(tx, account.address)
            return self._submitter.confirm_private(tx_hash, privacy.private_from)

        signed = self.backend.sign(tx, account)
        return self._submitter.submit(signed)

    def deploy(
        self,
        artifact: Any,
        constructor_args: Sequence[Any] = DEFAULT_CONSTRUCTOR_ARGS,
        privacy: Optional[PrivacyFields] = None,
    ) -> Receipt:
        data = encode_deploy(artifact.abi, artifact.bytecode, constructor_args)
        receipt = self.send(None, data, privacy=privacy)
        log_event(
            "contract_deployed",
            ctx=PIPELINE_CTX,
            data={"contract_address": receipt.contract_address, "tx_hash": receipt.transaction_hash},
        )
        return receipt

    def set_value(
        self,
        contract_address: str,
        abi: List[Dict[str, Any]],
        value: int,
        privacy: Optional[PrivacyFields] = None,
    ) -> Receipt:
        return self.send(checksum(contract_address), encode_call(abi, "set", [int(value)]), privacy=privacy)

    def call_output(
        self,
        contract_address: str,
        abi: List[Dict[str, Any]],
        value: int,
        privacy: Optional[PrivacyFields] = None,
    ) -> Dict[str, Any]:
        """
        Dry-run `set(value)` with eth_call from the signing account.

        Nothing is signed or submitted. Private state is not visible to
        eth_call, so a dry run is only available for public contracts.
        """
        if privacy is not None:
            raise InvalidTransactionError("A dry run cannot execute against private contract state")
        address = checksum(contract_address)
        account = self.backend.resolve_account()
        data = encode_call(abi, "set", [int(value)])
        gas = self._builder.estimate_gas(
            account, to=address, data=data, default_gas=self.backend.default_gas(contract_creation=False)
        )
        call: Dict[str, Any] = {"from": account.address, "to": address, "data": data, "gas": gas}
        output = bytes(self._w3.eth.call(call))
        result = {
            "from": account.address,
            "gas": gas,
            "output": "0x" + output.hex(),
            "decoded": decode_output(abi, "set", output),
        }
        log_event("contract_call_output", ctx=PIPELINE_CTX, data={"to": address, "value": int(value), **result})
        return result

    def query(
        self,
        contract_address: str,
        abi: List[Dict[str, Any]],
        function: str = "get",
        privacy: Optional[PrivacyFields] = None,
    ) -> Any:
        """
        Read the stored value.

        Public state is read with eth_call. Private state is only visible to
        participants, so the contract's `query()` is sent as a private
        transaction and the value is taken from the private receipt output.
        """
        address = checksum(contract_address)
        if privacy is not None:
            receipt = self.send(address, encode_call(abi, "query"), privacy=privacy)
            return decode_output(abi, "query", receipt.output)

        call: Dict[str, Any] = {"to": address, "data": encode_call(abi, function)}
        output = self._w3.eth.call(call)
        value = decode_output(abi, function, bytes(output))
        log_event("contract_queried", ctx=PIPELINE_CTX, data={"to": address, "function": function, "value": value})
        return value

from __future__ import annotations

from app.core.settings import Settings
from contracts.artifacts import ContractArtifact, load_artifact
from execution.builder import PrivacyFields, TransactionBuilder
from execution.evm import get_web3
from execution.gas import GasEstimator
from execution.pipeline import TransactionPipeline, privacy_fields_from_settings
from execution.privacy import PrivacyClient
from execution.submit import Submitter
from signing.factory import get_backend


class Container:
    def __init__(self, settings: Settings):
        self.settings = settings

        # Network
        self.w3 = get_web3(settings.NODE_URL or "", settings.HTTP_TIMEOUT_SEC)

        # Signing
        self.backend = get_backend(settings, self.w3)

        # Execution
        self.estimator = GasEstimator(self.w3)
        self.privacy = PrivacyClient(
            self.w3,
            receipt_timeout=settings.RECEIPT_TIMEOUT_SEC,
            poll_interval=settings.RECEIPT_POLL_INTERVAL_SEC,
        )
        self.builder = TransactionBuilder(self.w3, self.estimator, self.privacy, chain_id=settings.CHAIN_ID)
        self.submitter = Submitter(self.w3, self.privacy, receipt_timeout=settings.RECEIPT_TIMEOUT_SEC)
        self.pipeline = TransactionPipeline(self.backend, self.builder, self.submitter, self.privacy, self.w3)

    @property
    def privacy_fields(self) -> PrivacyFields | None:
        return privacy_fields_from_settings(self.settings)

    def artifact(self) -> ContractArtifact:
        return load_artifact(
            self.settings.CONTRACT_NAME,
            self.settings.CONTRACTS_DIR,
            solc_binary=self.settings.SOLC_BINARY,
        )

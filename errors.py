from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception


@dataclass(eq=False)
class AppError(Exception):
    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "data": self.data}


class ConfigurationError(AppError):
    """Missing or inconsistent configuration. Fatal at startup."""

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("configuration_error", message, data or {})


class AccountResolutionError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None, *, code: str = "account_resolution_error") -> None:
        super().__init__(code, message, data or {})


class KeystoreCorrupt(AccountResolutionError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, data, code="keystore_corrupt")


class WalletServiceUnavailable(AccountResolutionError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, data, code="wallet_service_unavailable")


class NoAccountsAvailable(AccountResolutionError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, data, code="no_accounts_available")


class EstimationFailure(AppError):
    """
    Gas estimation failed. Never propagated: the estimator logs it and falls back
    to the backend default.
    """

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("estimation_failure", message, data or {})


class SigningServiceError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("signing_service_error", message, data or {})


class RecoveryIdNotFound(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("recovery_id_not_found", message, data or {})


class SubmissionError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None, *, code: str = "submission_error") -> None:
        super().__init__(code, message, data or {})


class PrivateTransactionUnsupportedError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("private_transaction_unsupported", message, data or {})


class InvalidTransactionError(AppError):
    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("invalid_transaction", message, data or {})


def classify_exception(e: Exception) -> AppError:
    """
    Map common requests / web3 issues into stable error codes.
    """
    if isinstance(e, AppError):
        return e

    if isinstance(e, requests.HTTPError):
        status = e.response.status_code if e.response is not None else None
        return AppError("http_error", str(e), {"status": status})
    if isinstance(e, requests.Timeout):
        return AppError("http_timeout", str(e), {})
    if isinstance(e, requests.ConnectionError):
        return AppError("http_connection_error", str(e), {})
    if isinstance(e, requests.RequestException):
        return AppError("http_request_error", str(e), {})

    if isinstance(e, ContractLogicError):
        return AppError("contract_reverted", str(e), {})
    if isinstance(e, TimeExhausted):
        return AppError("receipt_timeout", str(e), {})
    if isinstance(e, Web3Exception):
        return AppError("rpc_error", str(e), {})
    if isinstance(e, ValueError):
        return AppError("invalid_value", str(e), {})

    return AppError("unknown_error", str(e), {})

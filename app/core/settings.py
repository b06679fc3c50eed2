"""
deploy-transact settings

Validated, typed configuration built once at startup and passed explicitly into
every component constructor. Nothing below the CLI reads the environment.

Usage:
    from app.core.settings import load_settings

    settings = load_settings()
    container = Container(settings)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Tuple

from dotenv import load_dotenv

from errors import ConfigurationError


class SignerType(Enum):
    """Signer backend types."""

    KEYSTORE = "keystore"
    HDWALLET = "hdwallet"
    AZURE_KMS = "azure_kms"
    VAULT = "vault"
    NODE = "node"


class SettingsValidationError(ConfigurationError):
    """Raised when settings validation fails."""

    def __init__(self, field_name: str, value: Any, message: str):
        self.field = field_name
        self.value = value
        super().__init__(
            f"Invalid configuration for {field_name}={value!r}: {message}",
            {"field": field_name},
        )


def _env(name: str) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _parse_int(name: str, default: int | None = None) -> int | None:
    """Parse an integer environment variable; a set but unparsable value is a configuration error."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    raw = value.strip()
    try:
        return int(raw, 0)  # Support hex with 0x prefix
    except ValueError:
        pass
    try:
        return int(raw, 10)  # leading zeros, e.g. "010"
    except ValueError as e:
        raise SettingsValidationError(name, raw, "must be an integer (decimal or 0x-prefixed hex)") from e


def _parse_float(value: str | None, default: float | None = None) -> float | None:
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _parse_csv(value: str | None) -> Tuple[str, ...]:
    """Comma-separated list, order preserved. Enclave keys are case sensitive."""
    if not value:
        return ()
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _parse_signer_type(value: str | None) -> SignerType:
    raw = (value or "keystore").strip().lower()
    try:
        return SignerType(raw)
    except ValueError as e:
        raise SettingsValidationError(
            "SIGNER_TYPE", raw, f"must be one of {[t.value for t in SignerType]}"
        ) from e


@dataclass
class Settings:
    """
    Unified settings with validation.

    Every field defaults from the process environment; tests and embedding code
    pass values directly instead.
    """

    PROJECT_NAME: str = "deploy-transact"

    # Target network
    NODE_URL: str | None = field(default_factory=lambda: _env("NODE_URL"))
    CHAIN_ID: int | None = field(default_factory=lambda: _parse_int("CHAIN_ID"))

    # Signer selection
    SIGNER_TYPE: SignerType = field(default_factory=lambda: _parse_signer_type(os.getenv("SIGNER_TYPE")))

    # Local keystore
    KEYSTORE_DIR: str = field(
        default_factory=lambda: _env("KEYSTORE_DIR") or str(Path.home() / ".web3keystore")
    )

    # HD wallet service
    HDWALLET_URL: str | None = field(default_factory=lambda: _env("HDWALLET_URL"))
    HDWALLET_ID: str | None = field(default_factory=lambda: _env("HDWALLET_ID"))
    HDWALLET_ACCOUNT_INDEX: int | None = field(
        default_factory=lambda: _parse_int("HDWALLET_ACCOUNT_INDEX")
    )

    # Azure Key Vault
    CLIENT_ID: str | None = field(default_factory=lambda: _env("CLIENT_ID"))
    CLIENT_SECRET: str | None = field(default_factory=lambda: _env("CLIENT_SECRET"))
    DIRECTORY_ID: str | None = field(default_factory=lambda: _env("DIRECTORY_ID"))
    KEYVAULT_SERVICE_NAME: str | None = field(default_factory=lambda: _env("KEYVAULT_SERVICE_NAME"))
    KEYVAULT_KEY_NAME: str | None = field(default_factory=lambda: _env("KEYVAULT_KEY_NAME"))
    KEYVAULT_KEY_VERSION: str | None = field(default_factory=lambda: _env("KEYVAULT_KEY_VERSION"))

    # HashiCorp Vault ethereum plugin
    VAULT_URL: str | None = field(default_factory=lambda: _env("VAULT_URL"))
    VAULT_TOKEN: str | None = field(default_factory=lambda: _env("VAULT_TOKEN"))
    VAULT_PLUGIN_PATH: str = field(default_factory=lambda: _env("VAULT_PLUGIN_PATH") or "ethereum")
    VAULT_ACCOUNT_KEY: str | None = field(default_factory=lambda: _env("VAULT_ACCOUNT_KEY"))

    # Privacy
    PRIVATE_FROM: str | None = field(default_factory=lambda: _env("PRIVATE_FROM"))
    PRIVATE_FOR: Tuple[str, ...] = field(default_factory=lambda: _parse_csv(os.getenv("PRIVATE_FOR")))
    PRIVACY_GROUP_ID: str | None = field(default_factory=lambda: _env("PRIVACY_GROUP_ID"))

    # Contract compiler collaborator
    CONTRACTS_DIR: str = field(
        default_factory=lambda: _env("CONTRACTS_DIR") or str(Path(__file__).resolve().parents[2] / "contracts")
    )
    CONTRACT_NAME: str = field(default_factory=lambda: _env("CONTRACT_NAME") or "simplestorage")
    SOLC_BINARY: str = field(default_factory=lambda: _env("SOLC_BINARY") or "solc")

    # Timeouts
    HTTP_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("HTTP_TIMEOUT_SEC"), 10.0) or 10.0)
    RECEIPT_TIMEOUT_SEC: float = field(
        default_factory=lambda: _parse_float(os.getenv("RECEIPT_TIMEOUT_SEC"), 120.0) or 120.0
    )
    RECEIPT_POLL_INTERVAL_SEC: float = field(
        default_factory=lambda: _parse_float(os.getenv("RECEIPT_POLL_INTERVAL_SEC"), 1.0) or 1.0
    )

    # Observability
    LOG_LEVEL: str = field(default_factory=lambda: (_env("LOG_LEVEL") or "info").lower())
    SERVICE_NAME: str = field(default_factory=lambda: _env("SERVICE_NAME") or "deploy_transact")

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        self._validate()

    def _validate(self) -> None:
        errors: list[str] = []

        if not self.NODE_URL:
            errors.append("NODE_URL must be set to the target node JSON-RPC URL")

        if self.CHAIN_ID is not None and self.CHAIN_ID <= 0:
            errors.append(f"CHAIN_ID must be positive, got {self.CHAIN_ID}")

        if self.SIGNER_TYPE == SignerType.HDWALLET:
            if not self.HDWALLET_URL or not self.HDWALLET_ID:
                errors.append("HDWALLET_URL and HDWALLET_ID required when SIGNER_TYPE=hdwallet")
            if self.HDWALLET_ACCOUNT_INDEX is None or self.HDWALLET_ACCOUNT_INDEX < 0:
                errors.append("HDWALLET_ACCOUNT_INDEX must be a non-negative integer when SIGNER_TYPE=hdwallet")
        elif self.SIGNER_TYPE == SignerType.AZURE_KMS:
            for name in ("CLIENT_ID", "CLIENT_SECRET", "DIRECTORY_ID"):
                if not getattr(self, name):
                    errors.append(f'Missing environment variable "{name}"')
            for name in ("KEYVAULT_SERVICE_NAME", "KEYVAULT_KEY_NAME", "KEYVAULT_KEY_VERSION"):
                if not getattr(self, name):
                    errors.append(f"{name} required when SIGNER_TYPE=azure_kms")
        elif self.SIGNER_TYPE == SignerType.VAULT:
            if not self.VAULT_URL or not self.VAULT_TOKEN:
                errors.append("VAULT_URL and VAULT_TOKEN required when SIGNER_TYPE=vault")

        if self.PRIVATE_FOR and self.PRIVACY_GROUP_ID:
            errors.append("PRIVATE_FOR and PRIVACY_GROUP_ID are mutually exclusive")
        if (self.PRIVATE_FOR or self.PRIVACY_GROUP_ID) and not self.PRIVATE_FROM:
            errors.append("PRIVATE_FROM required when PRIVATE_FOR or PRIVACY_GROUP_ID is set")

        for name in ("HTTP_TIMEOUT_SEC", "RECEIPT_TIMEOUT_SEC", "RECEIPT_POLL_INTERVAL_SEC"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if errors:
            raise SettingsValidationError("MULTIPLE", None, "; ".join(errors))

    @property
    def is_private(self) -> bool:
        return bool(self.PRIVATE_FOR or self.PRIVACY_GROUP_ID)

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary (redacting secrets)."""
        result: dict[str, Any] = {}
        for key in dir(self):
            if key.startswith("_") or key.isupper() is False:
                continue
            value = getattr(self, key)
            if any(s in key.upper() for s in ["SECRET", "PASSWORD", "TOKEN"]):
                result[key] = "***REDACTED***" if value else None
            elif isinstance(value, tuple):
                result[key] = list(value)
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result


def load_settings(env_file: str | None = None) -> Settings:
    """Load `.env` (if any) into the environment and build validated settings."""
    load_dotenv(env_file)
    return Settings()

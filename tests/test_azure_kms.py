import base64
from unittest.mock import MagicMock, patch

import pytest
from eth_account import Account as EthAccount
from eth_keys import keys
from eth_keys.constants import SECPK1_N

from errors import AccountResolutionError, PrivateTransactionUnsupportedError, SigningServiceError
from execution.builder import PrivacyFields, UnsignedTransaction
from signing.azure_kms import AzureKeyVaultBackend

from conftest import CONTRACT_ADDRESS, ENCLAVE_KEY_A, ENCLAVE_KEY_B, TEST_PRIVATE_KEY


def _b64url(b):
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode()


def _unb64url(s):
    return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))


def _resp(body):
    r = MagicMock()
    r.raise_for_status.return_value = None
    r.json.return_value = body
    return r


class FakeKeyVault:
    """Answers AAD token, key and sign requests for one secp256k1 key."""

    def __init__(self, high_s=False, kty="EC-HSM"):
        self.pk = keys.PrivateKey(TEST_PRIVATE_KEY)
        self.high_s = high_s
        self.kty = kty
        self.token_requests = 0

    def post(self, url, **kwargs):
        if "login.microsoftonline.com" in url:
            self.token_requests += 1
            return _resp({"access_token": "aad-token", "token_type": "Bearer"})
        assert url.endswith("/sign")
        assert kwargs["json"]["alg"] == "ES256K"
        assert kwargs["headers"]["Authorization"] == "Bearer aad-token"
        sig = self.pk.sign_msg_hash(_unb64url(kwargs["json"]["value"]))
        s = SECPK1_N - sig.s if self.high_s else sig.s
        return _resp({"kid": url, "value": _b64url(sig.r.to_bytes(32, "big") + s.to_bytes(32, "big"))})

    def get(self, url, **kwargs):
        raw = self.pk.public_key.to_bytes()
        return _resp({"key": {"kty": self.kty, "crv": "P-256K", "x": _b64url(raw[:32]), "y": _b64url(raw[32:])}})


def _backend():
    return AzureKeyVaultBackend(
        client_id="cid",
        client_secret="secret",
        directory_id="tenant",
        service_name="myvault",
        key_name="signer",
        key_version="v1",
    )


def _patched(fake):
    return patch.multiple("signing.azure_kms.requests", post=MagicMock(side_effect=fake.post), get=MagicMock(side_effect=fake.get))


def test_resolve_account_derives_address_from_public_point():
    fake = FakeKeyVault()
    with _patched(fake):
        backend = _backend()
        account = backend.resolve_account()
        assert backend.resolve_account() is account
    assert account.address == EthAccount.from_key(TEST_PRIVATE_KEY).address
    assert account.key_handle == "signer/v1"
    assert account.private_key is None
    assert fake.token_requests == 1


@pytest.mark.parametrize("high_s", [False, True])
def test_sign_produces_recoverable_transaction(high_s):
    fake = FakeKeyVault(high_s=high_s)
    tx = UnsignedTransaction(nonce=5, to=CONTRACT_ADDRESS, data="0x60fe47b1" + "00" * 31 + "2a", gas=50000, chain_id=2018)
    with _patched(fake):
        backend = _backend()
        account = backend.resolve_account()
        signed = backend.sign(tx, account)

    assert signed.v in (4071, 4072)
    assert signed.s <= SECPK1_N // 2
    assert signed.payload.startswith("0x")
    assert EthAccount.recover_transaction(signed.payload) == account.address


def test_non_ec_key_is_rejected():
    fake = FakeKeyVault(kty="RSA")
    with _patched(fake):
        with pytest.raises(AccountResolutionError):
            _backend().resolve_account()


def test_private_transactions_are_unsupported():
    tx = UnsignedTransaction(
        nonce=0,
        to=CONTRACT_ADDRESS,
        data="0x",
        gas=50000,
        privacy=PrivacyFields(private_from=ENCLAVE_KEY_A, private_for=(ENCLAVE_KEY_B,)),
    )
    with patch("signing.azure_kms.requests.post") as post:
        with pytest.raises(PrivateTransactionUnsupportedError):
            _backend().sign(tx, MagicMock(address="0x" + "ab" * 20))
    post.assert_not_called()


def test_signing_service_failure_is_wrapped():
    fake = FakeKeyVault()
    tx = UnsignedTransaction(nonce=0, to=CONTRACT_ADDRESS, data="0x", gas=50000)
    with _patched(fake):
        backend = _backend()
        account = backend.resolve_account()
    with patch("signing.azure_kms.requests.post", return_value=_resp({"value": ""})):
        with pytest.raises(SigningServiceError):
            backend.sign(tx, account)

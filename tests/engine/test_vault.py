from __future__ import annotations

import base64

import pytest

from webradio_export.engine import CredentialVault
from webradio_export.engine.vault import DEVELOPMENT_SECRET
from webradio_export.errors import CredentialError


def test_encrypt_decrypt_roundtrip(vault: CredentialVault) -> None:
    envelope = vault.encrypt("pässwörd")
    assert envelope.startswith("v1:")
    assert len(envelope.split(":")) == 4
    assert vault.decrypt(envelope) == "pässwörd"


def test_encryption_uses_fresh_nonce(vault: CredentialVault) -> None:
    assert vault.encrypt("same") != vault.encrypt("same")


def test_empty_value_stays_empty(vault: CredentialVault) -> None:
    assert vault.encrypt("") == ""
    assert vault.migrate("") == ""


def test_wrong_secret_is_rejected(vault: CredentialVault) -> None:
    envelope = vault.encrypt("secret")
    with pytest.raises(CredentialError):
        CredentialVault("another-secret").decrypt(envelope)


def test_tampered_payload_is_rejected(vault: CredentialVault) -> None:
    version, nonce, tag, data = vault.encrypt("secret").split(":")
    flipped = bytes([base64.b64decode(data)[0] ^ 0x01]) + base64.b64decode(data)[1:]
    tampered = ":".join([version, nonce, tag, base64.b64encode(flipped).decode("ascii")])
    with pytest.raises(CredentialError):
        vault.decrypt(tampered)


@pytest.mark.parametrize(
    "value",
    ["plaintext", "v1:only-two", "v1:a:b:", "v1:!!!:###:$$$", "v1:AAAA:AAAA:AAAA"],
)
def test_malformed_envelopes_are_rejected(vault: CredentialVault, value: str) -> None:
    with pytest.raises(CredentialError):
        vault.decrypt(value)


def test_migrate_leaves_envelopes_untouched(vault: CredentialVault) -> None:
    envelope = vault.migrate("plain")
    assert CredentialVault.is_encrypted(envelope)
    assert vault.migrate(envelope) == envelope
    assert not CredentialVault.is_encrypted("plain")
    assert not CredentialVault.is_encrypted(None)


def test_missing_secret_falls_back_to_development_default() -> None:
    envelope = CredentialVault(None).encrypt("value")
    assert CredentialVault(DEVELOPMENT_SECRET).decrypt(envelope) == "value"

"""Tests for encrypted integration configuration blobs."""

import base64

import pytest

from asset_bridge.client.exceptions import BlobAuthenticationError, BlobFormatError
from asset_bridge.crypto import (
    IV_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    decrypt_config,
    encrypt_config,
    parse_blob,
)

SECRET = "operator-secret"
NONCE = "4F2A9C"
PLAIN = {"Username": "svc", "Password": "p@ss", "ApiToken": None, "Ports": [443, 8443]}


@pytest.fixture(scope="module")
def blob() -> str:
    return encrypt_config(PLAIN, SECRET, NONCE)


class TestEncryptDecrypt:
    def test_round_trip(self, blob: str) -> None:
        assert decrypt_config(blob, SECRET, NONCE) == PLAIN

    def test_blob_has_four_segments_of_expected_lengths(self, blob: str) -> None:
        salt, iv, tag, ciphertext = (base64.b64decode(part) for part in blob.split(":"))
        assert len(salt) == SALT_LENGTH
        assert len(iv) == IV_LENGTH
        assert len(tag) == TAG_LENGTH
        assert ciphertext

    def test_each_encryption_uses_fresh_salt_and_iv(self) -> None:
        first = encrypt_config(PLAIN, SECRET, NONCE).split(":")
        second = encrypt_config(PLAIN, SECRET, NONCE).split(":")
        assert first[0] != second[0]
        assert first[1] != second[1]

    def test_wrong_secret_fails_authentication(self, blob: str) -> None:
        with pytest.raises(BlobAuthenticationError):
            decrypt_config(blob, "wrong-secret", NONCE)

    def test_wrong_nonce_fails_authentication(self, blob: str) -> None:
        with pytest.raises(BlobAuthenticationError):
            decrypt_config(blob, SECRET, "OTHER-RECORD")

    def test_tampered_ciphertext_fails_authentication(self, blob: str) -> None:
        salt, iv, tag, ciphertext = blob.split(":")
        raw = bytearray(base64.b64decode(ciphertext))
        raw[0] ^= 0x01
        tampered = ":".join([salt, iv, tag, base64.b64encode(bytes(raw)).decode()])

        with pytest.raises(BlobAuthenticationError):
            decrypt_config(tampered, SECRET, NONCE)

    @pytest.mark.parametrize("secret,nonce", [("", NONCE), (SECRET, "")])
    def test_empty_secret_or_nonce_rejected(self, secret: str, nonce: str) -> None:
        with pytest.raises(ValueError):
            encrypt_config(PLAIN, secret, nonce)

    def test_non_object_rejected(self) -> None:
        with pytest.raises(ValueError):
            encrypt_config("just a string", SECRET, NONCE)  # type: ignore[arg-type]


class TestParseBlob:
    @pytest.mark.parametrize("bad", ["", "   ", "a:b:c", "a:b:c:d:e"])
    def test_wrong_shape(self, bad: str) -> None:
        with pytest.raises(BlobFormatError):
            parse_blob(bad)

    def test_invalid_base64(self, blob: str) -> None:
        salt, iv, tag, _ = blob.split(":")
        with pytest.raises(BlobFormatError):
            parse_blob(":".join([salt, iv, tag, "not base64!"]))

    def test_wrong_salt_length(self, blob: str) -> None:
        _, iv, tag, ciphertext = blob.split(":")
        short_salt = base64.b64encode(b"x" * 8).decode()
        with pytest.raises(BlobFormatError, match="Salt"):
            parse_blob(":".join([short_salt, iv, tag, ciphertext]))

    def test_empty_ciphertext(self, blob: str) -> None:
        salt, iv, tag, _ = blob.split(":")
        with pytest.raises(BlobFormatError):
            parse_blob(":".join([salt, iv, tag, ""]))

    def test_surrounding_whitespace_ignored(self, blob: str) -> None:
        assert decrypt_config(f"  {blob}\n", SECRET, NONCE) == PLAIN

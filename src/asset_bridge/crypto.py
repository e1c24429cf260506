"""Authenticated encryption of integration configuration records.

A configuration record is serialized to JSON and sealed with AES-256-GCM.
The key is derived from an operator secret with PBKDF2-HMAC-SHA256 and a
fresh random salt per call, so two encryptions of the same record never
share a key. The caller-supplied nonce (the integration record id) is bound
as associated data: it is not encrypted, but decrypting with a different
nonce fails the integrity check.

Blob wire format::

    base64(salt):base64(iv):base64(tag):base64(ciphertext)
"""

import base64
import binascii
import json
import os
from collections.abc import Mapping
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from asset_bridge.client.exceptions import BlobAuthenticationError, BlobFormatError

KDF_ITERATIONS = 100_000
KEY_LENGTH = 32
SALT_LENGTH = 32
IV_LENGTH = 16
TAG_LENGTH = 16
SEGMENT_COUNT = 4


def derive_key(secret: str, salt: bytes) -> bytes:
    """Derive a 256-bit key from ``secret`` and ``salt``."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def _require_text(value: str, name: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")


def encrypt_config(plain: Mapping[str, Any] | list[Any], secret: str, nonce: str) -> str:
    """Encrypt a JSON-serializable configuration object.

    Args:
        plain: Configuration object (mapping or list)
        secret: Operator secret the key is derived from
        nonce: Record identifier bound as associated data

    Returns:
        Encrypted blob in ``salt:iv:tag:ciphertext`` form

    Raises:
        ValueError: If the arguments are empty or of the wrong type
    """
    if not isinstance(plain, (Mapping, list)):
        raise ValueError("Configuration to encrypt must be an object")
    _require_text(secret, "secret")
    _require_text(nonce, "nonce")

    data = json.dumps(plain, separators=(",", ":")).encode("utf-8")
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)

    sealed = AESGCM(derive_key(secret, salt)).encrypt(iv, data, nonce.encode("utf-8"))
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return ":".join(
        base64.b64encode(part).decode("ascii") for part in (salt, iv, tag, ciphertext)
    )


def _decode_segment(segment: str, name: str) -> bytes:
    try:
        return base64.b64decode(segment, validate=True)
    except (binascii.Error, ValueError) as e:
        raise BlobFormatError(f"Encrypted blob has an invalid {name} segment") from e


def parse_blob(blob: str) -> tuple[bytes, bytes, bytes, bytes]:
    """Split and decode an encrypted blob.

    Returns:
        Tuple of (salt, iv, tag, ciphertext)

    Raises:
        BlobFormatError: On a wrong segment count, bad base64 or wrong lengths
    """
    if not isinstance(blob, str) or not blob.strip():
        raise BlobFormatError("Encrypted blob is empty")

    segments = blob.strip().split(":")
    if len(segments) != SEGMENT_COUNT:
        raise BlobFormatError(
            f"Encrypted blob must have {SEGMENT_COUNT} segments, found {len(segments)}"
        )

    salt, iv, tag, ciphertext = (
        _decode_segment(segment, name)
        for segment, name in zip(segments, ("salt", "iv", "tag", "ciphertext"), strict=True)
    )

    if len(salt) != SALT_LENGTH:
        raise BlobFormatError(f"Salt must be {SALT_LENGTH} bytes, found {len(salt)}")
    if len(iv) != IV_LENGTH:
        raise BlobFormatError(f"IV must be {IV_LENGTH} bytes, found {len(iv)}")
    if len(tag) != TAG_LENGTH:
        raise BlobFormatError(f"Tag must be {TAG_LENGTH} bytes, found {len(tag)}")
    if not ciphertext:
        raise BlobFormatError("Ciphertext is empty")

    return salt, iv, tag, ciphertext


def decrypt_config(blob: str, secret: str, nonce: str) -> Any:
    """Decrypt a blob produced by :func:`encrypt_config`.

    Raises:
        ValueError: If the secret or nonce is empty
        BlobFormatError: If the blob is malformed
        BlobAuthenticationError: If the secret, nonce or blob content does not verify
    """
    _require_text(secret, "secret")
    _require_text(nonce, "nonce")

    salt, iv, tag, ciphertext = parse_blob(blob)

    try:
        data = AESGCM(derive_key(secret, salt)).decrypt(
            iv, ciphertext + tag, nonce.encode("utf-8")
        )
    except InvalidTag as e:
        raise BlobAuthenticationError(
            "Encrypted configuration failed authentication (wrong secret, nonce or tampered data)"
        ) from e

    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BlobFormatError("Decrypted configuration is not valid JSON") from e

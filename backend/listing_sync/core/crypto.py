from __future__ import annotations

import base64
import binascii
import json
import os
from typing import Any, NamedTuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


_AES_GCM_NONCE_BYTES = 12
_ALGORITHM = "AES-256-GCM"


class CredentialCryptoError(RuntimeError):
    def __init__(self, message: str, *, reason_code: str) -> None:
        super().__init__(message)
        self.reason_code = reason_code


class SealedSecret(NamedTuple):
    blob: str
    key_reference: str
    key_version: str


def seal_secret(data: dict[str, Any]) -> SealedSecret:
    """Envelope-encrypt a JSON object: a fresh data key encrypts the payload and the master key wraps the data key."""
    plaintext = json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")
    data_key = AESGCM.generate_key(bit_length=256)
    payload_nonce, payload_ciphertext = _encrypt(plaintext, data_key)
    key_nonce, wrapped_key = _encrypt(data_key, get_master_key())

    blob = {
        "alg": _ALGORITHM,
        "ciphertext_b64": _b64e(payload_ciphertext),
        "payload_iv_b64": _b64e(payload_nonce),
        "encrypted_dek_b64": _b64e(wrapped_key),
        "dek_iv_b64": _b64e(key_nonce),
    }
    return SealedSecret(
        blob=json.dumps(blob, separators=(",", ":"), sort_keys=True),
        key_reference=os.getenv("CREDENTIAL_MASTER_KEY_REFERENCE", "env:CREDENTIAL_MASTER_KEY"),
        key_version=os.getenv("CREDENTIAL_MASTER_KEY_VERSION", "v1"),
    )


def open_secret(blob: str) -> dict[str, Any]:
    try:
        envelope = json.loads(blob)
        if envelope.get("alg") != _ALGORITHM:
            raise CredentialCryptoError(
                f"Unsupported credential algorithm '{envelope.get('alg')}'.",
                reason_code="credential_invalid",
            )
        data_key = _decrypt(_b64d(envelope["encrypted_dek_b64"]), get_master_key(), _b64d(envelope["dek_iv_b64"]))
        plaintext = _decrypt(_b64d(envelope["ciphertext_b64"]), data_key, _b64d(envelope["payload_iv_b64"]))
        parsed = json.loads(plaintext.decode("utf-8"))
    except CredentialCryptoError:
        raise
    except (ValueError, KeyError, TypeError, AttributeError, binascii.Error, InvalidTag) as exc:
        raise CredentialCryptoError("Stored credential is not decryptable.", reason_code="credential_invalid") from exc
    if not isinstance(parsed, dict):
        raise CredentialCryptoError("Stored credential must be a JSON object.", reason_code="credential_invalid")
    return parsed


def get_master_key() -> bytes:
    raw = os.getenv("CREDENTIAL_MASTER_KEY", "").strip()
    if not raw:
        raise CredentialCryptoError(
            "CREDENTIAL_MASTER_KEY is required for credential encryption.",
            reason_code="master_key_missing",
        )
    try:
        key = base64.b64decode(raw, validate=True)
    except binascii.Error as exc:
        raise CredentialCryptoError("CREDENTIAL_MASTER_KEY must be valid base64.", reason_code="master_key_invalid") from exc
    if len(key) != 32:
        raise CredentialCryptoError(
            "CREDENTIAL_MASTER_KEY must decode to 32 bytes for AES-256.",
            reason_code="master_key_invalid",
        )
    return key


def _b64e(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64d(raw: str) -> bytes:
    return base64.b64decode(str(raw).encode("ascii"))


def _encrypt(plaintext: bytes, key: bytes) -> tuple[bytes, bytes]:
    nonce = os.urandom(_AES_GCM_NONCE_BYTES)
    return nonce, AESGCM(key).encrypt(nonce, plaintext, None)


def _decrypt(ciphertext: bytes, key: bytes, nonce: bytes) -> bytes:
    return AESGCM(key).decrypt(nonce, ciphertext, None)

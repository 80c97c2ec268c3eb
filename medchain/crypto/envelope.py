"""Authenticated encryption of canonical text.

Each call draws a fresh salt and nonce, derives a per-call AES-256 key from the
deployment secret with scrypt, and seals the text with AES-GCM. The envelope is
stored as JSON with base64 fields, so identical plaintexts never produce
identical blobs (and therefore never share a CID).
"""

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import ClassVar

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from medchain.pipeline.exceptions import IntegrityError

ALGORITHM = "AES-256-GCM"

SALT_BYTES = 16
NONCE_BYTES = 12
TAG_BYTES = 16
KEY_BYTES = 32

SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


@dataclass(frozen=True)
class CipherEnvelope:
    """Randomized authenticated-encryption output."""

    alg: str
    salt: bytes
    iv: bytes
    tag: bytes
    data: bytes

    FIELDS: ClassVar[tuple[str, ...]] = ("alg", "salt", "iv", "tag", "data")

    def to_dict(self) -> dict[str, str]:
        return {
            "alg": self.alg,
            "salt": base64.b64encode(self.salt).decode("ascii"),
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "tag": base64.b64encode(self.tag).decode("ascii"),
            "data": base64.b64encode(self.data).decode("ascii"),
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "CipherEnvelope":
        """Parse a stored envelope.

        Raises:
            IntegrityError: if the blob is not a well-formed envelope.
        """
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise IntegrityError(f"Stored envelope is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise IntegrityError("Stored envelope must be a JSON object")
        missing = [name for name in cls.FIELDS if not isinstance(payload.get(name), str)]
        if missing:
            raise IntegrityError(f"Stored envelope is missing fields: {missing}")
        try:
            return cls(
                alg=payload["alg"],
                salt=base64.b64decode(payload["salt"], validate=True),
                iv=base64.b64decode(payload["iv"], validate=True),
                tag=base64.b64decode(payload["tag"], validate=True),
                data=base64.b64decode(payload["data"], validate=True),
            )
        except binascii.Error as exc:
            raise IntegrityError(f"Stored envelope has invalid base64: {exc}") from exc


def _derive_key(secret: bytes, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_BYTES, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret)


def encrypt(canonical_text: str, secret: bytes) -> CipherEnvelope:
    if not secret:
        raise ValueError("encryption secret must not be empty")
    salt = os.urandom(SALT_BYTES)
    iv = os.urandom(NONCE_BYTES)
    key = _derive_key(secret, salt)
    sealed = AESGCM(key).encrypt(iv, canonical_text.encode("utf-8"), None)
    return CipherEnvelope(
        alg=ALGORITHM,
        salt=salt,
        iv=iv,
        tag=sealed[-TAG_BYTES:],
        data=sealed[:-TAG_BYTES],
    )


def decrypt(envelope: CipherEnvelope, secret: bytes) -> str:
    """Exact inverse of encrypt.

    Raises:
        IntegrityError: on an unknown algorithm, malformed parameters, a wrong
            secret or tampered ciphertext. Never returns unauthenticated text.
    """
    if envelope.alg != ALGORITHM:
        raise IntegrityError(f"Unsupported envelope algorithm '{envelope.alg}'")
    if len(envelope.iv) != NONCE_BYTES or len(envelope.tag) != TAG_BYTES:
        raise IntegrityError("Envelope nonce or tag has the wrong length")
    if not envelope.salt:
        raise IntegrityError("Envelope salt is empty")
    key = _derive_key(secret, envelope.salt)
    try:
        plaintext = AESGCM(key).decrypt(envelope.iv, envelope.data + envelope.tag, None)
    except InvalidTag as exc:
        raise IntegrityError("Authentication tag mismatch: wrong key or tampered content") from exc
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise IntegrityError("Decrypted content is not valid UTF-8") from exc

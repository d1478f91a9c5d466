"""
Field cipher implementation.

This module provides authenticated encryption of individual string field
values with AES-256-GCM, and the envelope format stored in place of the
plaintext:

    ENC:v1:{nonce}:{ciphertext}:{tag}

All three segments are standard base64. The cipher holds no key material;
the key is passed in on every call.
"""

import base64
import binascii
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import AuthenticationFailed, ConfigurationError, EnvelopeFormatError


ENVELOPE_MARKER = "ENC"
AES_256_GCM = "v1"

KEY_SIZE = 32  # 256-bit key
NONCE_SIZE = 12  # 96-bit nonce for GCM
TAG_SIZE = 16  # 128-bit authentication tag


def _b64decode(segment: str) -> bytes:
    try:
        return base64.b64decode(segment.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise EnvelopeFormatError(f"Invalid base64 segment in envelope: {e}") from e


@dataclass(frozen=True)
class CipherEnvelope:
    """
    Ciphertext of one field value plus what is needed to decrypt it.

    The algorithm id doubles as the format version.
    """

    algorithm_id: str
    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def serialize(self) -> str:
        """
        Convert the envelope to its stored string form.

        Returns:
            The envelope as ``ENC:{algorithm}:{nonce}:{ciphertext}:{tag}``
        """
        return ":".join(
            [
                ENVELOPE_MARKER,
                self.algorithm_id,
                base64.b64encode(self.nonce).decode("ascii"),
                base64.b64encode(self.ciphertext).decode("ascii"),
                base64.b64encode(self.tag).decode("ascii"),
            ]
        )

    @classmethod
    def parse(cls, value: str) -> "CipherEnvelope":
        """
        Parse a stored envelope string.

        Args:
            value: The stored field value

        Returns:
            The parsed envelope

        Raises:
            EnvelopeFormatError: If the value is not a well-formed envelope
        """
        if not isinstance(value, str):
            raise EnvelopeFormatError("Envelope must be a string")

        parts = value.split(":")
        if len(parts) != 5 or parts[0] != ENVELOPE_MARKER:
            raise EnvelopeFormatError("Value is not an encrypted field envelope")

        _, algorithm_id, nonce, ciphertext, tag = parts
        if algorithm_id != AES_256_GCM:
            raise EnvelopeFormatError(f"Unsupported envelope algorithm: {algorithm_id}")

        envelope = cls(
            algorithm_id=algorithm_id,
            nonce=_b64decode(nonce),
            ciphertext=_b64decode(ciphertext),
            tag=_b64decode(tag),
        )
        if len(envelope.nonce) != NONCE_SIZE or len(envelope.tag) != TAG_SIZE:
            raise EnvelopeFormatError("Envelope nonce or tag has the wrong length")
        return envelope

    @classmethod
    def try_parse(cls, value: object) -> "CipherEnvelope | None":
        """Parse a value as an envelope, returning None if it is not one."""
        if not isinstance(value, str):
            return None
        try:
            return cls.parse(value)
        except EnvelopeFormatError:
            return None

    @staticmethod
    def looks_like_envelope(value: object) -> bool:
        """Cheap prefix check, without validating the segments."""
        return isinstance(value, str) and value.startswith(f"{ENVELOPE_MARKER}:")


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise ConfigurationError(f"Encryption key must be {KEY_SIZE} bytes")


class FieldCipher:
    """
    AES-256-GCM encryption of string field values.

    Stateless: a single instance may be shared between threads.
    """

    algorithm_id = AES_256_GCM

    def encrypt(self, plaintext: str, key: bytes) -> CipherEnvelope:
        """
        Encrypt a field value.

        Args:
            plaintext: The string to encrypt, may be empty
            key: 32-byte AES key

        Returns:
            The envelope holding a fresh nonce, the ciphertext and the tag
        """
        _check_key(key)

        nonce = os.urandom(NONCE_SIZE)
        encryptor = Cipher(
            algorithms.AES(bytes(key)),
            modes.GCM(nonce),
            backend=default_backend(),
        ).encryptor()
        ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()

        return CipherEnvelope(
            algorithm_id=self.algorithm_id,
            nonce=nonce,
            ciphertext=ciphertext,
            tag=encryptor.tag,
        )

    def decrypt(self, envelope: CipherEnvelope, key: bytes) -> str:
        """
        Decrypt a field value.

        Args:
            envelope: The envelope produced by ``encrypt``
            key: 32-byte AES key

        Returns:
            The original plaintext

        Raises:
            AuthenticationFailed: If the key is wrong or the envelope was altered
        """
        _check_key(key)

        if envelope.algorithm_id != self.algorithm_id:
            raise EnvelopeFormatError(f"Unsupported envelope algorithm: {envelope.algorithm_id}")
        if len(envelope.nonce) != NONCE_SIZE or len(envelope.tag) != TAG_SIZE:
            raise AuthenticationFailed("Envelope nonce or tag has the wrong length")

        decryptor = Cipher(
            algorithms.AES(bytes(key)),
            modes.GCM(envelope.nonce, envelope.tag),
            backend=default_backend(),
        ).decryptor()
        try:
            plaintext = decryptor.update(envelope.ciphertext) + decryptor.finalize()
        except InvalidTag as e:
            raise AuthenticationFailed("Envelope failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AuthenticationFailed("Decrypted value is not valid UTF-8") from e

"""Runtime collaborators used by generated secured classes.

Generated accessors only depend on the interfaces here: a passphrase provider,
an encryption tool with envelope encode/decode, and a binary serializer. The
default :class:`AesToolImpl` derives a key per call with PBKDF2-HMAC-SHA256 and
encrypts with AES-256-GCM from ``cryptography``.

Generated classes are not synchronized; use one instance per thread or guard it.
"""

from __future__ import annotations

import base64
import binascii
import os
import pickle
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

ENVELOPE_VERSION = 1
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
TAG_SIZE = 16
DEFAULT_ITERATIONS = 200_000
MAX_ITERATIONS = 10 * DEFAULT_ITERATIONS

_HEADER = struct.Struct(">BI")


class IllegalStateError(RuntimeError):
    """Raised when an accessor runs before the object is fully configured."""


class AesToolException(Exception):
    """Raised when encryption, decryption or envelope handling fails."""


class BinarySerializerException(Exception):
    """Raised when a value cannot be converted to or from bytes."""


class Transient:
    """Persistence hint: the annotated field is never persisted."""

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Transient)

    def __hash__(self) -> int:
        return hash(Transient)

    def __repr__(self) -> str:
        return "Transient()"


class PassphraseProvider(ABC):
    """Supplies the passphrase for every secured accessor call.

    Successive calls must return passphrases under which earlier ciphertext
    still decrypts.
    """

    @abstractmethod
    def get_passphrase(self) -> str:
        """Return the passphrase."""


class StaticPassphraseProvider(PassphraseProvider):
    """Always returns the passphrase it was built with."""

    def __init__(self, passphrase: str) -> None:
        if not passphrase:
            raise ValueError("passphrase must be a non-empty string")
        self._passphrase = passphrase

    def get_passphrase(self) -> str:
        return self._passphrase

    def __repr__(self) -> str:
        return "StaticPassphraseProvider(passphrase=<redacted>)"


@dataclass(frozen=True)
class EncryptedObject:
    """Ciphertext plus everything needed to decrypt it except the passphrase."""

    salt: bytes
    nonce: bytes
    ciphertext: bytes
    iterations: int = DEFAULT_ITERATIONS


class AesTool(ABC):
    """Symmetric encryption with a printable envelope format."""

    @abstractmethod
    def encrypt(self, data: bytes, passphrase: str) -> EncryptedObject:
        """Encrypt ``data`` under ``passphrase``."""

    @abstractmethod
    def decrypt(self, encrypted: EncryptedObject, passphrase: str) -> bytes:
        """Return the plaintext of ``encrypted``."""

    @abstractmethod
    def encode_object(self, encrypted: EncryptedObject) -> str:
        """Render ``encrypted`` as printable text."""

    @abstractmethod
    def decode_object(self, text: str) -> EncryptedObject:
        """Parse text produced by :meth:`encode_object`."""


class AesToolImpl(AesTool):
    """PBKDF2-HMAC-SHA256 key derivation with AES-256-GCM.

    Envelope: version byte, iteration count (4 bytes, big endian), salt, nonce
    and ciphertext with the GCM tag, URL-safe base64 encoded.
    """

    def __init__(self, iterations: int = DEFAULT_ITERATIONS) -> None:
        if not 1 <= iterations <= MAX_ITERATIONS:
            raise ValueError(f"iterations must be between 1 and {MAX_ITERATIONS}")
        self.iterations = iterations

    def encrypt(self, data: bytes, passphrase: str) -> EncryptedObject:
        if not isinstance(data, (bytes, bytearray)):
            raise AesToolException(f"Expected bytes to encrypt, got {type(data).__name__}")
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        key = self._derive_key(passphrase, salt, self.iterations)
        ciphertext = AESGCM(key).encrypt(nonce, bytes(data), None)
        return EncryptedObject(salt=salt, nonce=nonce, ciphertext=ciphertext, iterations=self.iterations)

    def decrypt(self, encrypted: EncryptedObject, passphrase: str) -> bytes:
        key = self._derive_key(passphrase, encrypted.salt, encrypted.iterations)
        try:
            return AESGCM(key).decrypt(encrypted.nonce, encrypted.ciphertext, None)
        except InvalidTag as exc:
            raise AesToolException("Decryption failed: wrong passphrase or tampered data") from exc

    def encode_object(self, encrypted: EncryptedObject) -> str:
        if len(encrypted.salt) != SALT_SIZE or len(encrypted.nonce) != NONCE_SIZE:
            raise AesToolException("Encrypted object has an invalid salt or nonce size")
        payload = b"".join(
            (
                _HEADER.pack(ENVELOPE_VERSION, encrypted.iterations),
                encrypted.salt,
                encrypted.nonce,
                encrypted.ciphertext,
            )
        )
        return base64.urlsafe_b64encode(payload).decode("ascii")

    def decode_object(self, text: str) -> EncryptedObject:
        if not text:
            raise AesToolException("No encrypted value to decode")
        try:
            payload = base64.urlsafe_b64decode(text.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
            raise AesToolException("Encrypted value is not valid base64") from exc

        minimum = _HEADER.size + SALT_SIZE + NONCE_SIZE + TAG_SIZE
        if len(payload) < minimum:
            raise AesToolException("Encrypted value is truncated")
        version, iterations = _HEADER.unpack_from(payload)
        if version != ENVELOPE_VERSION:
            raise AesToolException(f"Unsupported envelope version {version}")
        if not 1 <= iterations <= MAX_ITERATIONS:
            raise AesToolException("Encrypted value has an invalid iteration count")
        offset = _HEADER.size
        salt = payload[offset : offset + SALT_SIZE]
        offset += SALT_SIZE
        nonce = payload[offset : offset + NONCE_SIZE]
        offset += NONCE_SIZE
        return EncryptedObject(
            salt=salt,
            nonce=nonce,
            ciphertext=payload[offset:],
            iterations=iterations,
        )

    @staticmethod
    def _derive_key(passphrase: str, salt: bytes, iterations: int) -> bytes:
        if not isinstance(passphrase, str) or not passphrase:
            raise AesToolException("A non-empty passphrase is required")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(passphrase.encode("utf-8"))


class BinarySerializer:
    """Converts values to and from bytes with :mod:`pickle`.

    Only deserialize bytes that were authenticated first; generated getters do
    so through the AES-GCM tag.
    """

    @staticmethod
    def serialize_object(value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            raise BinarySerializerException(
                f"Cannot serialize value of type {type(value).__name__}"
            ) from exc

    @staticmethod
    def deserialize_object(data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except (
            pickle.UnpicklingError,
            EOFError,
            AttributeError,
            ImportError,
            IndexError,
            KeyError,
            TypeError,
            ValueError,
        ) as exc:
            raise BinarySerializerException("Cannot deserialize value") from exc


__all__ = [
    "AesTool",
    "AesToolException",
    "AesToolImpl",
    "BinarySerializer",
    "BinarySerializerException",
    "DEFAULT_ITERATIONS",
    "EncryptedObject",
    "IllegalStateError",
    "MAX_ITERATIONS",
    "PassphraseProvider",
    "StaticPassphraseProvider",
    "Transient",
]

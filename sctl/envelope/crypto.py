"""
Envelope Crypto — the KMS capability, a local AEAD backend and sealing helpers.

The envelope store never encrypts anything itself. A secret is sealed by
a :class:`KMS` backend before it reaches the store:

    plaintext --(base64 wrap, optional)--> KMS.encrypt --> base64 --> Secret.ciphertext

LocalKMS derives a per-key-reference key with HKDF(master_key, key_uri)
and seals with AES-GCM: [nonce 12B][encrypted_payload + tag 16B].

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import logging
from abc import ABC, abstractmethod
from typing import Union

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..data import Secret, ENCODING_BASE64, ENCODING_PLAIN
from .config import KEY_LENGTH, load_master_key

logger = logging.getLogger("sctl.envelope")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


class KMS(ABC):
    """Encryption service capability.

    Backends surface their own errors unmodified; callers never retry.
    """

    @abstractmethod
    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` and return raw ciphertext bytes."""

    @abstractmethod
    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt raw ``ciphertext`` bytes and return the plaintext."""


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(master_key: bytes, key_uri: str) -> bytes:
    """Return the AEAD key LocalKMS uses for ``key_uri``.

    The key reference is the HKDF-SHA256 ``info``, so every key reference
    under one master key gets its own key. The same pair always yields
    the same key.
    """
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=key_uri.encode("utf-8"),
    ).derive(master_key)


class LocalKMS(KMS):
    """KMS backend that keeps its key material on this machine.

    Ciphertexts are bound to ``key_uri``: the same master key under a
    different key reference derives a different key and fails to decrypt.
    """

    def __init__(
        self,
        master_key: bytes,
        key_uri: str,
        cipher_backend: str = "aesgcm",
    ):
        if len(master_key) != KEY_LENGTH:
            raise ValueError(
                f"master key must be exactly {KEY_LENGTH} bytes, got {len(master_key)}"
            )
        if not key_uri:
            raise ValueError("LocalKMS requires a key reference")
        try:
            cipher_cls = _CIPHERS[cipher_backend.lower()]
        except KeyError:
            raise ValueError(f"Unsupported cipher backend: {cipher_backend}") from None
        self.key_uri = key_uri
        self._cipher = cipher_cls(derive_key(master_key, key_uri))
        self._aad = key_uri.encode("utf-8")

    def __repr__(self) -> str:
        return f"<LocalKMS key_uri={self.key_uri!r}>"

    def encrypt(self, plaintext: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._cipher.encrypt(nonce, plaintext, self._aad)

    def decrypt(self, ciphertext: bytes) -> bytes:
        _min = NONCE_SIZE + TAG_SIZE
        if len(ciphertext) < _min:
            raise ValueError(
                f"ciphertext too short: {len(ciphertext)} bytes (minimum {_min})"
            )
        nonce = ciphertext[:NONCE_SIZE]
        return self._cipher.decrypt(nonce, ciphertext[NONCE_SIZE:], self._aad)

    @classmethod
    def from_env(cls) -> "LocalKMS":
        """Create a LocalKMS from SCTL_MASTER_KEY, SCTL_KEY and SCTL_CIPHER_BACKEND.

        Raises:
            RuntimeError: If SCTL_MASTER_KEY or SCTL_KEY is not set.
        """
        master_key = load_master_key()
        key_uri = os.environ.get("SCTL_KEY")
        if not key_uri:
            raise RuntimeError("Missing Env configuration: SCTL_KEY")
        return cls(
            master_key,
            key_uri,
            cipher_backend=os.environ.get("SCTL_CIPHER_BACKEND", "aesgcm"),
        )


# ---------------------------------------------------------------------------
# Sealing
# ---------------------------------------------------------------------------

def seal_secret(
    name: str,
    plaintext: Union[bytes, str],
    kms: KMS,
    encoding: str = ENCODING_BASE64,
) -> Secret:
    """Encrypt ``plaintext`` with ``kms`` into a new :class:`Secret`.

    The name is upper-cased. With ``base64`` encoding the plaintext is
    wrapped before encryption so arbitrary bytes survive the round-trip.

    Raises:
        ValueError: If ``name`` is empty or ``encoding`` is unsupported.
    """
    if not name:
        raise ValueError("Secret name cannot be empty")
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    if encoding == ENCODING_BASE64:
        plaintext = base64.b64encode(plaintext)
    elif encoding != ENCODING_PLAIN:
        raise ValueError(f"Unsupported secret encoding: {encoding}")
    cypher = kms.encrypt(plaintext)
    return Secret(
        name=name.upper(),
        ciphertext=base64.b64encode(cypher).decode("ascii"),
        encoding=encoding,
    )


def unseal_secret(secret: Secret, kms: KMS) -> bytes:
    """Decrypt ``secret`` with ``kms`` and undo its encoding."""
    plaintext = kms.decrypt(base64.b64decode(secret.ciphertext))
    if secret.encoding == ENCODING_BASE64:
        return base64.b64decode(plaintext)
    logger.debug("Skipping decode of %s due to encoding != base64", secret.name)
    return plaintext

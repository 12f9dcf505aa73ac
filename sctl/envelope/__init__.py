"""Envelope Store — KMS-encrypted secrets at rest in a single versioned file.

Security Note (Threat Model):
    The envelope holds only ciphertext produced by an external KMS; reading
    the file without access to that KMS reveals secret names and timestamps
    but no values. There is no locking: concurrent writers race and the last
    save wins. This is an accepted limitation for a single-operator tool.
"""

from .config import StoreConfig, resolve_path, generate_master_key, DEFAULT_FILENAME
from .crypto import KMS, LocalKMS, seal_secret, unseal_secret
from .state import EnvelopeFormat, LoadResult, load_envelope, save_envelope
from .store import EnvelopeStore, add_secret, read_secrets, delete_secret
from .key_rotation import rekey_envelope

__all__ = [
    "StoreConfig",
    "resolve_path",
    "generate_master_key",
    "DEFAULT_FILENAME",
    "KMS",
    "LocalKMS",
    "seal_secret",
    "unseal_secret",
    "EnvelopeFormat",
    "LoadResult",
    "load_envelope",
    "save_envelope",
    "EnvelopeStore",
    "add_secret",
    "read_secrets",
    "delete_secret",
    "rekey_envelope",
]

"""
EnvelopeStore — add, read and delete secrets in an envelope file.

Every operation is one load-mutate-save cycle:

    resolve path -> load (migrating legacy data) -> key check (writes)
    -> mutate secrets -> save

There is no locking. Two concurrent writers race and the last save wins,
since every save rewrites the whole file.

Security Note:
    Never log plaintext or ciphertext values. Only log secret names,
    key references and paths.
"""
import os
import logging
from typing import Optional

from ..data import Envelope, Secret, Secrets
from .config import PathLike, StoreConfig
from .crypto import KMS, unseal_secret
from .state import load_envelope, save_envelope

logger = logging.getLogger("sctl.envelope")


class EnvelopeStore:
    """Store operations over a single envelope file.

    ``config`` supplies the default envelope path, the default key
    reference and whether writes are gated by the key consistency check.
    Every method also accepts an explicit ``path`` overriding the config.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()

    def load(self, path: PathLike = "") -> Envelope:
        """Load the envelope, tolerating a missing file as empty."""
        return load_envelope(self.config.target(path)).envelope

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_secret(
        self,
        secret: Secret,
        key_uri: Optional[str] = None,
        enforce_key_check: Optional[bool] = None,
        path: PathLike = "",
    ) -> Envelope:
        """Upsert ``secret`` and record ``key_uri`` as the envelope key.

        Args:
            secret: Entry already encrypted under ``key_uri``.
            key_uri: Key reference; defaults to the configured one.
            enforce_key_check: Refuse a key that differs from the recorded
                one. Defaults to the configured setting. Re-key flows
                pass ``False``.
            path: Envelope path; defaults to the configured one.

        Returns:
            The saved envelope.

        Raises:
            KeyMismatchError: If the key check refuses the write. Nothing
                is written.
        """
        if key_uri is None:
            key_uri = self.config.key_uri
        if enforce_key_check is None:
            enforce_key_check = self.config.enforce_key_check

        envelope = self.load(path)
        if enforce_key_check:
            envelope.ensure_same_key(key_uri)
        else:
            logger.debug("Key consistency check skipped for %s", secret.name)

        envelope.secrets.add(secret)
        envelope.key_uri = key_uri
        save_envelope(envelope)
        logger.debug("Stored %s in %s", secret.name, envelope.path)
        return envelope

    def delete_secret(self, name: str, path: PathLike = "") -> Envelope:
        """Remove ``name`` from the envelope; absent names are a no-op.

        Removal cannot introduce a key mismatch, so no key check runs.
        """
        envelope = self.load(path)
        envelope.secrets.remove(name)
        save_envelope(envelope)
        return envelope

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_secrets(self, path: PathLike = "") -> tuple[Secrets, str]:
        """Return the stored secrets and the recorded key reference.

        A missing file yields no secrets and an empty key reference.
        """
        envelope = self.load(path)
        return envelope.secrets, envelope.key_uri

    def find_secret(self, name: str, path: PathLike = "") -> Secret:
        """Return the secret called ``name``.

        Raises:
            SecretNotFoundError: If the envelope holds no such secret.
        """
        secrets, _ = self.read_secrets(path)
        return secrets.find(name)

    def list_names(self, path: PathLike = "") -> list[str]:
        secrets, _ = self.read_secrets(path)
        return secrets.names()

    def reveal_secret(self, name: str, kms: KMS, path: PathLike = "") -> bytes:
        """Decrypt the secret called ``name``.

        The lookup fails before ``kms`` is ever called.
        """
        return unseal_secret(self.find_secret(name, path), kms)

    def environment(self, kms: KMS, path: PathLike = "") -> dict[str, str]:
        """Decrypt every secret into a ``NAME -> value`` mapping for a child env.

        Values are decoded with :func:`os.fsdecode`, so plaintext that is
        not valid UTF-8 maps back to its original bytes through
        :func:`os.fsencode` when handed to a process environment.
        """
        secrets, _ = self.read_secrets(path)
        return {
            secret.name: os.fsdecode(unseal_secret(secret, kms))
            for secret in secrets
        }


# ---------------------------------------------------------------------------
# Module-level operations
# ---------------------------------------------------------------------------

def add_secret(
    secret: Secret,
    key_uri: Optional[str] = None,
    enforce_key_check: Optional[bool] = None,
    path: PathLike = "",
    config: Optional[StoreConfig] = None,
) -> Envelope:
    """Upsert ``secret`` into the envelope at ``path``. See :meth:`EnvelopeStore.add_secret`."""
    return EnvelopeStore(config).add_secret(
        secret, key_uri=key_uri, enforce_key_check=enforce_key_check, path=path,
    )


def read_secrets(
    path: PathLike = "",
    config: Optional[StoreConfig] = None,
) -> tuple[Secrets, str]:
    """Return ``(secrets, key_uri)`` from the envelope at ``path``."""
    return EnvelopeStore(config).read_secrets(path)


def delete_secret(
    name: str,
    path: PathLike = "",
    config: Optional[StoreConfig] = None,
) -> Envelope:
    """Remove ``name`` from the envelope at ``path``."""
    return EnvelopeStore(config).delete_secret(name, path)

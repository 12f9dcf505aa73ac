"""
Envelope Key Rotation — re-encrypt every secret under a new KMS key.

Decrypts each ciphertext with the source backend and re-encrypts the same
payload with the target backend, so names and encodings are kept. The
whole envelope is rewritten in a single save; the key consistency check
is bypassed because every entry moves to the new key at once.

Security Note:
    Plaintext exists in memory only during re-encryption of each entry.
    Never log plaintext or ciphertext values.
"""
import base64
import logging
from typing import Optional

from ..data import Secret, Secrets
from .config import PathLike, StoreConfig
from .crypto import KMS
from .state import load_envelope, save_envelope

logger = logging.getLogger("sctl.envelope")


def rekey_envelope(
    source: KMS,
    target: KMS,
    target_key_uri: str,
    path: PathLike = "",
    config: Optional[StoreConfig] = None,
) -> dict:
    """Re-encrypt all secrets in the envelope from ``source`` to ``target``.

    Args:
        source: Backend able to decrypt the current ciphertexts.
        target: Backend encrypting under the new key.
        target_key_uri: Key reference recorded for ``target``.
        path: Envelope path; defaults to the configured one.
        config: Store configuration.

    Returns:
        Stats dict with keys: total, rotated.

    Raises:
        ValueError: If ``target_key_uri`` is empty.
        Exception: Any backend error aborts the rotation before the save.
    """
    if not target_key_uri:
        raise ValueError("target_key_uri cannot be empty")

    config = config or StoreConfig()
    envelope = load_envelope(config.target(path)).envelope
    stats = {"total": len(envelope.secrets), "rotated": 0}

    logger.info(
        "Starting key rotation of %s from %r to %r (%d secret(s))",
        envelope.path, envelope.key_uri, target_key_uri, stats["total"],
    )

    rotated = Secrets()
    for secret in envelope.secrets:
        try:
            payload = source.decrypt(base64.b64decode(secret.ciphertext))
            cypher = target.encrypt(payload)
        except Exception as err:
            logger.error("Error rotating secret %s: %s", secret.name, err)
            raise
        rotated.add(
            Secret(
                name=secret.name,
                ciphertext=base64.b64encode(cypher).decode("ascii"),
                encoding=secret.encoding,
            )
        )
        stats["rotated"] += 1

    envelope.secrets = rotated
    envelope.key_uri = target_key_uri
    save_envelope(envelope)

    logger.info("Key rotation complete: %s", stats)
    return stats

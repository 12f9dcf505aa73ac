"""sctl — secrets encrypted by an external KMS, kept at rest in an envelope file."""
from .version import __version__
from .data import Secret, Secrets, Envelope, ENVELOPE_VERSION
from .exceptions import (
    EnvelopeError,
    MalformedEnvelopeError,
    KeyMismatchError,
    PathResolutionError,
    SecretNotFoundError,
)

__all__ = [
    "__version__",
    "Secret",
    "Secrets",
    "Envelope",
    "ENVELOPE_VERSION",
    "EnvelopeError",
    "MalformedEnvelopeError",
    "KeyMismatchError",
    "PathResolutionError",
    "SecretNotFoundError",
]

"""
Envelope data model — secret entries, the secret collection and the envelope.

On-disk shapes:
- Legacy (V1): a bare JSON array of secret objects.
- Current (V2): ``{"key_uri": ..., "version": "2", "secrets": [...]}``.

An example JSON-serialized secret::

    {
      "name": "A_SECRET",
      "cypher": "0xD34DB33F",
      "created": "2019-05-01T13:01:27.189242Z",
      "encoding": "plain"
    }
"""
import re
import logging
from typing import Any, Optional
from pathlib import Path
from datetime import datetime, timezone
from collections.abc import Iterator

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    field_validator,
)

from .exceptions import KeyMismatchError, SecretNotFoundError

logger = logging.getLogger("sctl.envelope")

ENVELOPE_VERSION = "2"

ENCODING_PLAIN = "plain"
ENCODING_BASE64 = "base64"
ENCODINGS = (ENCODING_PLAIN, ENCODING_BASE64)

# Older envelopes carry nanosecond timestamps; datetime holds microseconds.
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Secret(BaseModel):
    """A single named ciphertext plus metadata.

    ``ciphertext`` is opaque: the store never interprets it. ``encoding``
    records whether the plaintext was base64-wrapped before encryption and
    is only consumed by callers when decrypting.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    ciphertext: str = Field(alias="cypher")
    created: datetime = Field(default_factory=_utcnow)
    encoding: str = Field(default=ENCODING_PLAIN)

    @field_validator("created", mode="before")
    @classmethod
    def truncate_fraction(cls, v: Any) -> Any:
        """Drop sub-microsecond digits written by older tooling."""
        if isinstance(v, str):
            return _FRACTION_PATTERN.sub(r"\1", v, count=1)
        return v

    @field_validator("encoding", mode="before")
    @classmethod
    def validate_encoding(cls, v: Any) -> str:
        """Accept ``plain`` or ``base64``; a missing marker reads as plain."""
        if v is None or v == "":
            return ENCODING_PLAIN
        if v not in ENCODINGS:
            raise ValueError(f"Unsupported secret encoding: {v}")
        return v


class Secrets(RootModel[list[Secret]]):
    """Ordered, name-keyed collection of :class:`Secret`.

    This is also the legacy (V1) document shape. Names are unique; an
    upsert of an existing name removes the old entry and appends the new
    one at the tail.
    """

    root: list[Secret] = Field(default_factory=list)

    def __iter__(self) -> Iterator[Secret]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Secret:
        return self.root[index]

    def __contains__(self, item: object) -> bool:
        name = item.name if isinstance(item, Secret) else item
        return any(secret.name == name for secret in self.root)

    def add(self, secret: Secret) -> None:
        """Upsert ``secret``. An existing entry with the same name is rotated out."""
        if secret.name in self:
            logger.info("Rotating entry %s", secret.name)
            self.root = [s for s in self.root if s.name != secret.name]
        self.root.append(secret)

    def remove(self, name: str) -> None:
        """Remove the entry called ``name``. No-op when absent."""
        for index, secret in enumerate(self.root):
            if secret.name == name:
                logger.info("Removing entry %s", name)
                del self.root[index]
                return

    def find(self, name: str) -> Secret:
        """Return the entry called ``name``.

        Raises:
            SecretNotFoundError: If no entry matches.
        """
        for secret in self.root:
            if secret.name == name:
                return secret
        raise SecretNotFoundError(name)

    def names(self) -> list[str]:
        """Sorted names of every stored entry."""
        return sorted(secret.name for secret in self.root)


class Envelope(BaseModel):
    """The versioned on-disk container (current format).

    ``path`` is run-time identity only and never serialized.
    """

    key_uri: str = Field(default="")
    version: str = Field(default=ENVELOPE_VERSION)
    secrets: Secrets = Field(default_factory=Secrets)
    path: Optional[Path] = Field(default=None, exclude=True)

    @field_validator("key_uri", "version", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("secrets", mode="before")
    @classmethod
    def null_as_no_secrets(cls, v: Any) -> Any:
        return [] if v is None else v

    def same_key(self, key: str) -> bool:
        """Decide whether a write encrypted under ``key`` may join this envelope.

        Evaluated in order:

        1. Secrets exist, no key is recorded and ``key`` is set: allow.
           This is the first write after a legacy migration; the historical
           key is unknown so the caller's key is trusted from now on.
        2. No secrets and no recorded key: allow (first run).
        3. Otherwise allow only when the recorded key equals ``key``.
        """
        if len(self.secrets) > 0 and not self.key_uri and key:
            logger.debug(
                "No key recorded in envelope %s. Presuming %s is the correct key.",
                self.path, key,
            )
            return True
        if not self.key_uri and len(self.secrets) == 0:
            logger.debug("Envelope %s is empty, accepting first write", self.path)
            return True
        return self.key_uri == key

    def ensure_same_key(self, key: str) -> None:
        """Raise :class:`KeyMismatchError` unless :meth:`same_key` allows ``key``."""
        if not self.same_key(key):
            raise KeyMismatchError(self.key_uri, key)

    @property
    def empty(self) -> bool:
        return len(self.secrets) == 0

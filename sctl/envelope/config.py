"""
Envelope Configuration — path resolution, store settings and local key material.

Reads settings from environment variables:
    SCTL_STATE_FILE = <path to the envelope file or its directory>
    SCTL_KEY = <key reference of the KMS key encrypting new secrets>
    SCTL_SKIP_KEY_CHECK = 1 | true | yes
    SCTL_MASTER_KEY = <base64-encoded 32-byte key, LocalKMS only>

Security Note:
    Never log key material. Only log key references and paths.
"""
import os
import base64
import secrets
import logging
from typing import Union
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..exceptions import PathResolutionError

logger = logging.getLogger("sctl.envelope")

DEFAULT_FILENAME = ".scuttle.json"
KEY_LENGTH = 32

_TRUTHY = frozenset({"1", "true", "yes"})

PathLike = Union[str, os.PathLike]


def resolve_path(
    path: PathLike = "",
    default_filename: str = DEFAULT_FILENAME,
) -> Path:
    """Determine the concrete envelope file for a user-supplied path.

    Args:
        path: Empty, an existing directory, or an existing file.
        default_filename: File name used for empty and directory inputs.

    Returns:
        ``$PWD/<default_filename>`` for an empty path,
        ``<dir>/<default_filename>`` for a directory, or the file itself.

    Raises:
        PathResolutionError: If ``path`` is neither a file nor a directory.
    """
    if not path:
        return Path.cwd() / default_filename
    candidate = Path(path).expanduser()
    if candidate.is_dir():
        return candidate / default_filename
    if candidate.is_file():
        return candidate
    raise PathResolutionError(
        f"{path} is neither an existing envelope file nor a directory"
    )


def load_master_key() -> bytes:
    """Load the LocalKMS master key from the SCTL_MASTER_KEY env var.

    Raises:
        RuntimeError: If SCTL_MASTER_KEY is not set.
        ValueError: If the key does not decode to exactly 32 bytes.
    """
    raw = os.environ.get("SCTL_MASTER_KEY")
    if not raw:
        raise RuntimeError(
            "No master key found in environment. "
            "Set SCTL_MASTER_KEY=<base64-encoded-32-byte-key>"
        )
    key_bytes = base64.b64decode(raw)
    if len(key_bytes) != KEY_LENGTH:
        raise ValueError(
            f"SCTL_MASTER_KEY must decode to exactly {KEY_LENGTH} bytes, "
            f"got {len(key_bytes)}"
        )
    return key_bytes


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return as base64 string.

    This is a utility for operators to generate new keys.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


class StoreConfig(BaseModel):
    """Validated envelope store configuration."""

    default_filename: str = Field(default=DEFAULT_FILENAME)
    state_path: str = Field(default="")
    key_uri: str = Field(default="")
    enforce_key_check: bool = Field(default=True)

    @field_validator("default_filename")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        """A default filename is a bare name, never a path."""
        if not v:
            raise ValueError("default_filename cannot be empty")
        if os.sep in v or (os.altsep and os.altsep in v):
            raise ValueError(f"default_filename must not contain a path separator: {v}")
        return v

    def resolve(self, path: PathLike = "") -> Path:
        """Resolve ``path`` (or the configured state path) to an envelope file."""
        return resolve_path(path or self.state_path, self.default_filename)

    def target(self, path: PathLike = "") -> Path:
        """Path to load from and save to.

        Same as :meth:`resolve`, except a path that does not exist yet is
        used verbatim so the first write can create it.
        """
        raw = path or self.state_path
        try:
            return self.resolve(raw)
        except PathResolutionError:
            logger.debug("Envelope %s does not exist yet, using it verbatim", raw)
            return Path(raw).expanduser()

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create StoreConfig by loading values from environment."""
        return cls(
            state_path=os.environ.get("SCTL_STATE_FILE", ""),
            key_uri=os.environ.get("SCTL_KEY", ""),
            enforce_key_check=(
                os.environ.get("SCTL_SKIP_KEY_CHECK", "").lower() not in _TRUTHY
            ),
        )

"""
Envelope State — load and save the envelope file.

Loading tries the current (V2) shape first and falls back to the legacy
(V1) bare array, migrating it in memory. Nothing is written until the
caller saves, and every save writes the current shape.
"""
import os
import logging
from enum import Enum
from typing import Any, NamedTuple
from pathlib import Path

import orjson
from pydantic import ValidationError

from ..data import Envelope, Secrets, ENVELOPE_VERSION
from ..exceptions import EnvelopeError, MalformedEnvelopeError
from .config import PathLike

logger = logging.getLogger("sctl.envelope")

FILE_MODE = 0o660


class EnvelopeFormat(str, Enum):
    """Which shape a loaded envelope came from."""

    NEW = "new"
    LEGACY = "1"
    CURRENT = "2"


class LoadResult(NamedTuple):
    envelope: Envelope
    format: EnvelopeFormat

    @property
    def migrated(self) -> bool:
        return self.format is EnvelopeFormat.LEGACY


def _decode(raw: bytes) -> Any:
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as err:
        raise MalformedEnvelopeError(f"envelope is not valid JSON: {err}") from err


def parse_current(raw: bytes) -> Envelope:
    """Parse ``raw`` as a current-format envelope.

    A JSON ``null`` document is an empty envelope.

    Raises:
        MalformedEnvelopeError: If ``raw`` is not a JSON object of that shape.
    """
    document = _decode(raw)
    if document is None:
        return Envelope()
    if not isinstance(document, dict):
        raise MalformedEnvelopeError(
            f"expected a JSON object, got {type(document).__name__}"
        )
    try:
        return Envelope.model_validate(document)
    except ValidationError as err:
        raise MalformedEnvelopeError(f"invalid envelope: {err}") from err


def parse_legacy(raw: bytes) -> Secrets:
    """Parse ``raw`` as a legacy bare array of secrets.

    Raises:
        MalformedEnvelopeError: If ``raw`` is not a JSON array of secrets.
    """
    document = _decode(raw)
    if document is None:
        return Secrets()
    if not isinstance(document, list):
        raise MalformedEnvelopeError(
            f"expected a JSON array, got {type(document).__name__}"
        )
    try:
        return Secrets.model_validate(document)
    except ValidationError as err:
        raise MalformedEnvelopeError(f"invalid legacy secrets: {err}") from err


def load_envelope(path: PathLike) -> LoadResult:
    """Read the envelope at ``path``.

    A missing file yields a fresh empty envelope. A legacy file yields a
    migrated envelope with no key reference.

    Raises:
        MalformedEnvelopeError: If the file matches neither shape.
        OSError: If the file exists but cannot be read.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        logger.warning("No envelope found at %s. Initializing empty envelope", path)
        return LoadResult(Envelope(path=path), EnvelopeFormat.NEW)

    try:
        envelope = parse_current(raw)
    except MalformedEnvelopeError as err:
        logger.debug("Falling back to legacy parser for %s: %s", path, err)
        try:
            secrets = parse_legacy(raw)
        except MalformedEnvelopeError as legacy_err:
            raise MalformedEnvelopeError(
                f"{path} is neither a current nor a legacy envelope"
            ) from legacy_err
        logger.info(
            "Migrating legacy envelope %s (%d secret(s)) in memory", path, len(secrets),
        )
        return LoadResult(
            Envelope(key_uri="", secrets=secrets, path=path),
            EnvelopeFormat.LEGACY,
        )

    envelope.path = path
    return LoadResult(envelope, EnvelopeFormat.CURRENT)


def dump_envelope(envelope: Envelope) -> bytes:
    """Serialize the whole envelope (not just its secrets) to indented JSON."""
    payload = envelope.model_dump(mode="json", by_alias=True)
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE)


def save_envelope(envelope: Envelope) -> None:
    """Write ``envelope`` to its path, replacing any existing file.

    Raises:
        EnvelopeError: If the envelope has no path.
        OSError: If the file cannot be written.
    """
    if envelope.path is None:
        raise EnvelopeError("envelope has no path to save to")
    if not envelope.version:
        envelope.version = ENVELOPE_VERSION
    if not envelope.key_uri:
        logger.warning(
            "No key reference recorded for envelope %s. Saving without one.",
            envelope.path,
        )
    data = dump_envelope(envelope)
    fd = os.open(envelope.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
    with os.fdopen(fd, "wb") as fp:
        fp.write(data)
    logger.debug(
        "Saved envelope %s (%d secret(s))", envelope.path, len(envelope.secrets),
    )

"""Errors raised by the envelope store."""


class EnvelopeError(RuntimeError):
    """Raised when envelope persistence fails."""


class MalformedEnvelopeError(EnvelopeError, ValueError):
    """The envelope file matches neither the current nor the legacy shape."""


class KeyMismatchError(EnvelopeError):
    """A write was refused because its key differs from the recorded one."""

    def __init__(self, recorded_key: str, requested_key: str):
        self.recorded_key = recorded_key
        self.requested_key = requested_key
        super().__init__(
            f"Envelope is encrypted with key {recorded_key!r}, "
            f"refusing to write a secret encrypted with {requested_key!r}"
        )


class PathResolutionError(EnvelopeError, FileNotFoundError):
    """The given path is neither an existing file nor an existing directory."""


class SecretNotFoundError(EnvelopeError, KeyError):
    """No secret with the searched name exists in the collection."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Secret {name} not found")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return self.args[0]

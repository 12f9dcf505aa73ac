"""Shared fixtures for the envelope store tests."""
import pytest

from sctl.envelope.crypto import KMS, LocalKMS


class ReversingKMS(KMS):
    """Deterministic stand-in for a KMS backend: tags and reverses bytes."""

    def __init__(self, tag: bytes = b"K1:"):
        self.tag = tag
        self.calls = 0

    def encrypt(self, plaintext: bytes) -> bytes:
        self.calls += 1
        return self.tag + plaintext[::-1]

    def decrypt(self, ciphertext: bytes) -> bytes:
        self.calls += 1
        if not ciphertext.startswith(self.tag):
            raise ValueError("ciphertext was not produced by this key")
        return ciphertext[len(self.tag):][::-1]


class ExplodingKMS(KMS):
    """KMS that must never be reached."""

    def encrypt(self, plaintext: bytes) -> bytes:
        raise AssertionError("encrypt should not be called")

    def decrypt(self, ciphertext: bytes) -> bytes:
        raise AssertionError("decrypt should not be called")


LEGACY_ENVELOPE = b"""[
 {
  "name": "DATABASE_URL",
  "cypher": "CiQArcZm2It07gVRIxN091iI3S88Bemz",
  "created": "2019-05-01T13:01:27.189242799-05:00",
  "encoding": "base64"
 },
 {
  "name": "API_TOKEN",
  "cypher": "CiQArcZm2OMpefBMf0KlBEprYw7UvAml",
  "created": "2019-05-02T08:00:00Z",
  "encoding": "plain"
 }
]"""

CURRENT_ENVELOPE = b"""{
 "key_uri": "projects/sctl/locations/us/keyRings/sctl/cryptoKeys/dev",
 "version": "2",
 "secrets": [
  {
   "name": "NOODLES",
   "cypher": "0xN00DL3S",
   "created": "2020-01-01T00:00:00Z",
   "encoding": "plain"
  },
  {
   "name": "BEEF",
   "cypher": "0xD34DB33F",
   "created": "2020-01-02T00:00:00Z",
   "encoding": "base64"
  }
 ]
}"""


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test from an empty working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def legacy_file(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_bytes(LEGACY_ENVELOPE)
    return path


@pytest.fixture
def current_file(tmp_path):
    path = tmp_path / "current.json"
    path.write_bytes(CURRENT_ENVELOPE)
    return path


@pytest.fixture
def kms():
    return ReversingKMS()


@pytest.fixture
def other_kms():
    return ReversingKMS(tag=b"K2:")


@pytest.fixture
def exploding_kms():
    return ExplodingKMS()


@pytest.fixture
def master_key():
    return bytes(range(32))


@pytest.fixture
def local_kms(master_key):
    return LocalKMS(master_key, "local/keys/k1")

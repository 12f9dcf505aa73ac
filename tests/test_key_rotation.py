"""
Tests for re-encrypting a whole envelope under a new key.
"""
import pytest

from sctl.envelope import EnvelopeStore, LocalKMS, StoreConfig, rekey_envelope, seal_secret


# --- Test Fixtures ---

@pytest.fixture
def envelope_path(tmp_path):
    return tmp_path / "envelope.json"


@pytest.fixture
def populated(envelope_path, kms):
    """An envelope with three secrets sealed under K1."""
    store = EnvelopeStore(StoreConfig(state_path=str(envelope_path)))
    store.add_secret(seal_secret("one", "1", kms), key_uri="K1")
    store.add_secret(seal_secret("two", "2", kms, encoding="plain"), key_uri="K1")
    store.add_secret(seal_secret("three", "3", kms), key_uri="K1")
    return store


# --- Test Rotation ---

class TestRekeyEnvelope:
    """Tests for bulk re-key."""

    def test_rekey(self, populated, envelope_path, kms, other_kms):
        """Test every secret moves to the new key and the key is recorded."""
        stats = rekey_envelope(kms, other_kms, "K2", path=envelope_path)

        assert stats == {"total": 3, "rotated": 3}
        secrets, key_uri = populated.read_secrets()
        assert key_uri == "K2"
        assert [s.name for s in secrets] == ["ONE", "TWO", "THREE"]
        assert secrets.find("TWO").encoding == "plain"
        assert populated.environment(other_kms) == {"ONE": "1", "TWO": "2", "THREE": "3"}

    def test_rekey_allows_writes_under_new_key(self, populated, envelope_path, kms, other_kms):
        """Test the new key passes the consistency check afterwards."""
        rekey_envelope(kms, other_kms, "K2", path=envelope_path)
        populated.add_secret(seal_secret("four", "4", other_kms), key_uri="K2")
        assert populated.list_names() == ["FOUR", "ONE", "THREE", "TWO"]

    def test_rekey_failure_leaves_file(self, populated, envelope_path, other_kms):
        """Test a decrypt failure aborts before anything is saved."""
        before = envelope_path.read_bytes()
        with pytest.raises(ValueError):
            rekey_envelope(other_kms, other_kms, "K2", path=envelope_path)
        assert envelope_path.read_bytes() == before

    def test_rekey_local_kms(self, tmp_path, master_key):
        """Test re-keying between two LocalKMS key references."""
        path = tmp_path / "local.json"
        old = LocalKMS(master_key, "local/keys/old")
        new = LocalKMS(master_key, "local/keys/new")
        store = EnvelopeStore(StoreConfig(state_path=str(path)))
        store.add_secret(seal_secret("token", "abc", old), key_uri=old.key_uri)

        rekey_envelope(old, new, new.key_uri, path=path)

        assert store.reveal_secret("TOKEN", new) == b"abc"
        _, key_uri = store.read_secrets()
        assert key_uri == "local/keys/new"

    def test_rekey_empty_envelope(self, envelope_path, kms, other_kms):
        """Test re-keying a missing envelope records the key only."""
        stats = rekey_envelope(kms, other_kms, "K2", path=envelope_path)
        assert stats == {"total": 0, "rotated": 0}
        _, key_uri = EnvelopeStore().read_secrets(envelope_path)
        assert key_uri == "K2"

    def test_rekey_requires_target_key(self, envelope_path, kms, other_kms):
        """Test the new key reference must be given."""
        with pytest.raises(ValueError):
            rekey_envelope(kms, other_kms, "", path=envelope_path)

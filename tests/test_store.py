"""
Store-level tests: bootstrap, atomic replace, checksums and failure cleanup.
"""

import hashlib
import io
import json

import pytest

from firmware_registry.errors import FirmwareNotFound, InvalidVersion, MissingVersion, SizeMismatch, StoreUnavailable
from firmware_registry.schemas import VersionRecord
from firmware_registry.store import BinaryStore, FirmwareRegistry, VersionStore


class BrokenStream:
    """Upload stream that dies partway through."""

    def __init__(self, good_chunks: int = 2):
        self.good_chunks = good_chunks

    def read(self, size: int = -1) -> bytes:
        if self.good_chunks == 0:
            raise OSError("connection reset")
        self.good_chunks -= 1
        return b"x" * 16


def leftover_temp_files(directory):
    return [p.name for p in directory.iterdir() if p.name.startswith(".")]


# =============================================================================
# VersionStore
# =============================================================================

def test_bootstrap_writes_initial_record(tmp_path):
    store = VersionStore(tmp_path / "version.json")

    assert store.bootstrap_if_absent() is True
    assert json.loads((tmp_path / "version.json").read_text()) == {"version": "1.0.0"}

    record = store.read()
    assert record.version == "1.0.0"
    assert record.updated_at is None
    assert record.size is None


def test_bootstrap_is_idempotent(tmp_path):
    store = VersionStore(tmp_path / "version.json")
    store.replace(VersionRecord(version="3.1.4", size=10))

    assert store.bootstrap_if_absent() is False
    assert store.read().version == "3.1.4"


def test_replace_overwrites_whole_record(tmp_path):
    store = VersionStore(tmp_path / "version.json")
    store.replace(VersionRecord(version="2.0.0", size=42))
    store.replace(VersionRecord(version="2.0.1"))

    assert json.loads(store.path.read_text()) == {"version": "2.0.1"}
    assert leftover_temp_files(tmp_path) == []


def test_replace_uses_camel_case_keys(tmp_path):
    store = VersionStore(tmp_path / "version.json")
    store.replace(VersionRecord.model_validate({"version": "1.1", "updatedAt": "2024-01-01T00:00:00Z", "size": 5}))

    data = json.loads(store.path.read_text())
    assert set(data) == {"version", "updatedAt", "size"}


def test_read_corrupted_record_raises(tmp_path):
    (tmp_path / "version.json").write_text("{not json")
    store = VersionStore(tmp_path / "version.json")

    with pytest.raises(StoreUnavailable):
        store.read()


def test_read_missing_record_raises(tmp_path):
    with pytest.raises(StoreUnavailable):
        VersionStore(tmp_path / "version.json").read()


# =============================================================================
# BinaryStore
# =============================================================================

def test_absent_blob(tmp_path):
    store = BinaryStore(tmp_path / "firmware.bin")

    assert store.exists() is False
    with pytest.raises(FirmwareNotFound):
        store.open_for_read()
    with pytest.raises(FirmwareNotFound):
        store.size()


def test_replace_and_read_back(tmp_path):
    store = BinaryStore(tmp_path / "firmware.bin", chunk_size=7)
    payload = bytes(range(256)) * 3

    staged = store.replace(io.BytesIO(payload), declared_size=len(payload))

    assert staged.size == len(payload)
    assert store.size() == len(payload)
    assert store.checksum() == hashlib.md5(payload).hexdigest()
    with store.open_for_read() as reader:
        assert b"".join(reader) == payload
    assert leftover_temp_files(tmp_path) == []


def test_checksum_without_cache_matches(tmp_path):
    payload = b"written by a previous process"
    (tmp_path / "firmware.bin").write_bytes(payload)

    store = BinaryStore(tmp_path / "firmware.bin")
    assert store.checksum() == hashlib.md5(payload).hexdigest()


def test_stronger_digest(tmp_path):
    store = BinaryStore(tmp_path / "firmware.bin", checksum_algorithm="sha256")
    store.replace(io.BytesIO(b"abc"))

    assert store.checksum() == hashlib.sha256(b"abc").hexdigest()


def test_unknown_digest_rejected(tmp_path):
    with pytest.raises(ValueError):
        BinaryStore(tmp_path / "firmware.bin", checksum_algorithm="not-a-hash")


def test_reader_keeps_old_blob_across_replace(tmp_path):
    store = BinaryStore(tmp_path / "firmware.bin", chunk_size=4)
    old, new = b"O" * 40, b"N" * 90
    store.replace(io.BytesIO(old))

    reader = store.open_for_read()
    chunks = iter(reader)
    first = next(chunks)
    store.replace(io.BytesIO(new))
    rest = b"".join(chunks)

    assert first + rest == old
    assert reader.checksum == hashlib.md5(old).hexdigest()
    assert store.checksum() == hashlib.md5(new).hexdigest()


def test_size_mismatch_leaves_blob_untouched(tmp_path):
    store = BinaryStore(tmp_path / "firmware.bin")
    store.replace(io.BytesIO(b"original"))

    with pytest.raises(SizeMismatch):
        store.replace(io.BytesIO(b"short"), declared_size=500)

    with store.open_for_read() as reader:
        assert b"".join(reader) == b"original"
    assert leftover_temp_files(tmp_path) == []


def test_broken_stream_leaves_blob_untouched(tmp_path):
    store = BinaryStore(tmp_path / "firmware.bin")
    store.replace(io.BytesIO(b"original"))

    with pytest.raises(StoreUnavailable):
        store.replace(BrokenStream())

    assert store.size() == len(b"original")
    assert leftover_temp_files(tmp_path) == []


# =============================================================================
# FirmwareRegistry
# =============================================================================

def test_registry_bootstrap_creates_root(tmp_path):
    registry = FirmwareRegistry(tmp_path / "nested" / "firmware")
    registry.bootstrap()
    registry.bootstrap()

    assert registry.versions.read().version == "1.0.0"
    assert registry.binaries.exists() is False


def test_publish_updates_both_stores(registry):
    payload = b"\x7fELF" + b"\x00" * 96

    record = registry.publish(io.BytesIO(payload), "2.0.0", declared_size=len(payload))

    assert record.version == "2.0.0"
    assert record.size == len(payload)
    assert record.updated_at is not None

    stored = registry.versions.read()
    assert stored.version == "2.0.0"
    assert stored.size == registry.binaries.size() == len(payload)


def test_publish_requires_version(registry):
    with pytest.raises(MissingVersion):
        registry.publish(io.BytesIO(b"data"), "")
    assert registry.binaries.exists() is False


def test_failed_staging_changes_nothing(registry):
    registry.publish(io.BytesIO(b"v1 image"), "1.0.1")

    with pytest.raises(StoreUnavailable):
        registry.publish(BrokenStream(), "9.9.9")

    assert registry.versions.read().version == "1.0.1"
    assert registry.binaries.size() == len(b"v1 image")


def test_strict_versions(tmp_path):
    registry = FirmwareRegistry(tmp_path, strict_versions=True)
    registry.bootstrap()

    with pytest.raises(InvalidVersion):
        registry.publish(io.BytesIO(b"data"), "1.0-beta")

    assert registry.publish(io.BytesIO(b"data"), "1.0.2").version == "1.0.2"


def failing_record_write(record):
    raise StoreUnavailable("Failed to write version")


def test_record_write_failure_restores_previous_blob(registry, monkeypatch):
    registry.publish(io.BytesIO(b"a" * 10), "1.0.1")
    monkeypatch.setattr(registry.versions, "replace", failing_record_write)

    with pytest.raises(StoreUnavailable):
        registry.publish(io.BytesIO(b"b" * 500), "1.0.2")

    record = registry.versions.read()
    assert record.version == "1.0.1"
    assert record.size == registry.binaries.size() == 10
    assert registry.binaries.checksum() == hashlib.md5(b"a" * 10).hexdigest()
    assert leftover_temp_files(registry.storage_dir) == []


def test_record_write_failure_on_first_publish_removes_blob(registry, monkeypatch):
    monkeypatch.setattr(registry.versions, "replace", failing_record_write)

    with pytest.raises(StoreUnavailable):
        registry.publish(io.BytesIO(b"b" * 500), "1.0.2")

    assert registry.versions.read().size is None
    assert registry.binaries.exists() is False
    assert leftover_temp_files(registry.storage_dir) == []

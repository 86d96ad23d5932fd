import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from ..config import Settings
from ..errors import InvalidVersion, MissingVersion, RegistryError, StoreUnavailable
from ..schemas import VersionRecord
from ..versioning import is_well_formed
from .binary import BinaryStore
from .version import VersionStore

logger = logging.getLogger(__name__)

VERSION_FILE = "version.json"
BINARY_FILE = "firmware.bin"


class FirmwareRegistry:
    """
    Owns the version record and the firmware blob under one storage root.

    Built once at startup and handed to request handlers, so tests can run
    against an isolated directory.
    """

    def __init__(
        self,
        storage_dir: str | Path,
        initial_version: str = "1.0.0",
        chunk_size: int = 64 * 1024,
        checksum_algorithm: str = "md5",
        strict_versions: bool = False,
    ):
        self.storage_dir = Path(storage_dir)
        self.versions = VersionStore(self.storage_dir / VERSION_FILE, initial_version)
        self.binaries = BinaryStore(self.storage_dir / BINARY_FILE, chunk_size, checksum_algorithm)
        self.strict_versions = strict_versions
        self._publish_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirmwareRegistry":
        return cls(
            settings.storage_dir,
            initial_version=settings.initial_version,
            chunk_size=settings.chunk_size,
            checksum_algorithm=settings.checksum_algorithm,
            strict_versions=settings.strict_versions,
        )

    def bootstrap(self) -> None:
        """Create the storage root and initial version record. Safe on every start."""
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable("Failed to create storage directory") from e
        self.versions.bootstrap_if_absent()

    def publish(self, stream: BinaryIO, version: str | None, declared_size: int | None = None) -> VersionRecord:
        """
        Replace the firmware image and its version record.

        The upload is staged outside the lock; only the renames run under it.
        The blob goes in first, so the record never names bytes that are not on
        disk yet. If the record cannot be written, the previous blob is put back
        so both stores still describe the same image.
        """
        if not version:
            raise MissingVersion()
        if self.strict_versions and not is_well_formed(version):
            raise InvalidVersion(f"Malformed version: {version!r}")

        staged = self.binaries.stage(stream, declared_size)

        with self._publish_lock:
            try:
                backup = self.binaries.snapshot()
            except RegistryError:
                self.binaries.discard(staged)
                raise
            try:
                self.binaries.commit(staged)
                record = VersionRecord(
                    version=version,
                    updated_at=datetime.now(timezone.utc),
                    size=staged.size,
                )
                try:
                    self.versions.replace(record)
                except RegistryError:
                    logger.error("Version record write failed, restoring previous firmware")
                    self.binaries.rollback(backup)
                    raise
            finally:
                if backup is not None:
                    backup.unlink(missing_ok=True)

        logger.info(
            "Published firmware version=%s size=%d %s=%s",
            version, staged.size, self.binaries.checksum_algorithm, staged.checksum,
        )
        return record

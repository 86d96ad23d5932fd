import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from ..errors import StoreUnavailable
from ..schemas import VersionRecord
from .atomic import atomic_write

logger = logging.getLogger(__name__)


class VersionStore:
    """The single version record, kept as a JSON file and replaced wholesale."""

    def __init__(self, path: Path, initial_version: str = "1.0.0"):
        self.path = Path(path)
        self.initial_version = initial_version
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> VersionRecord:
        try:
            return VersionRecord.model_validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as e:
            raise StoreUnavailable("Failed to read version") from e

    def bootstrap_if_absent(self) -> bool:
        """Write the initial record if none exists. Returns True if it wrote one."""
        with self._lock:
            if self.path.exists():
                return False
            self._write(VersionRecord(version=self.initial_version))
        logger.info("Bootstrapped version record at %s (version %s)", self.path, self.initial_version)
        return True

    def replace(self, record: VersionRecord) -> None:
        with self._lock:
            self._write(record)

    def _write(self, record: VersionRecord) -> None:
        payload = record.model_dump_json(by_alias=True, exclude_none=True).encode()
        try:
            atomic_write(self.path, payload)
        except OSError as e:
            raise StoreUnavailable("Failed to write version") from e

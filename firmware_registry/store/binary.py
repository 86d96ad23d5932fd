import hashlib
import os
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

from ..errors import FirmwareNotFound, SizeMismatch, StoreUnavailable
from .atomic import swap, temp_file


@dataclass
class StagedBlob:
    """A fully written, fsynced temp file waiting to be swapped in."""
    path: Path
    size: int
    checksum: str


class BlobReader:
    """
    An open handle on one firmware image.

    Size and checksum are taken from the same open file that gets streamed, so
    a swap that lands mid-download cannot change what this reader yields.
    Iterating consumes the handle and closes it.
    """

    def __init__(self, fh: BinaryIO, size: int, checksum: str, chunk_size: int):
        self._fh = fh
        self.size = size
        self.checksum = checksum
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        try:
            remaining = self.size
            while remaining > 0:
                chunk = self._fh.read(min(self.chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self._fh.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _identity(st: os.stat_result) -> tuple[int, int, int, int]:
    return (st.st_dev, st.st_ino, st.st_mtime_ns, st.st_size)


class BinaryStore:
    """Exactly one firmware blob on disk, replaced by atomic rename."""

    def __init__(self, path: Path, chunk_size: int = 64 * 1024, checksum_algorithm: str = "md5"):
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.checksum_algorithm = checksum_algorithm
        hashlib.new(checksum_algorithm)  # Fail at construction on unknown names
        self._lock = threading.Lock()
        # Only the current blob's digest is worth keeping
        self._checksum_cache: dict[tuple, str] = {}

    def exists(self) -> bool:
        return self.path.is_file()

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except FileNotFoundError as e:
            raise FirmwareNotFound() from e
        except OSError as e:
            raise StoreUnavailable("Failed to read firmware") from e

    def open_for_read(self) -> BlobReader:
        try:
            fh = self.path.open("rb")
        except FileNotFoundError as e:
            raise FirmwareNotFound() from e
        except OSError as e:
            raise StoreUnavailable("Failed to read firmware") from e

        try:
            st = os.fstat(fh.fileno())
            digest = self._checksum_of(fh, st)
            fh.seek(0)
        except OSError as e:
            fh.close()
            raise StoreUnavailable("Failed to read firmware") from e

        return BlobReader(fh, st.st_size, digest, self.chunk_size)

    def checksum(self) -> str:
        with self.open_for_read() as reader:
            return reader.checksum

    def _checksum_of(self, fh: BinaryIO, st: os.stat_result) -> str:
        key = _identity(st)
        digest = self._checksum_cache.get(key)
        if digest is None:
            hasher = hashlib.new(self.checksum_algorithm)
            for chunk in iter(lambda: fh.read(self.chunk_size), b""):
                hasher.update(chunk)
            digest = hasher.hexdigest()
            self._checksum_cache = {key: digest}
        return digest

    def stage(self, stream: BinaryIO, declared_size: int | None = None) -> StagedBlob:
        """Copy ``stream`` into a temp file beside the blob, hashing as it goes."""
        hasher = hashlib.new(self.checksum_algorithm)
        size = 0
        try:
            with temp_file(self.path.parent, suffix=".bin.tmp") as (tmp, fh):
                for chunk in iter(lambda: stream.read(self.chunk_size), b""):
                    fh.write(chunk)
                    hasher.update(chunk)
                    size += len(chunk)
                if declared_size is not None and size != declared_size:
                    raise SizeMismatch(f"Received {size} bytes, expected {declared_size}")
        except OSError as e:
            raise StoreUnavailable("Failed to store firmware") from e
        return StagedBlob(path=tmp, size=size, checksum=hasher.hexdigest())

    def commit(self, staged: StagedBlob) -> None:
        """Swap a staged blob into place. Readers see the old or new file, never a mix."""
        with self._lock:
            try:
                # rename keeps inode and mtime, so the digest can be cached up front
                st = os.stat(staged.path)
                swap(staged.path, self.path)
            except OSError as e:
                self.discard(staged)
                raise StoreUnavailable("Failed to store firmware") from e
            self._checksum_cache = {_identity(st): staged.checksum}

    def snapshot(self) -> Path | None:
        """Hard-link the current blob aside so a later commit can be undone."""
        backup = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.bak")
        with self._lock:
            try:
                os.link(self.path, backup)
            except FileNotFoundError:
                return None
            except OSError as e:
                raise StoreUnavailable("Failed to store firmware") from e
        return backup

    def rollback(self, backup: Path | None) -> None:
        """Put a snapshot back in place, or remove the blob if there was none."""
        with self._lock:
            try:
                if backup is None:
                    self.path.unlink(missing_ok=True)
                else:
                    os.replace(backup, self.path)
            except OSError as e:
                raise StoreUnavailable("Failed to restore firmware") from e
            self._checksum_cache = {}

    def discard(self, staged: StagedBlob) -> None:
        staged.path.unlink(missing_ok=True)

    def replace(self, stream: BinaryIO, declared_size: int | None = None) -> StagedBlob:
        staged = self.stage(stream, declared_size)
        self.commit(staged)
        return staged

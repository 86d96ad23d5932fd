"""Write-temp-then-rename helpers shared by both stores.

Temp files live in the target's directory so ``os.replace`` never crosses a
filesystem boundary. Readers holding the old file keep seeing the old inode.
"""
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator


@contextmanager
def temp_file(directory: Path, suffix: str = ".tmp") -> Iterator[tuple[Path, BinaryIO]]:
    """Yield a fresh temp file; on success it is flushed to disk and left in place."""
    fd, name = tempfile.mkstemp(dir=directory, prefix=".", suffix=suffix)
    tmp = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            yield tmp, fh
            fh.flush()
            os.fsync(fh.fileno())
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def _fsync_dir(directory: Path) -> None:
    if os.name == "nt":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def swap(tmp: Path, target: Path) -> None:
    """Atomically move ``tmp`` over ``target``."""
    try:
        os.replace(tmp, target)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    _fsync_dir(target.parent)


def atomic_write(target: Path, data: bytes) -> None:
    with temp_file(target.parent) as (tmp, fh):
        fh.write(data)
    swap(tmp, target)

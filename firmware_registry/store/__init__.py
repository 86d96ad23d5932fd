from .binary import BinaryStore, BlobReader, StagedBlob
from .version import VersionStore
from .registry import FirmwareRegistry

__all__ = ["BinaryStore", "BlobReader", "StagedBlob", "VersionStore", "FirmwareRegistry"]

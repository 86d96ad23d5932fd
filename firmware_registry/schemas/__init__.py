from .version import VersionRecord, CheckOut
from .firmware import UpdateOut, ErrorOut, InfoOut

__all__ = ["VersionRecord", "CheckOut", "UpdateOut", "ErrorOut", "InfoOut"]

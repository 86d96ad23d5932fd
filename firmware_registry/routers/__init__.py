from .version import router as version_router
from .firmware import router as firmware_router

__all__ = ["version_router", "firmware_router"]

import httpx
import pytest

from firmware_registry.config import Settings
from firmware_registry.main import create_app
from firmware_registry.store import FirmwareRegistry


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_dir=str(tmp_path / "firmware"))


@pytest.fixture
def registry(settings):
    registry = FirmwareRegistry.from_settings(settings)
    registry.bootstrap()
    return registry


@pytest.fixture
async def client(settings, registry):
    """In-process client; ASGITransport skips lifespan, so the registry fixture bootstraps."""
    app = create_app(settings, registry)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client

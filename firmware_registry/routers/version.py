from fastapi import APIRouter, Depends, Header, Query
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_registry
from ..errors import StoreUnavailable
from ..schemas import VersionRecord, CheckOut, ErrorOut
from ..store import FirmwareRegistry
from ..versioning import update_available

router = APIRouter(tags=["version"])


@router.get(
    "/version",
    response_model=VersionRecord,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorOut}},
)
async def get_version(registry: FirmwareRegistry = Depends(get_registry)):
    """Get the version record for the firmware currently served."""
    return await run_in_threadpool(registry.versions.read)


@router.get("/check", response_model=CheckOut, responses={500: {"model": ErrorOut}})
async def check_update(
    version: str | None = Query(None),
    x_esp8266_version: str | None = Header(None),
    registry: FirmwareRegistry = Depends(get_registry),
):
    """
    Tell a device whether a newer firmware exists.
    The device sends its version as ?version= or the x-esp8266-version header.
    """
    device_version = version or x_esp8266_version

    try:
        record = await run_in_threadpool(registry.versions.read)
    except StoreUnavailable as e:
        raise StoreUnavailable("Failed to check version") from e

    return CheckOut(
        current_version=device_version,
        latest_version=record.version,
        update_available=update_available(record.version, device_version),
    )

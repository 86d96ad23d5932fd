from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_registry
from ..errors import MissingFile, MissingVersion
from ..schemas import UpdateOut, ErrorOut
from ..store import FirmwareRegistry

router = APIRouter(tags=["firmware"])

FIRMWARE_FILENAME = "firmware.bin"


@router.get("/firmware", responses={404: {"model": ErrorOut}})
async def download_firmware(registry: FirmwareRegistry = Depends(get_registry)):
    """Download the current firmware binary."""
    reader = await run_in_threadpool(registry.binaries.open_for_read)

    return StreamingResponse(
        reader,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename={FIRMWARE_FILENAME}",
            "Content-Length": str(reader.size),
            "x-MD5": reader.checksum,
        },
        # Release the handle even if the client disconnects mid-stream
        background=BackgroundTask(reader.close),
    )


@router.post("/update", response_model=UpdateOut, responses={400: {"model": ErrorOut}})
async def upload_firmware(
    firmware: UploadFile | None = File(None),
    version: str | None = Form(None),
    registry: FirmwareRegistry = Depends(get_registry),
):
    """Replace the served firmware (admin use)."""
    if firmware is None:
        raise MissingFile()
    if not version:
        raise MissingVersion()

    try:
        record = await run_in_threadpool(registry.publish, firmware.file, version, firmware.size)
    finally:
        await firmware.close()

    return UpdateOut(version=record.version, size=record.size)

from datetime import datetime
from pydantic import BaseModel, Field


class VersionRecord(BaseModel):
    """Metadata for the firmware currently being served."""
    version: str
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    size: int | None = None  # Absent until the first upload

    class Config:
        populate_by_name = True


class CheckOut(BaseModel):
    """Answer to a device asking whether it should update."""
    current_version: str | None = Field(default=None, alias="currentVersion")
    latest_version: str = Field(alias="latestVersion")
    update_available: bool = Field(alias="updateAvailable")

    class Config:
        populate_by_name = True

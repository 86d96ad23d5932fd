from pydantic import BaseModel


class UpdateOut(BaseModel):
    """Result of publishing a new firmware image."""
    success: bool = True
    message: str = "Firmware updated successfully"
    version: str
    size: int


class ErrorOut(BaseModel):
    error: str


class InfoOut(BaseModel):
    message: str
    endpoints: dict[str, str]

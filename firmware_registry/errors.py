"""Error taxonomy for the firmware registry.

Every error maps onto an HTTP status and is rendered as ``{"error": message}``
by the handler installed in ``main.create_app``.
"""


class RegistryError(Exception):
    status_code = 500
    message = "Internal error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingFile(RegistryError):
    status_code = 400
    message = "No firmware file uploaded"


class MissingVersion(RegistryError):
    status_code = 400
    message = "Version number required"


class InvalidVersion(RegistryError):
    status_code = 400
    message = "Version must be dot-separated non-negative integers"


class SizeMismatch(RegistryError):
    status_code = 400
    message = "Uploaded size does not match declared size"


class FirmwareNotFound(RegistryError):
    status_code = 404
    message = "Firmware not found"


class StoreUnavailable(RegistryError):
    status_code = 500
    message = "Storage unavailable"

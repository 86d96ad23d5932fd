from fastapi import Request

from .store import FirmwareRegistry


def get_registry(request: Request) -> FirmwareRegistry:
    return request.app.state.registry

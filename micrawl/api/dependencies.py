"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from micrawl.drivers.dispatcher import DriverRegistry


def get_registry(request: Request) -> DriverRegistry:
    """Return the driver registry owned by the running application."""
    return request.app.state.registry

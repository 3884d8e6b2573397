"""
Bridge server using FastAPI.

Version: 0.3.0

Routes:
- ``WS  /bridge``: exec channel (see :mod:`shellbridge.server.ws`)
- ``GET /app/{path}``: application resources through the default session
- ``GET /partitions/{partition}/app/{path}``: resources through a partition
- ``GET /services``: bridge and service status
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse

from shellbridge import __version__
from shellbridge.core.bridge import Bridge, BridgeError, SandboxViolationError
from shellbridge.server.models import BridgeStatus
from shellbridge.server.ws import bridge_endpoint

logger = logging.getLogger(__name__)

router = APIRouter()


def _serve_resource(bridge: Bridge, url: str, partition: Optional[str]):
    try:
        path = bridge.resolve(url, partition)
    except SandboxViolationError as e:
        logger.info("Refused %s: %s", url, e.reason)
        return JSONResponse(status_code=404, content={"error": e.to_dict()})
    if not path.is_file():
        return JSONResponse(status_code=404, content={"error": {"message": f"Not found: {url}"}})
    return FileResponse(path)


@router.get("/app/{path:path}")
async def get_resource(path: str, request: Request):
    bridge: Bridge = request.app.state.bridge
    return _serve_resource(bridge, f"{bridge.base_url}/{path}", None)


@router.get("/partitions/{partition}/app/{path:path}")
async def get_partition_resource(partition: str, path: str, request: Request):
    bridge: Bridge = request.app.state.bridge
    return _serve_resource(bridge, f"{bridge.base_url}/{path}", partition)


@router.get("/services", response_model=BridgeStatus)
async def get_services(request: Request):
    bridge: Bridge = request.app.state.bridge
    return bridge.get_status()


def create_app(bridge: Bridge) -> FastAPI:
    """Build the FastAPI application serving ``bridge``.

    The host is marked ready in the lifespan hook; a ConfigurationError
    raised there aborts server startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await bridge.mark_ready()
        logger.info("Bridge ready at %s", bridge.base_url)
        yield
        logger.info("Bridge server stopping")

    app = FastAPI(
        title="shellbridge",
        description="Native service bridge for sandboxed front-ends.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bridge = bridge
    app.include_router(router)
    app.add_api_websocket_route("/bridge", bridge_endpoint)

    @app.exception_handler(BridgeError)
    async def bridge_exception_handler(request: Request, exc: BridgeError):
        return JSONResponse(status_code=500, content={"error": exc.to_dict()})

    return app


def run_server(bridge: Bridge, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the bridge server with uvicorn (blocking)."""
    server_config = bridge.config.server
    app = create_app(bridge)
    logger.info("Starting bridge server on %s:%s", host or server_config.host, port or server_config.port)
    uvicorn.run(
        app,
        host=host or server_config.host,
        port=port or server_config.port,
        log_config=None,
    )

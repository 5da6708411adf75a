# waterstation/api/app.py
"""
FastAPI application for the station.

Routes:
- GET  /api/socket           server-sent tag events
- POST /api/control          write one tag
- POST /api/test-connection  connect/disconnect round trip
- GET  /api/tags             snapshot plus status
- GET  /api/status           connection status
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from waterstation import __version__
from waterstation.api.models import (
    ConnectionCheckRequest,
    ConnectionCheckResponse,
    ControlRequest,
    ControlResponse,
)
from waterstation.api.streaming import SSE_HEADERS, event_stream
from waterstation.errors import WaterStationError
from waterstation.runtime import StationRuntime

logger = logging.getLogger(__name__)


def create_app(runtime: StationRuntime) -> FastAPI:
    """Build the API around one runtime; the app lifespan drives its lifecycle."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.initialise()
        try:
            yield
        finally:
            await runtime.shutdown()

    app = FastAPI(
        title="Water Treatment Station API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # ============== Error mapping ==============

    @app.exception_handler(WaterStationError)
    async def station_error_handler(request: Request, exc: WaterStationError):
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, "error": exc.code, "detail": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "bad_request", "detail": str(exc.errors())},
        )

    # ============== Routes ==============

    @app.get("/api/socket")
    async def socket(url: Optional[str] = None, endpoint: Optional[str] = None):
        target = endpoint or url or runtime.default_endpoint
        try:
            await runtime.ensure_connected(target)
        except WaterStationError as e:
            # The stream still opens; listeners see the empty snapshot
            logger.error(f"Failed to connect to OPC UA server: {e}")

        return StreamingResponse(
            event_stream(
                runtime.channel,
                keepalive_interval=runtime.config.api.keepalive_interval,
                queue_size=runtime.config.api.listener_queue_size,
            ),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.post("/api/control", response_model=ControlResponse)
    async def control(request: ControlRequest):
        value = await runtime.write(request.tag, request.value, request.endpoint)
        return ControlResponse(tag=request.tag, value=value)

    @app.post(
        "/api/test-connection",
        response_model=ConnectionCheckResponse,
        response_model_exclude_none=True,
    )
    async def test_connection(request: ConnectionCheckRequest):
        return await runtime.test_connection(request.endpoint)

    @app.get("/api/tags")
    async def tags():
        return {
            "values": await runtime.store.get_all(),
            "status": await runtime.status(),
        }

    @app.get("/api/status")
    async def status():
        return await runtime.status()

    return app

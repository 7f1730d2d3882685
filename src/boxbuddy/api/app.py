"""
FastAPI application factory for the lockbox command API.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from boxbuddy.api.routes import audit_router, codes_router, devices_router
from boxbuddy.lockbox.controller import LockboxController
from boxbuddy.lockbox.types import GuardViolation, NotFound

LOGGER = logging.getLogger(__name__)


def create_app(controller: Optional[LockboxController] = None, *, start_timers: bool = True) -> FastAPI:
    """
    Build the API around a controller.

    When ``start_timers`` is set the controller's telemetry tick and expiry
    sweep are subscribed on startup and cancelled on shutdown.
    """
    app = FastAPI(
        title="BoxBuddy Lockbox API",
        description="Command surface for lockbox devices, delivery codes and the audit log",
        version="0.1.0",
    )
    app.state.controller = controller or LockboxController()

    app.include_router(devices_router, prefix="/api/v1/devices")
    app.include_router(codes_router, prefix="/api/v1/codes")
    app.include_router(audit_router, prefix="/api/v1/audit")

    @app.exception_handler(GuardViolation)
    async def guard_violation_handler(request: Request, exc: GuardViolation):
        return JSONResponse(status_code=409, content={"detail": exc.reason, "device_id": exc.device_id})

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "timers": app.state.controller.running}

    @app.on_event("startup")
    async def startup_event():
        if start_timers:
            app.state.controller.start()
        LOGGER.info("Lockbox API starting (timers=%s)", start_timers)

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.controller.stop()
        LOGGER.info("Lockbox API shutting down")

    return app

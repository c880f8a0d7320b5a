"""FastAPI health and status endpoints for the controller manager."""

import asyncio
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request

from . import __version__
from .logging_config import get_logger, log_api_request, log_api_response, log_function_entry, log_function_exit
from .manager import Manager
from .models import ManagerStatus

logger = get_logger(__name__)

app = FastAPI(
    title="dockyards-pdns",
    description="PowerDNS zone controller for Dockyards clusters",
    version=__version__,
    docs_url=None,
    redoc_url=None,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests and responses."""
    start_time = asyncio.get_running_loop().time()

    log_api_request(logger, request.method, str(request.url.path),
                    client_ip=request.client.host if request.client else "unknown")

    response = await call_next(request)

    duration = asyncio.get_running_loop().time() - start_time
    log_api_response(logger, request.method, str(request.url.path),
                     response.status_code,
                     duration_ms=round(duration * 1000, 2))

    return response


# Global controller manager instance
manager: Optional[Manager] = None


def initialize_manager(instance: Optional[Manager]) -> None:
    """Register the manager served by the status endpoints."""
    global manager
    manager = instance
    if instance is not None:
        logger.info("Health API bound to manager", controllers=[c.name for c in instance.status().controllers])


async def get_manager() -> Manager:
    """Get the global Manager instance."""
    if manager is None:
        raise HTTPException(status_code=503, detail="Controller manager not initialized")
    return manager


@app.get("/healthz")
async def healthz():
    """Liveness check."""
    return {"status": "ok", "service": "dockyards-pdns"}


@app.get("/readyz")
async def readyz():
    """Readiness check, ready once the operator has started."""
    mgr = await get_manager()
    if not mgr.started:
        raise HTTPException(status_code=503, detail="Controllers not started")
    return {"status": "ready"}


@app.get("/status", response_model=ManagerStatus)
async def status():
    """Per-controller reconcile counters."""
    mgr = await get_manager()
    return mgr.status()


def create_server(host: str, port: int, verbose: bool = False) -> uvicorn.Server:
    """Build a uvicorn server for the health API, to be run in the caller's event loop."""
    log_function_entry(logger, "create_server", host=host, port=port)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="debug" if verbose else "warning",
        lifespan="off",
    ))
    log_function_exit(logger, "create_server", status="success")
    return server

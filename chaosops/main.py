"""Chaos Ops Server - FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request, WebSocket, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chaosops.config import settings
from chaosops.database import init_db

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    logger.info("%s v%s started", settings.server_name, VERSION)
    yield
    logger.info("%s shutting down", settings.server_name)


app = FastAPI(
    title="Chaos Ops",
    description="Event day planning with paired display flipcharts",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), not 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "error": "validation_error",
                "message": "Invalid request",
                "fields": jsonable_encoder(exc.errors()),
            }
        },
    )


# --- Register API routers ---
from chaosops.api.auth import router as auth_router  # noqa: E402
from chaosops.api.pairing import router as pairing_router  # noqa: E402

API_PREFIX = "/api"

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(pairing_router, prefix=API_PREFIX)


# --- WebSocket endpoints ---
from chaosops.ws.display import websocket_display  # noqa: E402


@app.websocket("/ws/display")
async def ws_display_endpoint(ws: WebSocket, device_id: str = Query(default="", alias="deviceId")):
    await websocket_display(ws, device_id or None)


@app.get("/")
def root():
    """Server info."""
    return {
        "name": settings.server_name,
        "version": VERSION,
        "status": "running",
    }


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())

"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ivas.api.v1.endpoints import realtime
from ivas.api.v1.router import api_router
from ivas.core.config import settings
from ivas.core.database import async_session_maker, close_database, init_database
from ivas.core.exceptions import AppError
from ivas.services.realtime.hub import EventHub
from ivas.utils.logging import get_logger, set_log_level
from ivas.utils.responses import create_error_detail

LOGGER = get_logger(__name__, level=settings.log_level)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Opens the database, then starts the event hub and attaches it to
    ``app.state`` for the request handlers and the websocket channel.
    """
    set_log_level(settings.log_level)
    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    try:
        await init_database(auto_migrate=settings.db.auto_migrate)
    except Exception as e:
        LOGGER.error("Failed to initialize database", exc_info=True, extra={"error": str(e)})

    hub = EventHub(async_session_maker)
    await hub.start()
    app.state.event_hub = hub

    yield

    LOGGER.info("Shutting down application")
    await hub.stop()
    try:
        await close_database()
    except Exception as e:
        LOGGER.error("Error closing database", exc_info=True, extra={"error": str(e)})


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Policy verification and regulatory approval platform for insurers, officers and the regulator",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or str(uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        LOGGER.error(f"{exc.code}: {exc.message}", exc_info=exc.original_error or exc)
    else:
        LOGGER.info(f"{exc.code}: {exc.message}", extra={"path": request.url.path})
    detail = create_error_detail(
        title=exc.__class__.__name__,
        status=exc.http_status,
        detail=exc.message,
        request=request,
        code=exc.code,
        retryable=exc.retryable,
        errors=exc.details,
    )
    return JSONResponse(status_code=exc.http_status, content=detail.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = create_error_detail(
        title="HTTPException",
        status=exc.status_code,
        detail=str(exc.detail),
        request=request,
        code={401: "AUTHENTICATION_FAILED", 403: "ACCESS_DENIED", 404: "NOT_FOUND"}.get(exc.status_code, "HTTP_ERROR"),
    )
    return JSONResponse(status_code=exc.status_code, content=detail.model_dump(mode="json"), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = {".".join(str(part) for part in error["loc"]): error["msg"] for error in exc.errors()}
    detail = create_error_detail(
        title="ValidationError",
        status=422,
        detail="Request validation failed",
        request=request,
        code="VALIDATION_ERROR",
        errors=fields,
    )
    return JSONResponse(status_code=422, content=detail.model_dump(mode="json"))


@app.get(
    "/",
    response_model=RootResponse,
    tags=["Root"],
    summary="Root endpoint",
    description="Get basic information about the API",
    operation_id="get_public_root_metadata",
)
async def root() -> RootResponse:
    return RootResponse(
        message="Server is running",
        version=settings.app_version,
        docs="/docs",
        health=f"{settings.api_v1_prefix}/health",
    )


# Include routers
app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(realtime.router, tags=["Realtime"])

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ivas.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

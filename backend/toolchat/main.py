import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from toolchat.api.v1 import api_router
from toolchat.core.config import settings
from toolchat.core.errors import ToolChatError
from toolchat.core.logging_config import RequestLoggingMiddleware, setup_logging
from toolchat.db.session import AsyncSessionLocal, check_db_connection, engine, init_db
from toolchat.services.bootstrap import seed_demo_data
from toolchat.services.runtime import ToolRuntime

# Configure structured logging (JSON in production, colored in development)
setup_logging()
logger = logging.getLogger("toolchat")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses.
    """
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


class ErrorResponse(BaseModel):
    """Error body for unexpected failures."""
    message: str
    error: str
    detail: str | None = None
    timestamp: str
    path: str | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    checks: dict[str, bool]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables, seed the demo user and build the tool runtime.

    Tests may put a ready runtime on ``app.state.runtime`` beforehand; it is
    then used as is.
    """
    logger.info("Application starting up...")
    await init_db()
    async with AsyncSessionLocal() as db:
        await seed_demo_data(db, settings)

    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        runtime = ToolRuntime.create(settings)
        app.state.runtime = runtime
    await runtime.start()
    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Application shutting down...")
        await runtime.shutdown()
        await engine.dispose()
        logger.info("Database connections closed")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Chat backend with tool calling",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

cors_origins = settings.ALLOWED_ORIGINS


@app.exception_handler(ToolChatError)
async def toolchat_error_handler(request: Request, exc: ToolChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "; ".join(messages) or "Invalid request", "error": "validation_error"},
    )


# Global exception handler - catches all unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Returns a consistent 500 body. Details are only exposed in debug mode.
    """
    error_id = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")

    logger.error(
        f"Unhandled exception [{error_id}]: {exc}\n"
        f"Path: {request.url.path}\n"
        f"Method: {request.method}\n"
        f"Traceback: {traceback.format_exc()}"
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            message="Internal server error",
            error=exc.__class__.__name__ if settings.DEBUG else "internal_error",
            detail=str(exc) if settings.DEBUG else f"Reference ID: {error_id}",
            timestamp=datetime.utcnow().isoformat(),
            path=request.url.path,
        ).model_dump(),
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", response_model=HealthResponse)
@app.get(f"{settings.API_V1_STR}/health", response_model=HealthResponse, include_in_schema=False)
async def health_check():
    """Returns 503 when the database is unreachable."""
    db_healthy = await check_db_connection()
    response = HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        service="toolchat-backend",
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        checks={"database": db_healthy},
    )

    if not db_healthy:
        logger.warning("Health check failed: database unreachable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )
    return response


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

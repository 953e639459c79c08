from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from common.core.config import settings
from common.core.constants import Environment
from common.core.exceptions import (
    AppException,
    ConflictError,
    ExternalProviderError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
    WebhookSignatureError,
)
from api.v1.routes.router import api_router
from common.db.session import dispose_engine
from common.providers.rate_limiter.limiter import limiter

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.asgi import OpenTelemetryMiddleware
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()

# Get logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await dispose_engine()


# Only expose OpenAPI docs in local development
is_local = settings.environment == Environment.LOCAL
docs_url = "/docs" if is_local else None
redoc_url = "/redoc" if is_local else None
openapi_url = "/openapi.json" if is_local else None

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# Domain exceptions -> HTTP. Services never raise HTTPException themselves.
_STATUS_BY_EXCEPTION = {
    WebhookSignatureError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ExternalProviderError: status.HTTP_502_BAD_GATEWAY,
}


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=exc.to_dict())


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    status_code = next(
        (
            code
            for exc_type, code in _STATUS_BY_EXCEPTION.items()
            if isinstance(exc, exc_type)
        ),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
    else:
        logger.info(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)
# Add ASGI middleware for context propagation
app.add_middleware(OpenTelemetryMiddleware)

# Add gzip compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers (auth enforced via dependencies at router level)
app.include_router(api_router, prefix="/api/v1")


# Internal health endpoint for k8s probes - not under /api/v1 to avoid external spam
# K8s probes hit pod IPs directly, but this also reduces visibility to scanners
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}

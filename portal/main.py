from fastapi import FastAPI, Depends, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import httpx
import structlog

from portal.backend import init_backend, close_backend, get_backend
from portal.config import settings
from portal.logging_config import setup_logging
from portal.middleware.correlation import CorrelationIdMiddleware
from portal.services.backend_client import BackendClient, BackendError
from portal.services.cache import CacheRegistry
from portal.services.item_request_service import RequisitionActionError, RequisitionValidationError
from portal.services.requisition_form import InFlightRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_requisition_portal", env=settings.ENVIRONMENT)
    await init_backend()
    yield
    await close_backend()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)
app.state.cache_registry = CacheRegistry()
app.state.in_flight_registry = InFlightRegistry()


# ---------------------------------------------------------------------------
# Global exception handlers: every error leaves as
# {"error": {"code": "...", "message": "..."}}
# ---------------------------------------------------------------------------

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": exc.errors(),
            }
        },
    )


@app.exception_handler(RequisitionValidationError)
async def requisition_validation_handler(request: Request, exc: RequisitionValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": {"code": "REQUISITION_VALIDATION_ERROR", "message": exc.message}},
    )


@app.exception_handler(RequisitionActionError)
async def requisition_action_handler(request: Request, exc: RequisitionActionError) -> JSONResponse:
    # upstream 4xx are the caller's problem and pass through; anything else is a bad gateway
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        status_code = exc.status_code
    else:
        status_code = status.HTTP_502_BAD_GATEWAY

    error = {"code": f"REQUISITION_{exc.action.upper()}_FAILED", "message": exc.message}
    if exc.action == "create":
        error["details"] = {
            "committed_ids": [r.id for r in exc.committed],
            "failed_lines": exc.failed_lines,
        }
    logger.warning("requisition_action_failed", action=exc.action, status_code=exc.status_code, message=exc.message)
    return JSONResponse(status_code=status_code, content={"error": error})


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(response: Response, backend: BackendClient = Depends(get_backend)):
    health_status = {"status": "healthy", "version": settings.APP_VERSION, "checks": {}}

    try:
        await backend.get(settings.BACKEND_HEALTH_PATH)
        health_status["checks"]["backend"] = "ok"
    except (BackendError, httpx.HTTPError) as e:
        logger.error("health_check_backend_failed", error=str(e))
        health_status["checks"]["backend"] = "error"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_status


# --- Routers ---
from portal.routes.requisitions import router as requisitions_router  # noqa: E402
from portal.routes.offices import router as offices_router  # noqa: E402

app.include_router(requisitions_router, prefix="/api/v1/requisitions", tags=["Requisitions"])
app.include_router(offices_router, prefix="/api/v1", tags=["Offices"])

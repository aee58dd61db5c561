"""Main FastAPI application"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
import logging
import time
import uuid

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from mango.config import settings
from mango.core.database import init_db, SessionLocal
from mango.core.exceptions import BaseAPIException
from mango.api.v1 import auth, rewards

# Configure logging; a file handler is added only when LOG_FILE is set
_handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
    _handlers.append(logging.FileHandler(settings.LOG_FILE))
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers
)

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "mango_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "mango_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

SLOW_REQUEST_SECONDS = 1.0


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def track_requests(request: Request, call_next):
    """Tag each request with an id, record metrics and log slow requests"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    REQUEST_COUNT.labels(request.method, request.url.path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, request.url.path).observe(duration)

    if duration > SLOW_REQUEST_SECONDS:
        logger.warning(
            "Slow request: %s %s took %.2fs request_id=%s",
            request.method, request.url.path, duration, request_id,
        )
    return response


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    content = {
        "success": False,
        "error": error,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s: %s", request.url.path, errors)
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Store failures are reported without leaking the statement"""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")


def seed_admin_user() -> None:
    """Create the configured administrator if no user has that email"""
    from mango.models.user import Role
    from mango.services.user_service import user_service

    db = SessionLocal()
    try:
        if user_service.get_user_by_email(db, settings.ADMIN_EMAIL):
            return
        user_service.create_user(
            db,
            email=settings.ADMIN_EMAIL,
            password=settings.ADMIN_PASSWORD,
            name=settings.ADMIN_NAME,
            phone_number="",
            role=Role.SUPER_ADMIN,
        )
        db.commit()
        logger.info("Created admin user: %s", settings.ADMIN_EMAIL)
    finally:
        db.close()


@app.on_event("startup")
async def startup_event():
    settings.validate_security_settings()
    logger.info("Starting %s v%s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)

    init_db()

    try:
        seed_admin_user()
    except BaseAPIException as e:
        logger.error("Failed to create admin user: %s", e.message)
    except SQLAlchemyError as e:
        logger.error("Failed to create admin user: %s", e)


@app.get("/health")
async def health_check():
    """Liveness plus database readiness"""
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db_error = str(exc)
    finally:
        db.close()

    return {
        "status": "healthy" if db_error is None else "degraded",
        "version": settings.APP_VERSION,
        "readiness": {
            "database": {"ok": db_error is None, "error": db_error},
        },
    }


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(rewards.router, prefix="/api/v1/rewards", tags=["Rewards"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mango.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )

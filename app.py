"""
Campus Complaints API with PostgreSQL, attachment storage, and security features.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi_mail import FastMail, ConnectionConfig
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from database.connection import Database
from storage.local_storage import LocalStorage
from storage.s3_client import S3Storage
from core.exceptions import ComplaintsAPIError
from core.responses import error
from core.logger import logger
from middleware.security import (
    RateLimitMiddleware, SecurityHeadersMiddleware,
    setup_cors, setup_trusted_hosts
)
from middleware.auth_middleware import AuthRequiredMiddleware
from routers.auth import router as auth_router
from routers.complaints import router as complaints_router
from routers.responses import router as responses_router
from routers.categories import router as categories_router
from routers.statuses import router as statuses_router
from routers.users import router as users_router
from routers.dashboards import router as dashboards_router
from routers.reports import router as reports_router


def init_storage():
    """Build the attachment backend: S3 when enabled, local disk otherwise."""
    if config.USE_S3:
        try:
            return S3Storage(
                bucket_name=config.S3_BUCKET_NAME,
                aws_access_key_id=config.S3_ACCESS_KEY_ID,
                aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
                region_name=config.S3_REGION,
                endpoint_url=config.S3_ENDPOINT_URL,
            )
        except Exception as e:
            logger.error(f"Failed to initialize S3 storage: {e}", exc_info=True)
            logger.warning("Continuing without S3 - attachments will be stored locally")
    else:
        logger.info("S3 storage disabled - using local storage")
    return LocalStorage(config.UPLOADS_DIR)


def init_mail():
    """FastAPI-Mail client, or None when SMTP credentials are not configured."""
    if not (config.SMTP_USER and config.SMTP_PASSWORD):
        logger.warning("SMTP credentials not set (SMTP_USER/SMTP_PASSWORD). Notifications will not be sent.")
        return None
    try:
        mail_conf = ConnectionConfig(
            MAIL_USERNAME=config.SMTP_USER,
            MAIL_PASSWORD=config.SMTP_PASSWORD,
            MAIL_FROM=config.SMTP_FROM_EMAIL or config.SMTP_USER,
            MAIL_FROM_NAME=config.SMTP_FROM_NAME,
            MAIL_PORT=config.SMTP_PORT,
            MAIL_SERVER=config.SMTP_HOST,
            MAIL_STARTTLS=config.SMTP_USE_TLS,
            MAIL_SSL_TLS=config.SMTP_USE_SSL,
            USE_CREDENTIALS=True,
            VALIDATE_CERTS=True,
        )
        mail = FastMail(mail_conf)
        logger.info("FastAPI-Mail initialized successfully")
        return mail
    except Exception as e:
        logger.error(f"Failed to initialize FastAPI-Mail: {e}", exc_info=True)
        return None


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for FastAPI app.
    Initialize database, attachment storage and mail on startup.
    Instances already set on config (e.g. by tests) are kept.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {config.APP_NAME}...")
    logger.info("=" * 60)

    if config.db is None:
        try:
            config.db = Database(
                database_url=config.DATABASE_URL,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW
            )
            # Create tables if they don't exist
            config.db.create_tables()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    if config.storage is None:
        config.storage = init_storage()

    app.state.mail = init_mail()

    logger.info("=" * 60)
    logger.info("Server ready!")
    logger.info(f"Environment: {config.ENVIRONMENT}")
    logger.info("API Docs: http://localhost:8000/docs")
    logger.info("=" * 60)

    yield

    # Cleanup on shutdown
    logger.info("Shutting down...")
    if config.db:
        config.db.engine.dispose()
        logger.info("Database connections closed")


# Initialize FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="Campus complaint management API: complaints, response threads, taxonomy and admin reports",
    version=config.APP_VERSION,
    lifespan=lifespan
)

# Setup security middleware
app.add_middleware(SecurityHeadersMiddleware)
if config.RATE_LIMIT_ENABLED:
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
        requests_per_hour=config.RATE_LIMIT_PER_HOUR
    )
app.add_middleware(AuthRequiredMiddleware)
setup_cors(app, config.CORS_ORIGINS, allow_credentials=config.CORS_ALLOW_CREDENTIALS)
if config.ENVIRONMENT == "production":
    setup_trusted_hosts(app, config.TRUSTED_HOSTS)


# Exception handlers
@app.exception_handler(ComplaintsAPIError)
async def complaints_api_error_handler(request: Request, exc: ComplaintsAPIError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=True)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error(exc.message, exc.errors),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "request"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return JSONResponse(status_code=422, content=error("Validation errors", errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error(str(exc) if config.DEBUG else "An error occurred")
    )


# Include routers
app.include_router(auth_router)
app.include_router(complaints_router)
app.include_router(responses_router)
app.include_router(categories_router)
app.include_router(statuses_router)
app.include_router(users_router)
app.include_router(dashboards_router)
app.include_router(reports_router)


@app.get("/")
async def root():
    """Root endpoint with API information. Public endpoint."""
    return {
        "message": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "endpoints": {
            "auth": "/api/auth",
            "complaints": "/api/complaints",
            "categories": "/api/categories",
            "statuses": "/api/statuses",
            "admin": "/api/admin"
        },
        "docs": "/docs",
        "s3_enabled": isinstance(config.storage, S3Storage)
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring. Public endpoint."""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "checks": {}
    }

    # Check database
    try:
        if config.db is None:
            health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
            health_status["status"] = "degraded"
        else:
            with config.db.get_session() as db:
                db.execute(text("SELECT 1"))
            health_status["checks"]["database"] = {"status": "ok"}
    except Exception as e:
        health_status["checks"]["database"] = {"status": "error", "error": str(e)}
        health_status["status"] = "degraded"

    # Check attachment storage
    if isinstance(config.storage, S3Storage):
        try:
            config.storage.s3_client.head_bucket(Bucket=config.storage.bucket_name)
            health_status["checks"]["storage"] = {"status": "ok", "backend": "s3", "bucket": config.storage.bucket_name}
        except Exception as e:
            health_status["checks"]["storage"] = {"status": "error", "backend": "s3", "error": str(e)}
            health_status["status"] = "degraded"
    elif config.storage is not None:
        health_status["checks"]["storage"] = {"status": "ok", "backend": "local"}
    else:
        health_status["checks"]["storage"] = {"status": "error", "error": "not initialized"}
        health_status["status"] = "degraded"

    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=config.DEBUG)

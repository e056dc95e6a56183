# -*- coding: utf-8 -*-
"""
FastAPI entry point of the attempt engine.
"""

import asyncio
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer

from attempt_engine.api.v1.attempts.routes import (test_attempts_router,
                                                   tests_router)
from attempt_engine.clients.database_client import (AsyncSessionLocal,
                                                    dispose_db, init_db)
from attempt_engine.config.logger import configure_logger, get_system_logger
from attempt_engine.config.settings import settings
from attempt_engine.config.uvicorn_config import (get_uvicorn_config,
                                                  setup_uvicorn_logging)
from attempt_engine.service.attempt_cleanup import run_expired_attempt_sweeper
from attempt_engine.service.cache_service import cache_service
from attempt_engine.utils.exceptions import APIException

logger = configure_logger(__name__)
system_logger = get_system_logger()

# Bearer scheme for Swagger UI
security_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="JWT access token: Bearer <token>",
    auto_error=False,
)

app = FastAPI(
    title="Test Attempt Engine API",
    description="Taking timed tests: start, autosave, submit and grading of attempts",
    version="0.1.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
    openapi_tags=[
        {"name": "🧪 Tests - 🎓 Start", "description": "Starting and resuming tests"},
        {"name": "🧪 Tests - 📈 Status", "description": "Attempt status of a test"},
        {
            "name": "🧪 Attempts - 💾 Progress",
            "description": "Autosaving answers and timers",
        },
        {"name": "🧪 Attempts - 📝 Submit", "description": "Submitting and grading"},
        {
            "name": "🧪 Attempts - 📖 History",
            "description": "Attempt history and results",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.get_cors_methods(),
    allow_headers=settings.get_cors_headers(),
)

_sweeper_stop: Optional[asyncio.Event] = None
_sweeper_task: Optional[asyncio.Task] = None


@app.middleware("http")
async def log_all_requests(request: Request, call_next):
    if request.url.path.startswith("/api/"):
        logger.info(f"🌐 API request: {request.method} {request.url.path}")

    try:
        response = await call_next(request)

        if request.url.path.startswith("/api/"):
            if response.status_code >= 400:
                logger.warning(
                    f"❌ API error: {request.method} {request.url.path} → {response.status_code}"
                )
            else:
                logger.info(
                    f"✅ API response: {request.method} {request.url.path} → {response.status_code}"
                )

        return response

    except Exception as e:
        if request.url.path.startswith("/api/"):
            logger.error(f"💥 Unhandled API error: {request.method} {request.url.path}")
            error_msg = str(e)
            if len(error_msg) > 1000:
                error_msg = error_msg[:1000] + "... (truncated)"
            logger.exception(f"Error details: {error_msg}")
        raise


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    if exc.is_transient:
        logger.error(
            f"❌ Transient failure on {request.method} {request.url.path}: {exc.detail}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
        headers=exc.headers,
    )


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "Bearer": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "JWT access token: Bearer <token>",
        }
    }
    openapi_schema["security"] = [{"Bearer": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.include_router(tests_router, prefix="/api/v1/tests")
app.include_router(test_attempts_router, prefix="/api/v1/test-attempts")


@app.on_event("startup")
async def startup_event():
    global _sweeper_stop, _sweeper_task

    setup_uvicorn_logging()
    system_logger.info("🔧 Initializing services...")

    await init_db()
    logger.info("✅ Database ready")

    redis_client = await cache_service.get_redis()
    if redis_client is None:
        logger.warning("⚠️ Running without Redis caching")
    else:
        logger.info("✅ Redis connected")

    if settings.expired_sweep_enabled:
        _sweeper_stop = asyncio.Event()
        _sweeper_task = asyncio.create_task(
            run_expired_attempt_sweeper(AsyncSessionLocal, stop_event=_sweeper_stop)
        )

    system_logger.info(f"🎉 Test Attempt Engine ready ({settings.get_config_source()})")


@app.on_event("shutdown")
async def shutdown_event():
    system_logger.info("🛑 Shutting down Test Attempt Engine")
    if _sweeper_stop is not None:
        _sweeper_stop.set()
    if _sweeper_task is not None:
        await _sweeper_task
    await cache_service.close()
    await dispose_db()


@app.get("/api/v1")
async def api_root():
    """API root."""
    return {"message": "Test Attempt Engine API is running", "version": app.version}


@app.get("/api/v1/health")
async def api_health():
    """Liveness probe."""
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(**get_uvicorn_config())

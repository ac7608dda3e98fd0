# stitchquote/main.py
import time
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from stitchquote import __version__
from stitchquote.config import Settings, get_settings
from stitchquote.core.logging_config import logger, setup_logging
from stitchquote.core.rate_limit import limiter
from stitchquote.dependencies import Services, build_services
from stitchquote.domain.errors import StitchQuoteError
from stitchquote.middleware.request_id import RequestIdMiddleware
from stitchquote.observability.metrics import router as metrics_router
from stitchquote.routers import admin, files, quotes, uploads
from stitchquote.security.admin_auth import AdminLoginRequired, login_redirect


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = str(first.get("msg") or "invalid value")
    return f"{field}: {msg}" if field else msg


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or get_settings()

    setup_logging(settings.LOG_LEVEL)

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            environment=settings.ENVIRONMENT,
            traces_sample_rate=0.0,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        logger.info("startup", service="stitchquote", version=__version__)
        yield

    app = FastAPI(title=settings.APP_NAME, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services

    # ----------------------------------------------------
    # Health
    # ----------------------------------------------------
    @app.get("/health", include_in_schema=True)
    def health() -> dict:
        return {"status": "ok"}

    # ----------------------------------------------------
    # Logging middleware
    # ----------------------------------------------------
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start = time.time()

        client_ip = request.client.host if request.client else "unknown"
        bound_logger = logger.bind(
            ip=client_ip,
            endpoint=str(request.url.path),
            method=request.method,
        )

        bound_logger.info("request_started")
        response = await call_next(request)
        latency_ms = round((time.time() - start) * 1000, 2)

        bound_logger.bind(status_code=response.status_code, latency_ms=latency_ms).info(
            "request_finished"
        )
        return response

    # ----------------------------------------------------
    # Middleware
    # ----------------------------------------------------
    # wraps the logging middleware, so request_id is bound before it logs
    app.add_middleware(RequestIdMiddleware)
    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ----------------------------------------------------
    # Error handlers
    # ----------------------------------------------------
    @app.exception_handler(AdminLoginRequired)
    def admin_login_handler(request: Request, exc: AdminLoginRequired):
        return login_redirect(exc.next_path)

    @app.exception_handler(StitchQuoteError)
    def stitchquote_error_handler(request: Request, exc: StitchQuoteError):
        if exc.status_code >= 500:
            logger.error("request_failed", code=exc.code, error=exc.message, detail=exc.detail)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    def validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": _validation_message(exc), "code": "validation_error"},
            status_code=400,
        )

    @app.exception_handler(RateLimitExceeded)
    def ratelimit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            {"error": f"Rate limit exceeded: {exc.detail}", "code": "rate_limited"},
            status_code=429,
        )

    # ----------------------------------------------------
    # Routers
    # ----------------------------------------------------
    app.include_router(uploads.router)
    app.include_router(quotes.router)
    app.include_router(admin.api_router)
    app.include_router(admin.pages_router)
    app.include_router(files.router)
    app.include_router(metrics_router)  # /metrics

    return app


app = create_app()

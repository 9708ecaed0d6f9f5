from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.responses import JSONResponse

import app.db.base  # noqa: F401
from app.api.main import api_router
from app.core.errors import (
    AvailabilityError,
    ConflictError,
    ExpiredLockError,
    NotFoundError,
    SlotUnavailableError,
)
from app.core.logging import configure_logging, get_logger
from app.core.settings import settings
from app.middlewares.telemetry import RequestContextMiddleware
from app.version import APP_VERSION, BUILD_TIME_UTC, GIT_SHA

configure_logging(json=settings.LOG_JSON, level=settings.LOG_LEVEL)

app = FastAPI(title="Kalos availability", version=APP_VERSION, debug=settings.DEBUG)

# --- Context/log middlewares
app.add_middleware(RequestContextMiddleware)

# --- CORS
allowed_origins = []
for host in settings.ALLOWED_HOSTS.split(","):
    _host = host.strip()
    if not _host:
        continue
    # accepts hosts with or without a scheme
    if _host.startswith("http"):
        allowed_origins.append(_host)
    else:
        allowed_origins.append(f"http://{_host}")
        allowed_origins.append(f"https://{_host}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=(allowed_origins or ["*"]) if settings.DEBUG else allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- HTTPS only in prod
if settings.APP_ENV.value == "prod":
    app.add_middleware(HTTPSRedirectMiddleware)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)

    if settings.APP_ENV.value == "prod":
        response.headers["Strict-Transport-Security"] = (
            "max-age=15552000; includeSubDomains; preload"
        )

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


# --- Domain errors -> HTTP

_STATUS_BY_ERROR: list[tuple[type[AvailabilityError], int]] = [
    (NotFoundError, 404),
    (SlotUnavailableError, 409),
    (ExpiredLockError, 410),
    (ConflictError, 503),
]


def status_for(exc: AvailabilityError) -> int:
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return code
    # FormatError / RangeError / ValidationError
    return 422


@app.exception_handler(AvailabilityError)
async def availability_error_handler(request: Request, exc: AvailabilityError):
    code = status_for(exc)
    headers = {"Retry-After": "1"} if isinstance(exc, ConflictError) else None
    get_logger().info(
        "request.domain_error",
        error=type(exc).__name__,
        detail=exc.detail,
        status_code=code,
    )
    return JSONResponse(
        {"detail": exc.detail, "error": type(exc).__name__},
        status_code=code,
        headers=headers,
    )


app.include_router(api_router)


# --- Endpoints
@app.get("/healthz", tags=["ops"])
def healthz():
    get_logger().info("health.check")
    return {"status": "ok", "env": settings.APP_ENV, "version": APP_VERSION}


@app.get("/version", tags=["ops"])
def version():
    return {
        "version": APP_VERSION,
        "git_sha": GIT_SHA,
        "build_time_utc": BUILD_TIME_UTC,
        "env": settings.APP_ENV,
        "debug": settings.DEBUG,
    }

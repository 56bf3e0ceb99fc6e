"""
Stremio Jackett add-on - FastAPI application
"""

import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Dict

try:
    import uvloop  # type: ignore
    UVLOOP_AVAILABLE = True
except Exception:
    uvloop = None
    UVLOOP_AVAILABLE = False
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from stremio_jackett.core.config import settings
from stremio_jackett.core.exceptions import InvalidConfig
from stremio_jackett.api.v1.health import router as health_router
from stremio_jackett.api.v1.stremio import router as stremio_router
from stremio_jackett.services.http_session import AsyncHTTPSession
from stremio_jackett.services.tracker_cache import TrackerCache
from stremio_jackett.services.usecases.stream_resolution import StreamResolutionUseCase


# ========================= Logging Configuration =========================

class ColoredFormatter(logging.Formatter):
    grey = "\x1b[38;21m"
    blue = "\x1b[34m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: blue,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelno, self.grey)
        record.levelname = f"{log_color}{record.levelname}{self.reset}"
        return super().format(record)


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging():
    log_level = getattr(settings, "log_level", "INFO").upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    if sys.stdout.isatty():
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(numeric_level)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logging.getLogger("stremio_jackett").setLevel(numeric_level)


# ========================= Middleware =========================

class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        request_id = request.headers.get("X-Request-ID", str(time.time()))
        request.state.request_id = request_id
        try:
            response = await call_next(request)
            process_time = time.perf_counter() - start_time
            response.headers["X-Process-Time"] = f"{process_time:.3f}"
            response.headers["X-Request-ID"] = request_id
            if process_time > 5.0:
                logging.warning(
                    "Slow request: %s %s took %.3fs",
                    request.method, request.url.path, process_time,
                )
            return response
        except Exception as e:
            process_time = time.perf_counter() - start_time
            logging.error(
                "Request failed: %s %s after %.3fs: %s",
                request.method, request.url.path, process_time, e,
            )
            raise


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, requests_per_minute: int = 60):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests: Dict[str, list[float]] = {}

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        minute_ago = now - 60

        self.requests = {
            ip: [t for t in times if t > minute_ago]
            for ip, times in self.requests.items()
            if any(t > minute_ago for t in times)
        }

        recent_requests = self.requests.get(client_ip, [])
        if len(recent_requests) >= self.requests_per_minute:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests. Please try again later."},
                headers={"Retry-After": "60"}
            )

        recent_requests.append(now)
        self.requests[client_ip] = recent_requests
        return await call_next(request)


# ========================= Lifespan Manager =========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Starting Stremio Jackett add-on...")
    http = AsyncHTTPSession()
    tracker_cache = TrackerCache(
        http,
        ttl=settings.tracker_cache_ttl,
        timeout=settings.tracker_timeout_sec,
        max_urls=settings.tracker_cache_max_urls,
        pinned_url=settings.tracker_github_url,
    )
    app.state.http_session = http
    app.state.tracker_cache = tracker_cache
    app.state.stream_usecase = StreamResolutionUseCase(
        http=http,
        tracker_cache=tracker_cache,
        fetch_limit=settings.jackett_fetch_limit,
    )

    if settings.tracker_github_url:
        logging.info("Warming tracker cache...")
        trackers = await tracker_cache.get(settings.tracker_github_url)
        logging.info("Tracker cache warmed with %d trackers", len(trackers))

    logging.info("Application startup complete")
    try:
        yield
    finally:
        logging.info("Shutting down Stremio Jackett add-on...")
        await http.close()
        logging.info("Application shutdown complete")


# ========================= Application Factory =========================

def create_application() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Stremio Jackett Add-on",
        description="Resolves IMDb ids to ranked torrent streams via Jackett",
        version="1.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
        default_response_class=JSONResponse,
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "stremio", "description": "Stremio add-on protocol"},
        ],
    )

    # Stremio fetches add-on resources cross-origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time", "X-Request-ID"],
        max_age=86400,
    )

    if settings.allowed_hosts and settings.allowed_hosts != ["*"]:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.allowed_hosts
        )

    app.add_middleware(
        GZipMiddleware,
        minimum_size=1000,
        compresslevel=6,
    )

    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.rate_limit_rpm,
        )

    app.add_middleware(TimingMiddleware)

    # Routers
    app.include_router(health_router, prefix="/health", tags=["health"])
    app.include_router(stremio_router, tags=["stremio"])

    # Exception Handlers
    @app.exception_handler(InvalidConfig)
    async def invalid_config_handler(request: Request, exc: InvalidConfig):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"streams": [], "error": str(exc)}
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc)}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": "Stremio Jackett Add-on",
            "version": "1.1.0",
            "status": "running",
            "manifest": "/manifest.json",
        }

    return app


# ========================= Main =========================

if sys.platform != "win32" and UVLOOP_AVAILABLE:
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

app = create_application()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "stremio_jackett.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
        access_log=False,
        loop="uvloop" if (sys.platform != "win32" and UVLOOP_AVAILABLE) else "asyncio",
    )

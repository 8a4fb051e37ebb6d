"""
FastAPI application factory for the governorate console.

Usage:
    python -m api.app                    # Dev server on port 8000
    FIREBASE_CREDENTIALS=sa.json python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Persistence, sign-in and live updates are Firebase's (Firestore + Auth);
this process renders the console, validates input and filters listings.

Logging: text by default, newline-delimited JSON when APP_LOG_FORMAT=json.
Every response carries an X-Request-ID that also appears in the log line.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from api.auth import LoginRequired, TokenVerifier, set_verifier
from api.live import ListingCache, get_listings, set_listings
from api.routes import dashboard, export, records, reference
from api.routes import frontend as frontend_routes
from api.routes import session as session_routes
from api.service import AccessDenied, RecordNotFound
from api.store import DocumentStore, StoreError, get_store, set_store
from utils.catalog import RecordValidationError
from utils.config import AppConfig, get_config, set_config
from utils.formatting import format_status, format_timestamp

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "client_ip",
                    "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


_logger = logging.getLogger("governorate_console")


def configure_logging(cfg: AppConfig) -> None:
    """Install the root handler in text or JSON format."""
    handler = logging.StreamHandler()
    if cfg.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=logging.INFO, force=True)


# ── Application metrics ───────────────────────────────────────────────────────
# In-memory counters; reset on process restart.
_app_start_time: float = time.time()
_metrics: dict = {
    "request_count": 0,
    "error_count": 0,
    "response_times_ms": [],  # capped at last 100 entries
}
_RESPONSE_TIME_WINDOW = 100


def _error_body(error: str, status_code: int, detail: str | None = None, **extra) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code, **extra}


def _wants_html(request: Request) -> bool:
    """HTML routes get rendered error pages, /api and /health get JSON."""
    path = request.url.path
    return not (path.startswith("/api") or path.startswith("/health"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration; stop snapshot listeners on shutdown."""
    cfg = get_config()
    _logger.info(
        "starting regions=%s default_region=%s anonymous=%s project=%s",
        ",".join(cfg.regions), cfg.default_region, cfg.allow_anonymous,
        cfg.firebase_project_id or "(default)",
    )
    yield
    get_listings().close()
    _logger.info("listing listeners closed")


def create_app(
    store: DocumentStore | None = None,
    config: AppConfig | None = None,
    verifier: TokenVerifier | None = None,
    listings: ListingCache | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Document store to use instead of Firestore (tests).
        config: Configuration to use instead of reading the environment.
        verifier: Token verifier to use instead of firebase_admin.auth (tests).
        listings: Listing cache to use instead of a fresh one.

    Returns:
        Configured FastAPI application instance.
    """
    cfg = config or AppConfig.from_env()
    set_config(cfg)
    configure_logging(cfg)
    if store is not None:
        set_store(store)
    if verifier is not None:
        set_verifier(verifier)
    set_listings(listings or ListingCache(ttl_seconds=cfg.list_cache_seconds))

    app = FastAPI(
        title="Governorate Console API",
        summary="Correspondence, activities, reports, circulars and HR records per governorate.",
        description=(
            "## Governorate Console API\n\n"
            "Records are stored in Cloud Firestore, one collection per list, "
            "each record belonging to exactly one governorate (`region`).\n\n"
            "### Authentication\n"
            "Send a Firebase ID token as `Authorization: Bearer <token>`. "
            "Users with a `region` custom claim only see their governorate.\n\n"
            "### Filtering\n"
            "List endpoints accept `q` (text contains), `date` (YYYY-MM-DD, "
            "exact) and `number` (reference number contains). All given "
            "criteria must match.\n\n"
            "### Live updates\n"
            "List responses carry a weak `ETag` that changes whenever the "
            "listing changes; poll with `If-None-Match` to get `304`."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "records", "description": "List, create, update and delete records; change correspondence status."},
            {"name": "export", "description": "Download a filtered listing as CSV or Excel."},
            {"name": "dashboard", "description": "Per-governorate totals."},
            {"name": "reference", "description": "Regions, statuses and the collection catalog."},
            {"name": "session", "description": "Console sign-in and sign-out."},
            {"name": "meta", "description": "Health check and operational metrics."},
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["ETag", "X-Request-ID", "X-Total-Count"],
    )

    # ── Cache-Control ─────────────────────────────────────────────────────────

    @app.middleware("http")
    async def cache_control_middleware(request: Request, call_next):
        """Reference data is cacheable; everything user-scoped is private."""
        response = await call_next(request)
        path = request.url.path
        if path.startswith("/api/v1/reference"):
            response.headers.setdefault("Cache-Control", "public, max-age=3600")
        elif path.startswith("/static"):
            response.headers.setdefault("Cache-Control", "public, max-age=86400")
        else:
            response.headers.setdefault("Cache-Control", "private, no-cache")
        return response

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request and record metrics."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path

        if path == "/health":
            return await call_next(request)

        _metrics["request_count"] += 1
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        _metrics["response_times_ms"].append(duration_ms)
        if len(_metrics["response_times_ms"]) > _RESPONSE_TIME_WINDOW:
            _metrics["response_times_ms"] = (
                _metrics["response_times_ms"][-_RESPONSE_TIME_WINDOW:]
            )
        if response.status_code >= 500:
            _metrics["error_count"] += 1

        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f ip=%s rid=%s",
                request.method, path, response.status_code, duration_ms,
                client_ip, request_id,
            )
        if duration_ms > 500:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Content Security Policy + security headers ───────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add Content-Security-Policy, X-Content-Type-Options, and X-Frame-Options."""
        response = await call_next(request)
        # HTMX from unpkg; the login page loads the Firebase JS SDK from gstatic
        # and talks to the Identity Toolkit endpoints.
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' unpkg.com www.gstatic.com 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "font-src 'self'; "
            "connect-src 'self' https://*.googleapis.com; "
            "frame-src https://*.firebaseapp.com;"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    def _error_response(request: Request, status_code: int, error: str,
                        detail: str, **extra) -> Response:
        if _wants_html(request) and frontend_routes.has_templates():
            return frontend_routes.render_error(request, status_code, error, detail)
        return JSONResponse(
            status_code=status_code,
            content=_error_body(error, status_code, detail, **extra),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", 500, str(exc)),
        )

    @app.exception_handler(RecordValidationError)
    async def validation_error_handler(request: Request, exc: RecordValidationError):
        return _error_response(request, 400, "Bad request", str(exc), errors=exc.errors)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error_response(request, 400, "Bad request", str(exc))

    @app.exception_handler(RecordNotFound)
    async def not_found_handler(request: Request, exc: RecordNotFound):
        return _error_response(request, 404, "Not found", str(exc))

    @app.exception_handler(AccessDenied)
    async def access_denied_handler(request: Request, exc: AccessDenied):
        return _error_response(request, 403, "Forbidden", str(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        _logger.error("store error path=%s: %s", request.url.path, exc)
        return _error_response(request, 502, "Upstream service error", str(exc))

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        if request.headers.get("HX-Request"):
            return Response(status_code=204, headers={"HX-Redirect": "/login"})
        return RedirectResponse("/login", status_code=303)

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 OK if the API is running and can reach Firestore."""
        try:
            get_store().ping()
        except Exception as e:
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "error": str(e)},
            )
        return {"status": "ok", "regions": len(cfg.regions)}

    @app.get(
        "/health/detailed",
        tags=["meta"],
        summary="Detailed health metrics",
        response_description="Operational metrics for monitoring dashboards",
    )
    def health_detailed():
        """Return uptime, request/error counters, response time and listener stats.

        Counters reset on process restart.
        """
        rts = _metrics["response_times_ms"]
        avg_rt = round(sum(rts) / len(rts), 2) if rts else 0.0
        listings = get_listings()
        return {
            "status": "ok",
            "uptime_seconds": round(time.time() - _app_start_time, 2),
            "request_count": _metrics["request_count"],
            "error_count": _metrics["error_count"],
            "avg_response_time_ms": avg_rt,
            "live_listings": [f"{c}/{r}" for c, r in listings.watched()],
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    # export before records: /records/{collection}/export must not match {record_id}
    app.include_router(export.router,    prefix=prefix)
    app.include_router(records.router,   prefix=prefix)
    app.include_router(dashboard.router, prefix=prefix)
    app.include_router(reference.router, prefix=prefix)

    # ── Static files + Jinja2 templates ───────────────────────────────────────
    _here = Path(__file__).parent.parent  # project root

    static_dir = _here / "static"
    templates_dir = _here / "templates"

    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    if templates_dir.exists():
        templates = Jinja2Templates(directory=str(templates_dir))
        templates.env.filters["fmt_datetime"] = format_timestamp
        templates.env.filters["fmt_date"] = lambda v: format_timestamp(v, with_time=False)
        templates.env.filters["status_label"] = format_status
        templates.env.globals["cfg"] = cfg

        frontend_routes.set_templates(templates)
        app.include_router(session_routes.router)
        app.include_router(frontend_routes.router)

    return app


if __name__ == "__main__":
    import uvicorn

    _cfg = get_config()
    uvicorn.run(
        "api.app:create_app",
        factory=True,
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )

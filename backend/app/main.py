from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import uuid
from datetime import datetime, timezone
from .routers.auth import router as auth_router
from .routers.invoices import router as invoices_router
from .routers.sales import router as sales_router
from .routers.reports import router as reports_router
from .routers.dashboard import router as dashboard_router
from .routers.inventory import router as inventory_router
from .routers.products import router as products_router
from .routers.patients import router as patients_router
from .routers.doctors import router as doctors_router
from .config import settings
from .deps import require_user
from .db import get_conn, open_pool, close_pool
from .errors import ProcedureError
from .logs import json_log

app = FastAPI(title="HealthTrack Pharmacy API", version=settings.api_version)
STARTED_AT_UTC = datetime.now(timezone.utc)
API_PREFIX = "/api"


def _current_request_id(req: Request) -> str:
    return getattr(req.state, "request_id", "") or req.headers.get("x-request-id") or "startup"


def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


@app.exception_handler(StarletteHTTPException)
def _http_exception(_req: Request, exc: StarletteHTTPException):
    extra = {}
    cause = exc.__cause__
    if settings.is_dev and isinstance(cause, ProcedureError):
        extra["error"] = cause.message
    return _envelope(exc.status_code, str(exc.detail), **extra)


@app.exception_handler(RequestValidationError)
def _request_validation_error(_req: Request, exc: Exception):
    extra = {}
    if settings.is_dev and hasattr(exc, "errors"):
        extra["errors"] = exc.errors()
    return _envelope(400, "Invalid request", **extra)


@app.exception_handler(ProcedureError)
def _procedure_error(req: Request, exc: ProcedureError):
    # Gateway failures that no workflow translated (e.g. session lookup).
    rid = _current_request_id(req)
    extra = {"request_id": rid}
    if settings.is_dev:
        extra["error"] = exc.message
    return _envelope(500, "Internal server error", **extra)


@app.exception_handler(Exception)
def _unhandled_exception(req: Request, exc: Exception):
    rid = _current_request_id(req)
    json_log(
        "error",
        "http.request.unhandled",
        request_id=rid,
        method=req.method,
        path=req.url.path,
        error=str(exc),
    )
    extra = {"request_id": rid}
    if settings.is_dev:
        extra["error"] = str(exc)
    return _envelope(500, "Internal server error", **extra)

# Correlation id + basic structured request logging.
@app.middleware("http")
async def _request_logging(request: Request, call_next):
    rid = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
    request.state.request_id = rid
    started = time.time()
    path = request.url.path
    method = request.method
    client_ip = (request.client.host if request.client else None)

    try:
        response = await call_next(request)
    except Exception as exc:
        dur_ms = int((time.time() - started) * 1000)
        json_log(
            "error",
            "http.request.error",
            request_id=rid,
            method=method,
            path=path,
            client_ip=client_ip,
            duration_ms=dur_ms,
            error=str(exc),
        )
        raise

    response.headers["X-Request-Id"] = rid
    response.headers["X-Content-Type-Options"] = "nosniff"
    if path != "/health":
        dur_ms = int((time.time() - started) * 1000)
        json_log(
            "info",
            "http.request",
            request_id=rid,
            method=method,
            path=path,
            status_code=response.status_code,
            client_ip=client_ip,
            duration_ms=dur_ms,
        )
    return response

# The browser front-end is served from a different origin during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(sales_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(invoices_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(reports_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(dashboard_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(inventory_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(products_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(patients_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])
app.include_router(doctors_router, prefix=API_PREFIX, dependencies=[Depends(require_user)])


def _db_health():
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 AS ok")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, str(exc)


@app.on_event("startup")
def _startup():
    open_pool()
    ok, err = _db_health()
    if ok:
        json_log("info", "startup.db_connected", env=settings.env, version=settings.api_version)
    else:
        json_log("warning", "startup.db_probe_failed", env=settings.env, error=err)


@app.on_event("shutdown")
def _shutdown():
    close_pool()


@app.get("/health")
def health(req: Request):
    request_id = _current_request_id(req)
    ok, err = _db_health()
    content = {
        "status": "ok" if ok else "degraded",
        "env": settings.env,
        "db": "ok" if ok else "down",
        "service": "healthtrack-backend",
        "version": settings.api_version,
        "started_at": STARTED_AT_UTC.isoformat(),
        "request_id": request_id,
    }
    if not ok:
        if settings.is_dev:
            content["error"] = err
        return JSONResponse(status_code=503, content=content)
    return content

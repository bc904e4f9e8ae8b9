import logging
import os
import time
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import categories, orders, products
from .db import Database

APP_NAME = "storefront"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LISTEN_HOST = os.getenv("LISTEN_HOST", "0.0.0.0")
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8000"))

# Optional prefix for routes. Leave empty ("") if your Gateway strips it.
API_PREFIX = os.getenv("API_PREFIX", "").strip()
if API_PREFIX and not API_PREFIX.startswith("/"):
    API_PREFIX = "/" + API_PREFIX
API_PREFIX = API_PREFIX.rstrip("/")

logger = logging.getLogger(__name__)

# ---- Prometheus metrics ----
REQS = Counter("http_requests_total", "Total HTTP requests", ["service", "path", "method", "status"])
LAT = Histogram("http_request_duration_seconds", "Request latency", ["service", "path", "method"])


def route_path(request: Request) -> str:
    # Route template (/products/{pid}), not the raw URL
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def create_app(db: Optional[Database] = None, prefix: str = API_PREFIX) -> FastAPI:
    """
    Build the API around an explicit Database handle.
    Without one, a Database is built from the environment.
    """
    db = db or Database()
    app = FastAPI(title=APP_NAME)
    app.state.db = db

    # ---- Startup: ensure schema + tables exist (idempotent) ----
    @app.on_event("startup")
    def on_startup():
        db.init_db()

    @app.on_event("shutdown")
    def on_shutdown():
        db.dispose()

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        path = route_path(request)
        REQS.labels(APP_NAME, path, request.method, response.status_code).inc()
        LAT.labels(APP_NAME, path, request.method).observe(time.time() - start)
        return response

    # ---- Errors: always {"error": "..."} ----
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.debug("rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid input"})

    @app.get("/health", response_class=PlainTextResponse)
    def health():
        return "ok"

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(categories.router, prefix=prefix)
    app.include_router(products.router, prefix=prefix)
    app.include_router(orders.router, prefix=prefix)
    return app


def run():
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(), host=LISTEN_HOST, port=LISTEN_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    # Run with: python -m storefront.main
    run()

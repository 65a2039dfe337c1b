"""Natours - Tour booking REST API."""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from natours.config import get_settings
from natours.error_handlers import register_exception_handlers
from natours.rate_limit import limiter
from natours.routers import reviews_router, tour_reviews_router, tours_router, users_router

settings = get_settings()

# Logging
logger = logging.getLogger("natours")
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Natours", version="0.1.0")
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = settings.MAX_BODY_SIZE_KB * 1024

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return JSONResponse(status_code=413, content={"status": "fail", "message": "Request body too large"})
        return await call_next(request)


# --- Request / audit logging middleware ---
class RequestLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = ("/users",)
    AUDIT_METHODS = ("POST", "PATCH", "DELETE")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        client = request.client.host if request.client else "unknown"
        if method in self.AUDIT_METHODS and path.startswith(self.AUDIT_PATHS):
            logger.info("AUDIT %s %s -> %d (%.0fms) from %s", method, path, response.status_code, duration_ms, client)
        elif not settings.is_production:
            logger.info("%s %s -> %d (%.0fms)", method, path, response.status_code, duration_ms)

        return response


app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RequestLogMiddleware)

# API routers
app.include_router(users_router)
app.include_router(tours_router)
app.include_router(tour_reviews_router)
app.include_router(reviews_router)

register_exception_handlers(app)

for warning in settings.validate():
    logger.warning("Config: %s", warning)


# --- Health check ---
@app.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "natours", "version": "0.1.0"}

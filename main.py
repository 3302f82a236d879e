"""User Data - identity microservice."""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.exceptions import IdentityError
from app.routers import user_data_router
from app.routers.user_data import REQUIRED_FIELDS_MESSAGES

APP_VERSION = "0.1.0"
STAGE_PREFIXES = ("/dev", "/staging", "/prod")

# Logging
logger = logging.getLogger("user_data")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

for warning in get_settings().validate():
    logger.warning("Configuration: %s", warning)
# Raises ConfigurationError on an unusable table name or field allow-lists
get_settings().identity_config()

app = FastAPI(title="User Data", version=APP_VERSION)


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Cache-Control"] = "no-store"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = 64 * 1024  # JSON bodies only

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return JSONResponse(status_code=413, content={"message": "Request body too large"})
        return await call_next(request)


# --- Request logging middleware ---
class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs every request line and outcome. Bodies are never logged, they carry passwords."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        logger.info(
            "%s %s -> %d (%.0fms) from %s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request.client.host if request.client else "unknown",
        )
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RequestLogMiddleware)

# API routers, also reachable behind a deployment stage prefix
app.include_router(user_data_router)
for stage in STAGE_PREFIXES:
    app.include_router(user_data_router, prefix=stage, include_in_schema=False)


# --- Exception handler: identity failures -> {"message"} envelope ---
@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    """Serialize a service failure with its status code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("%s %s failed (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


# --- Exception handler: bad request bodies -> 400 ---
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report missing or malformed body fields the way the public API always has."""
    errors = exc.errors()
    if any(tuple(err.get("loc", ())) == ("body",) and err.get("type") == "missing" for err in errors):
        message = "Body is not provided"
    elif all(err.get("type") == "missing" for err in errors):
        endpoint = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        message = REQUIRED_FIELDS_MESSAGES.get(endpoint, "Required fields must be passed in body")
    else:
        fields = sorted({".".join(str(part) for part in err.get("loc", ())[1:]) or "body" for err in errors})
        message = f"Invalid value for: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"message": message})


# --- Exception handler: unknown routes -> 404 ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unrouted method/path combinations all get the same 404."""
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"message": "Unrecognised path and method combination"})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


# --- Exception handler: anything else -> 500 ---
@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# --- Health check ---
@app.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "user-data", "version": APP_VERSION}

"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, crud, health
from core.auth import RENEWED_TOKEN_HEADER, RenewedTokenMiddleware
from core.config import get_settings
from services.exceptions import ApiError, ConfigurationError

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="JWT CRUD API",
    description="Token-authenticated generic CRUD API over registered entity types.",
    version="0.1.0",
)


@app.exception_handler(ApiError)
async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    """Render service-layer failures as an errors envelope."""
    return JSONResponse(status_code=exc.status_code, content={"errors": exc.messages})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    _request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """Render request schema failures in the same envelope as ApiValidationError."""
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part not in ("body", "query"))
        errors.append(f"{location}: {error['msg']}" if location else error["msg"])
    return JSONResponse(status_code=400, content={"errors": errors})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(
    _request: Request, exc: ConfigurationError,
) -> JSONResponse:
    """Missing configuration is an operator problem; clients only see a 500."""
    logger.error("Configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"errors": ["Internal server error"]})


# Renewed token middleware (copies request.state.renewed_token to a response header)
app.add_middleware(RenewedTokenMiddleware)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=[RENEWED_TOKEN_HEADER],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(crud.router)

"""FastAPI application for retailer order-history imports."""

from __future__ import annotations

import logging
import os
import secrets
import threading
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from src.scraper.config import ScraperConfig, load_config
from src.scraper.core.errors import ScrapeError
from src.scraper.core.models import DateRange, ImportOptions
from src.scraper.importer import ImportRequest, OrderImporter
from src.scraper.retailers import supported_retailers

from .logging_config import configure_logging

configure_logging()
logger = logging.getLogger("order_import.api")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every incoming request with latency metadata."""

    def __init__(self, app: FastAPI) -> None:
        super().__init__(app)
        self.environment = os.getenv("ENVIRONMENT", "local")

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        extra: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "environment": self.environment,
        }

        try:
            response = await call_next(request)
        except Exception:  # pragma: no cover - logged and re-raised
            latency_ms = (time.perf_counter() - start_time) * 1000
            extra.update({"status_code": 500, "latency_ms": round(latency_ms, 2)})
            logger.exception("request.failed", extra=extra)
            raise

        latency_ms = (time.perf_counter() - start_time) * 1000
        extra.update({
            "status_code": response.status_code,
            "latency_ms": round(latency_ms, 2),
        })

        if response.status_code >= 500:
            logger.error("request.error", extra=extra)
        elif response.status_code >= 400:
            logger.warning("request.client_error", extra=extra)
        else:
            logger.info("request.completed", extra=extra)

        return response


app = FastAPI(
    title="Retailer Order Import API",
    description="Imports a user's purchase history from retailer websites",
    version="1.0.0",
)
app.add_middleware(RequestLoggingMiddleware)

# Global instances (initialized on first request)
_settings: Optional[ScraperConfig] = None
_importer: Optional[OrderImporter] = None
_init_lock = threading.Lock()


def get_settings() -> ScraperConfig:
    """Get or load the service configuration."""
    global _settings
    if _settings is None:
        with _init_lock:
            if _settings is None:
                _settings = load_config()
                logger.info("Loaded scraper configuration")
    return _settings


def get_importer() -> OrderImporter:
    """Get or create the order importer instance."""
    global _importer
    if _importer is None:
        settings = get_settings()
        with _init_lock:
            if _importer is None:
                _importer = OrderImporter(config=settings)
                logger.info("Initialized OrderImporter")
    return _importer


bearer_scheme = HTTPBearer(auto_error=False)


def require_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Reject requests without the configured bearer key."""
    expected = get_settings().api.resolve_api_key()
    if not expected:
        logger.error("auth.api_key_not_configured")
        raise StarletteHTTPException(status_code=401, detail="Scraper API key is not configured")
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise StarletteHTTPException(status_code=401, detail="Invalid or missing API key")


# Request/Response models
class AuthPayload(BaseModel):
    """Authentication block of an import request."""
    type: Literal["oauth", "credentials"]
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)


class DateRangePayload(BaseModel):
    start_date: date
    end_date: date


class ImportOptionsPayload(BaseModel):
    include_returns: bool = True
    include_digital: bool = True
    include_subscriptions: bool = True


class ImportOrdersRequest(BaseModel):
    """Request model for the import endpoint."""
    retailer: str = Field(description="Retailer id, case-insensitive (amazon, walmart, target, bestbuy)")
    auth: AuthPayload
    date_range: Optional[DateRangePayload] = None
    import_options: Optional[ImportOptionsPayload] = None
    max_pages: Optional[int] = Field(default=None, ge=1, description="Page limit, capped server-side")

    def to_import_request(self) -> ImportRequest:
        return ImportRequest(
            retailer=self.retailer,
            auth_type=self.auth.type,
            token=self.auth.token,
            username=self.auth.username,
            password=self.auth.password,
            date_range=(
                DateRange(self.date_range.start_date, self.date_range.end_date)
                if self.date_range else None
            ),
            import_options=(
                ImportOptions(**self.import_options.model_dump())
                if self.import_options else None
            ),
            max_pages=self.max_pages,
        )


class ProductModel(BaseModel):
    """A normalized purchase record."""
    external_id: str
    name: str
    price: float
    purchase_date: str
    image_url: Optional[str] = None
    retailer: str
    category: Optional[str] = None


class ImportOrdersResponse(BaseModel):
    """Response model for a successful import."""
    success: bool = True
    retailer: str
    products: List[ProductModel]
    count: int


class ErrorResponse(BaseModel):
    error: str
    type: Optional[str] = None
    recoverable: Optional[bool] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class RetailerInfo(BaseModel):
    retailer: str
    auth_type: str


class RetailerListResponse(BaseModel):
    retailers: List[RetailerInfo]
    total_count: int


# API Endpoints
@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint providing API information."""
    return {
        "message": "Retailer Order Import API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc).isoformat())


@app.get("/retailers", response_model=RetailerListResponse)
async def list_retailers():
    """List supported retailers and the auth type each one expects."""
    retailers = [
        RetailerInfo(retailer=profile.retailer_id, auth_type=profile.auth_mode.value)
        for profile in supported_retailers()
    ]
    return RetailerListResponse(retailers=retailers, total_count=len(retailers))


@app.post(
    "/",
    response_model=ImportOrdersResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse},
               422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(require_api_key)],
)
async def import_orders(payload: ImportOrdersRequest):
    """Scrape and normalize a user's order history from one retailer."""
    retailer = payload.retailer.lower()
    try:
        result = await run_in_threadpool(
            get_importer().import_orders, payload.to_import_request()
        )
    except ValueError as exc:
        logger.warning(
            "import.invalid_request",
            extra={"retailer": retailer, "auth_type": payload.auth.type, "reason": str(exc)},
        )
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except ScrapeError as exc:
        logger.warning(
            "import.failed",
            extra={
                "retailer": retailer,
                "error_type": exc.kind.value,
                "recoverable": exc.recoverable,
            },
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())
    except Exception:
        logger.exception("import.unhandled_error", extra={"retailer": retailer})
        return JSONResponse(
            status_code=500, content={"error": "Internal scraping service error"}
        )

    logger.info("import.success", extra={"retailer": result.retailer, "count": result.count})
    return ImportOrdersResponse(
        retailer=result.retailer,
        products=[ProductModel(**product.to_dict()) for product in result.products],
        count=result.count,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are 400s, not FastAPI's default 422 (used for CAPTCHA)."""
    fields = sorted({
        ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        for error in exc.errors()
    })
    logger.warning(
        "request.validation_error",
        extra={"path": request.url.path, "error_count": len(exc.errors())},
    )
    message = "Invalid request format. Required: retailer, auth.type"
    if fields:
        message += f" (problem fields: {', '.join(f for f in fields if f) or 'body'})"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors in the service's error shape."""
    if exc.status_code == 404:
        logger.warning(
            "request.not_found",
            extra={"method": request.method, "path": request.url.path},
        )
        return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    """Handle uncaught errors."""
    logger.exception(
        "request.unhandled_error",
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(status_code=500, content={"error": "Internal scraping service error"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
FastAPI application for the risk proxy.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import ProxySettings
from ..version import __version__
from .schemas import ADDRESS_REGEX, BulkAnalysisRequest, EntityRequest, HealthResponse
from .service import DEFAULT_ERROR_MESSAGE, RiskApiClient, RiskApiError

logger = logging.getLogger(__name__)

BULK_PATH = "/api/wallet/analyze/bulk"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_app(settings: ProxySettings, api: Optional[RiskApiClient] = None) -> FastAPI:
    """
    Build the proxy application.

    Args:
        settings: Upstream API configuration
        api: Risk API client to use (defaults to one built from settings)
    """
    api = api or RiskApiClient(
        settings.api_base_url,
        settings.api_token,
        timeout=settings.timeout,
        batch_size=settings.batch_size,
    )

    app = FastAPI(title="TrueMoneyX Risk Proxy", version=__version__)
    app.state.api = api

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "ngrok-skip-browser-warning"],
        expose_headers=["ngrok-skip-browser-warning"],
    )

    @app.middleware("http")
    async def add_proxy_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["ngrok-skip-browser-warning"] = "true"
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        error = "Invalid request" if request.url.path == BULK_PATH else "Invalid address format"
        details = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
            for e in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": error, "details": details})

    @app.exception_handler(RiskApiError)
    async def upstream_error(request: Request, exc: RiskApiError):
        logger.error(f"Risk assessment failed for {request.url.path}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": exc.message, "timestamp": _timestamp()},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content = {"error": "Not Found", "message": "The requested endpoint does not exist"}
        else:
            content = {"error": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error serving {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": DEFAULT_ERROR_MESSAGE,
                "timestamp": _timestamp(),
            },
        )

    @app.get("/health", response_model=HealthResponse)
    def health() -> Dict[str, Any]:
        return {"status": "healthy", "timestamp": _timestamp()}

    @app.get("/api/risk/v2/entities/{address}")
    def get_entity(address: str = Path(..., pattern=ADDRESS_REGEX)) -> Dict[str, Any]:
        return app.state.api.assess(address)

    @app.post("/api/risk/v2/entities")
    def post_entity(payload: EntityRequest) -> Dict[str, Any]:
        logger.info(f"[POST] Risk assessment requested for address: {payload.address}")
        return app.state.api.assess(payload.address)

    @app.post(BULK_PATH)
    def analyze_bulk(payload: BulkAnalysisRequest) -> Dict[str, Any]:
        results = app.state.api.assess_many(payload.addresses)
        return {"results": results, "totalAnalyzed": len(results), "timestamp": _timestamp()}

    return app


def run(settings: ProxySettings, host: str = "0.0.0.0") -> None:
    """Serve the proxy with uvicorn until interrupted."""
    logger.info(f"Risk proxy listening on port {settings.port}")
    uvicorn.run(create_app(settings), host=host, port=settings.port)

"""
FastAPI service shell for Tenant Billing Rules services.

Subclasses add their routes on ``self.app``, override ``_check_dependencies``
to report on their stores and collaborators, and hook ``start``/``stop`` into
the application lifespan.
"""

import os
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shared.config import ServiceConfig, get_config
from shared.errors import BillingPlatformException
from shared.logging import clear_context, configure_logging, get_logger, request_id_var, set_request_id
from shared.metrics import get_metrics_collector

SERVICE_VERSION = "1.0.0"


def _endpoint_label(request: Request) -> str:
    """Route template (``/billing/rules/{rule_id}``) rather than the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_exception_handlers()

    def _create_app(self) -> FastAPI:
        title = self.service_name.replace('_', ' ').title()
        local = self.config.env == "local"
        return FastAPI(
            title=f"{title} Service",
            description=f"Tenant billing platform - {title} Service",
            version=SERVICE_VERSION,
            docs_url="/docs" if local else None,
            redoc_url="/redoc" if local else None,
            lifespan=self._lifespan,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.start()
        try:
            yield
        finally:
            await self.stop()

    def _setup_middleware(self):
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()
            request_id = set_request_id(request.headers.get("x-request-id"))
            status_code = 500

            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                duration = time.time() - start_time
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=_endpoint_label(request),
                    status_code=status_code,
                    duration=duration
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    duration_ms=round(duration * 1000, 2)
                )
                clear_context()

            response.headers["x-request-id"] = request_id
            return response

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={"service": self.service_name, "status": "error", "error": str(e)}
                )

            status = "ok" if all(state == "ok" for state in dependencies.values()) else "degraded"
            self.metrics.record_health_check(status)
            return {
                "service": self.service_name,
                "status": status,
                "uptime_seconds": self._get_uptime(),
                "dependencies": dependencies,
                "version": SERVICE_VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown")
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    def _setup_exception_handlers(self):
        @self.app.exception_handler(BillingPlatformException)
        async def billing_platform_exception_handler(request: Request, exc: BillingPlatformException):
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log("Request failed", code=exc.code, message=exc.message, details=exc.details)
            self.metrics.record_error(exc.code)
            request_id = request_id_var.get() or request.headers.get("x-request-id")
            return JSONResponse(status_code=exc.status_code, content=exc.to_response(request_id).model_dump())

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Dependency name -> ``ok`` / ``error``. Override in subclasses."""
        return {}

    async def start(self):
        """Start service components. Override in subclasses."""

    async def stop(self):
        """Stop service components. Override in subclasses."""

    def _get_uptime(self) -> float:
        return time.time() - self._start_time

    def run(self):
        """Run the service with uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )

"""
Base service class for Earthdata Search Access Layer services.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from typing import Dict, Optional
import time
import os

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context, request_id_var
from shared.metrics import get_metrics_collector
from shared.errors import SearchLayerException

SERVICE_VERSION = "1.0.0"


class BaseService:
    """FastAPI service skeleton shared by the search layer services.

    Subclasses add their own routes after calling ``super().__init__`` and may
    override ``_check_dependencies`` to report upstream health.
    """

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            description=f"Earthdata Search Access Layer - {service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )
        self._setup_middleware()
        self._setup_exception_handlers()
        self._setup_routes()

    def _setup_middleware(self):
        # Browsers only hand the renewed session token to the client when exposed
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["jwt-token"],
        )

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            set_request_id(request.headers.get("X-Request-ID"))
            started = time.time()

            response = await call_next(request)
            self._record_request(request, response.status_code, time.time() - started)
            clear_context()

            return response

    def _record_request(self, request: Request, status_code: int, duration: float):
        self.metrics.record_http_request(
            method=request.method,
            endpoint=request.url.path,
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

    def _setup_exception_handlers(self):
        @self.app.exception_handler(SearchLayerException)
        async def search_layer_exception_handler(request: Request, exc: SearchLayerException):
            """Render layer exceptions with their own status code."""
            self.logger.error(
                "Search layer error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={
                    "request_id": request_id_var.get(),
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Liveness plus the state of upstream dependencies."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": str(e)
                    }
                )

            return {
                "service": self.service_name,
                "status": "ok",
                "uptime_seconds": time.time() - self._start_time,
                "dependencies": dependencies,
                "version": SERVICE_VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown")
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.render(), media_type=CONTENT_TYPE_LATEST)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )

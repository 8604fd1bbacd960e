"""
Service base for the Media Lifecycle API.

``BaseService`` owns the FastAPI app and everything every service shares:
request ids and timing, ``/health`` and ``/metrics``, and the mapping of
exceptions onto ``{"error": {"message": ...}}`` responses.
"""

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Dict, Optional
import time

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import SERVICE_VERSION, get_metrics_collector
from shared.errors import INTERNAL_ERROR_MESSAGE, AccessLayerException, ErrorBody, ErrorResponse


REQUEST_ID_HEADER = "X-Request-ID"


def error_content(message: str) -> dict:
    """Render the ``{"error": {"message": ...}}`` body."""
    return ErrorResponse(error=ErrorBody(message=message)).model_dump()


def describe_validation_error(exc: RequestValidationError) -> str:
    """Turn the first request validation error into a short client message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "body"
    if first.get("type") == "missing":
        return f"{field} is required"
    return f"{field}: {first.get('msg', 'invalid value')}"


class BaseService:
    """FastAPI application shell shared by the services."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._started_at = time.monotonic()

        configure_logging(service_name, self.config.log_level, json_logs=self.config.env != "local")

        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
            lifespan=self._lifespan,
        )
        self._setup_middleware()
        self._setup_exception_handlers()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()

    async def startup(self):
        """Startup hook. Override in subclasses."""

    async def shutdown(self):
        """Shutdown hook; release held connections. Override in subclasses."""

    def _setup_middleware(self):
        """Set up middleware."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[REQUEST_ID_HEADER],
        )

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            request.state.request_id = request_id
            started = time.perf_counter()
            # Unhandled exceptions propagate through call_next and become a 500 outside this middleware
            status_code = 500

            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                duration = time.perf_counter() - started

                # Label by route template so record ids do not explode cardinality
                route = request.scope.get("route")
                endpoint = getattr(route, "path", "unmatched")
                self.metrics.record_http_request(request.method, endpoint, status_code, duration)

                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    duration_ms=round(duration * 1000, 2)
                )
                clear_context()

    def _setup_exception_handlers(self):
        """Map exceptions onto the error body."""

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            log = self.logger.error if exc.status_code >= 500 else self.logger.warning
            log(
                "Request failed",
                code=exc.code,
                message=exc.message,
                details=exc.details,
                path=request.url.path
            )
            return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            """Missing or malformed fields are a 400, not FastAPI's default 422."""
            message = describe_validation_error(exc)
            self.logger.warning("Request validation failed", path=request.url.path, error=message)
            return JSONResponse(status_code=400, content=error_content(message))

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            return JSONResponse(
                status_code=exc.status_code,
                content=error_content(str(exc.detail)),
                headers=getattr(exc, "headers", None)
            )

        @self.app.exception_handler(Exception)
        async def unhandled_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
            request_id = getattr(request.state, "request_id", None)
            return JSONResponse(
                status_code=500,
                content=error_content(INTERNAL_ERROR_MESSAGE),
                headers={REQUEST_ID_HEADER: request_id} if request_id else None
            )

    def _setup_routes(self):
        """Set up health and metrics routes."""

        @self.app.get("/health")
        async def health_check():
            """Dependency health; 503 when any dependency reports an error."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                dependencies = {"service": "error"}

            healthy = "error" not in dependencies.values()
            self.metrics.record_health_check("ok" if healthy else "error")
            return JSONResponse(
                status_code=200 if healthy else 503,
                content={
                    "service": self.service_name,
                    "status": "ok" if healthy else "degraded",
                    "version": SERVICE_VERSION,
                    "uptime_seconds": round(time.monotonic() - self._started_at, 3),
                    "dependencies": dependencies,
                }
            )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.render(), media_type=CONTENT_TYPE_LATEST)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Serve the app with uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )

"""
Shared utilities for the Media Lifecycle API.

- config: Service configuration via pydantic-settings
- parameter_store: Configuration overrides from the parameter/secret store
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and the ``{"error": {"message"}}`` body
- base_service: FastAPI application scaffolding shared by services

Do not import from service packages into shared/.
"""

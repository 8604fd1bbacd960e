"""
Shared configuration management for the Media Lifecycle API.

Values come from ``MEDIA_*`` environment variables (or a ``.env`` file) and,
when ``MEDIA_PARAMETER_PATH`` is set, from the parameter store; see
``shared.parameter_store``.
"""

from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.parameter_store import load_parameters


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"
    region: str = "ap-southeast-2"

    # Identity provider
    user_pool_id: Optional[str] = None
    issuer: Optional[str] = None
    jwks_timeout_seconds: float = 5.0
    jwks_refresh_cooldown_seconds: float = 300.0
    admin_group: str = "admin-users"

    # Durable record store
    store_backend: str = "dynamodb"
    table_name: str = "media-records"
    dynamodb_endpoint_url: Optional[str] = None
    store_timeout_seconds: float = 5.0

    # Object store
    bucket: str = "media-uploads"
    link_expiry_seconds: int = 900

    # Status cache
    cache_backend: str = "none"
    redis_url: Optional[str] = None
    cache_timeout_seconds: float = 1.5
    status_cache_ttl_seconds: int = 30

    # Parameter / secret store
    parameter_path: Optional[str] = None
    secret_id: Optional[str] = None


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


# Parameter names as published in the parameter store
PARAMETER_ALIASES = {
    "cognitoUserPoolId": "user_pool_id",
    "cognitoIssuer": "issuer",
    "dynamoTable": "table_name",
    "s3Bucket": "bucket",
    "redisUrl": "redis_url",
    "cacheBackend": "cache_backend",
    "adminGroup": "admin_group",
}


def _apply_parameters(config: ServiceConfig, parameters: Dict[str, Any]) -> ServiceConfig:
    # Secret values win over plain parameters of the same name
    sources = {name: value for name, value in parameters.items() if name != "secrets"}
    sources.update(parameters.get("secrets") or {})

    updates: Dict[str, Any] = {}
    for name, value in sources.items():
        field = PARAMETER_ALIASES.get(name, name)
        if field in BaseConfig.model_fields:
            updates[field] = value
    if not updates:
        return config
    # Round-trip through validation so string parameters are coerced
    merged = config.model_dump()
    merged.update(updates)
    return ServiceConfig(**merged)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    config = ServiceConfig(service_name=service_name, port=port, **overrides)
    if config.parameter_path:
        parameters = load_parameters(
            config.parameter_path,
            region=config.region,
            secret_id=config.secret_id
        )
        config = _apply_parameters(config, parameters)
    return config

"""
Media Lifecycle service.
"""

import sys
import os
from typing import Dict, Optional

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from fastapi import Body, Depends

from shared.base_service import BaseService
from shared.config import ServiceConfig

from .cache.status_cache import StatusCache, build_status_cache
from .domain.auth_middleware import AuthMiddleware
from .jwks.client import KeyCache
from .media.lifecycle import LifecycleManager
from .media.links import LinkIssuer, S3LinkIssuer
from .media.models import (
    DEFAULT_CONTENT_TYPE,
    FinalizeUploadRequest,
    InitiateUploadRequest,
    InitiateUploadResponse,
    RecordListResponse,
    TranscodeRequest,
    TranscodeResultRequest,
)
from .persistence.dynamodb import DynamoRecordStore
from .persistence.records import InMemoryRecordStore, RecordStore
from .validation.token_validator import Principal, TokenVerifier, expected_issuer


SERVICE_NAME = "media"
SERVICE_PORT = 8000


class MediaService(BaseService):
    """Upload, lifecycle and link endpoints for media records."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        key_cache: Optional[KeyCache] = None,
        record_store: Optional[RecordStore] = None,
        status_cache: Optional[StatusCache] = None,
        link_issuer: Optional[LinkIssuer] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.key_cache = key_cache or KeyCache(
            timeout=self.config.jwks_timeout_seconds,
            refresh_cooldown=self.config.jwks_refresh_cooldown_seconds,
            metrics=self.metrics,
        )
        self.issuer = expected_issuer(self.config.region, self.config.user_pool_id, self.config.issuer)
        self.verifier = TokenVerifier(self.key_cache, self.issuer, metrics=self.metrics)
        self.auth = AuthMiddleware(self.verifier)

        self.record_store = record_store or self._build_record_store()
        self.status_cache = status_cache or build_status_cache(
            self.config.cache_backend,
            redis_url=self.config.redis_url,
            timeout=self.config.cache_timeout_seconds,
            metrics=self.metrics,
        )
        self.link_issuer = link_issuer or S3LinkIssuer(
            self.config.bucket,
            expires_in=self.config.link_expiry_seconds,
            region=self.config.region,
        )
        self.lifecycle = LifecycleManager(
            self.record_store,
            self.status_cache,
            status_ttl=self.config.status_cache_ttl_seconds,
            metrics=self.metrics,
        )

        self._setup_media_routes()
        self._setup_admin_routes()

    def _build_record_store(self) -> RecordStore:
        if self.config.store_backend.lower() == "memory":
            return InMemoryRecordStore()
        return DynamoRecordStore(
            self.config.table_name,
            region=self.config.region,
            endpoint_url=self.config.dynamodb_endpoint_url,
            timeout=self.config.store_timeout_seconds,
        )

    def _setup_media_routes(self):
        """Set up media routes."""
        authenticated = Depends(self.auth.authenticate_request)

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "name": "media-lifecycle-api",
                "config": {
                    "region": self.config.region,
                    "parameterPath": self.config.parameter_path,
                },
            }

        @self.app.get("/api/healthz")
        async def healthz():
            """Liveness probe."""
            return {"status": "ok"}

        @self.app.post("/api/videos/initiate-upload", response_model=InitiateUploadResponse)
        async def initiate_upload(request: InitiateUploadRequest, principal: Principal = authenticated):
            """Create a record and return a pre-signed upload URL."""
            content_type = request.content_type or DEFAULT_CONTENT_TYPE
            record_id, object_key = await self.lifecycle.create(principal.subject, request.filename, content_type)
            upload_url = self.link_issuer.issue_upload(object_key, content_type)
            return InitiateUploadResponse(
                videoId=record_id,
                uploadUrl=upload_url,
                objectKey=object_key,
                expiresIn=self.link_issuer.expires_in,
            )

        @self.app.post("/api/videos/finalize-upload")
        async def finalize_upload(request: FinalizeUploadRequest, principal: Principal = authenticated):
            """Mark an upload as complete."""
            await self.lifecycle.finalize(
                principal.subject,
                request.video_id,
                size_bytes=request.size_bytes,
                duration_sec=request.duration_sec,
            )
            return {"message": "Upload finalized", "videoId": request.video_id}

        @self.app.get("/api/videos", response_model=RecordListResponse)
        async def list_videos(principal: Principal = authenticated):
            """List the caller's records, newest first."""
            records = await self.lifecycle.list_records(principal.subject)
            return RecordListResponse(items=[record.to_item() for record in records])

        @self.app.post("/api/videos/{video_id}/transcode")
        async def request_transcode(
            video_id: str,
            request: Optional[TranscodeRequest] = Body(default=None),
            principal: Principal = authenticated,
        ):
            """Hand a record to the transcoder."""
            preset = (request or TranscodeRequest()).preset
            await self.lifecycle.request_transcode(principal.subject, video_id, preset)
            return {"message": "Transcode started", "videoId": video_id, "preset": preset}

        @self.app.get("/api/videos/{video_id}/download-url")
        async def download_url(video_id: str, principal: Principal = authenticated):
            """Pre-signed download URL for a record's object."""
            object_key = await self.lifecycle.download_key(principal.subject, video_id)
            return {
                "downloadUrl": self.link_issuer.issue_download(object_key),
                "expiresIn": self.link_issuer.expires_in,
            }

        @self.app.get("/api/videos/{video_id}/status")
        async def video_status(video_id: str, principal: Principal = authenticated):
            """Current status of a record."""
            return await self.lifecycle.get_status(principal.subject, video_id)

    def _setup_admin_routes(self):
        """Set up admin routes."""
        admin = Depends(self.auth.require_group(self.config.admin_group))

        @self.app.post("/api/admin/videos/{owner_id}/{video_id}/transcode-result")
        async def transcode_result(
            owner_id: str,
            video_id: str,
            request: TranscodeResultRequest,
            principal: Principal = admin,
        ):
            """Record the outcome of a transcode job."""
            if request.succeeded:
                record = await self.lifecycle.complete_transcode(owner_id, video_id)
            else:
                record = await self.lifecycle.fail_transcode(owner_id, video_id, request.error)

            self.logger.info(
                "Transcode result recorded",
                admin=principal.subject,
                owner_id=owner_id,
                record_id=video_id,
                status=record.status
            )
            return {"videoId": video_id, "status": record.status, "updatedAt": record.updated_at}

        @self.app.get("/api/admin/status")
        async def admin_status(principal: Principal = admin):
            """Key cache and backend overview."""
            return {
                "issuer": self.issuer,
                "cachedIssuers": self.key_cache.cached_issuers(),
                "cacheBackend": self.status_cache.backend,
                "storeBackend": self.record_store.backend,
                "statusTtlSeconds": self.lifecycle.status_ttl,
                "linkExpirySeconds": self.link_issuer.expires_in,
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check store and cache reachability."""
        dependencies = {
            "store": "ok" if await self.record_store.health_check() else "error",
        }

        health_check = getattr(self.status_cache, "health_check", None)
        if health_check is not None:
            dependencies["cache"] = "ok" if await health_check() else "error"
        else:
            dependencies["cache"] = self.status_cache.backend

        return dependencies

    async def shutdown(self):
        """Release cache and store connections."""
        await self.status_cache.close()
        await self.record_store.close()
        self.logger.info("Media service stopped")


def create_app(**kwargs):
    """Create media service application."""
    service = MediaService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = MediaService()
    service.run()

"""
Media record models and API request/response schemas.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


PRESET_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class MediaStatus:
    """Record status values.

    ``UPLOADING -> READY``, ``UPLOADING|READY|FAILED -> TRANSCODING:<preset>``
    and ``TRANSCODING:<preset> -> READY|FAILED``. Finalize never leaves
    ``TRANSCODING`` or ``FAILED``.
    """

    UPLOADING = "UPLOADING"
    READY = "READY"
    FAILED = "FAILED"
    TRANSCODING_PREFIX = "TRANSCODING:"

    @classmethod
    def transcoding(cls, preset: str) -> str:
        return f"{cls.TRANSCODING_PREFIX}{preset}"

    @classmethod
    def is_transcoding(cls, status: Optional[str]) -> bool:
        return bool(status) and status.startswith(cls.TRANSCODING_PREFIX)


def utc_now_iso() -> str:
    """Current UTC time as ``2024-01-01T00:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _plain_number(value: Any) -> Any:
    # DynamoDB hands numbers back as Decimal
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class MediaRecord(BaseModel):
    """A media item as stored in the record store.

    Field aliases are the stored attribute names.
    """

    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(alias="userId")
    record_id: str = Field(alias="videoId")
    object_key: Optional[str] = Field(default=None, alias="objectKey")
    original_name: Optional[str] = Field(default=None, alias="originalName")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    size_bytes: Optional[int] = Field(default=None, alias="sizeBytes")
    duration_sec: Optional[float] = Field(default=None, alias="durationSec")
    status: str
    error: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "MediaRecord":
        return cls.model_validate({key: _plain_number(value) for key, value in item.items()})

    def to_item(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- request models ---

class InitiateUploadRequest(BaseModel):
    filename: str = Field(min_length=1)
    content_type: Optional[str] = Field(default=None, alias="contentType")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("filename must not contain path separators")
        return v


class FinalizeUploadRequest(BaseModel):
    video_id: str = Field(alias="videoId", min_length=1)
    size_bytes: Optional[int] = Field(default=None, alias="sizeBytes", ge=0)
    duration_sec: Optional[float] = Field(default=None, alias="durationSec", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class TranscodeRequest(BaseModel):
    preset: str = "720p"

    @field_validator("preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if not PRESET_PATTERN.match(v):
            raise ValueError("preset may only contain letters, digits, '-' and '_'")
        return v


class TranscodeResultRequest(BaseModel):
    succeeded: bool
    error: Optional[str] = None


# --- response models ---

class InitiateUploadResponse(BaseModel):
    videoId: str
    uploadUrl: str
    objectKey: str
    expiresIn: int


class StatusResponse(BaseModel):
    status: str
    updatedAt: Optional[str] = None


class RecordListResponse(BaseModel):
    items: List[Dict[str, Any]]

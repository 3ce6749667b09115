import os
from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator

VIDEO_EXTENSIONS = {"mp4", "avi", "mov", "mkv", "webm"}
DEFAULT_DURATION_SEC = {"video": 30, "image": 10}
MAX_DURATION_SEC = 3600


def media_type_from_filename(filename: str) -> str:
    _, ext = os.path.splitext((filename or "").lower())
    return "video" if ext.lstrip(".") in VIDEO_EXTENSIONS else "image"


def default_duration(media_type: str) -> int:
    return DEFAULT_DURATION_SEC.get(media_type, DEFAULT_DURATION_SEC["image"])


def _whole_seconds(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class MediaItemRecord(BaseModel):
    """
    A single playable asset, normalized once when it leaves the store.

    Accepts the camelCase keys written by the admin dashboard as well as the
    legacy `fileName` key and url-only records.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    media_id: str = Field(alias="mediaId")
    type: str = "image"
    filename: str = ""
    url: str = ""
    duration: int = 0
    file_size: int | None = Field(default=None, alias="fileSize")
    uploaded_at: datetime | None = Field(default=None, alias="uploadedAt")
    is_local: bool = Field(default=False, alias="isLocal")
    download_status: str = Field(default="pending", alias="downloadStatus")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        filename = (data.get("filename") or data.get("fileName") or "").strip()
        if not filename:
            url_path = urlparse(str(data.get("url") or "")).path
            filename = os.path.basename(url_path)
        data["filename"] = filename
        data.pop("fileName", None)

        raw_type = str(data.get("type") or "").strip().lower()
        media_type = raw_type if raw_type in DEFAULT_DURATION_SEC else media_type_from_filename(filename)
        data["type"] = media_type

        duration = _whole_seconds(data.get("duration"))
        data["duration"] = default_duration(media_type) if duration is None else duration
        if data.get("downloadStatus") is None and data.get("download_status") is None:
            data["download_status"] = "pending"
        return data

    @classmethod
    def from_row(cls, row) -> "MediaItemRecord":
        return cls(
            media_id=row.id,
            type=row.type,
            filename=row.filename,
            url=row.url or "",
            duration=row.duration,
            file_size=row.file_size,
            uploaded_at=row.uploaded_at,
            is_local=bool(row.is_local),
            download_status=row.download_status or "pending",
        )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class MediaBoxRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    media_box_id: str = Field(alias="mediaBoxId")
    name: str = ""
    media_items: list[str] = Field(default_factory=list, alias="mediaItems")

    @model_validator(mode="before")
    @classmethod
    def _dedupe_members(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        key = "mediaItems" if "mediaItems" in data else "media_items"
        members: list[str] = []
        for media_id in data.get(key) or []:
            value = str(media_id or "").strip()
            if value and value not in members:
                members.append(value)
        data[key] = members
        return data

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class MediaItemIn(BaseModel):
    media_id: str | None = Field(default=None, alias="mediaId")
    type: str | None = None
    filename: str = Field(..., min_length=1)
    url: str = ""
    duration: int | None = Field(default=None, ge=1, le=MAX_DURATION_SEC)

    model_config = ConfigDict(populate_by_name=True)


class MediaBoxIn(BaseModel):
    media_box_id: str | None = Field(default=None, alias="mediaBoxId")
    name: str = Field(..., min_length=1)
    media_items: list[str] = Field(default_factory=list, alias="mediaItems")

    model_config = ConfigDict(populate_by_name=True)

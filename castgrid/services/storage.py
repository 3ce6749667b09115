import os
import time
from dataclasses import dataclass

STORAGE_DIR = os.getenv("CASTGRID_STORAGE_DIR", "storage")
MEDIA_DIR = os.path.join(STORAGE_DIR, "media")
PUBLIC_BASE_URL = (os.getenv("CASTGRID_PUBLIC_BASE_URL", "") or "").strip().rstrip("/")
MAX_IMAGE_BYTES = int(os.getenv("CASTGRID_MAX_IMAGE_BYTES", str(15 * 1024 * 1024)))
MAX_VIDEO_BYTES = int(os.getenv("CASTGRID_MAX_VIDEO_BYTES", str(250 * 1024 * 1024)))
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".webm"}


@dataclass(frozen=True)
class StoredFile:
    path: str
    url: str
    size: int
    filename: str


def ensure_storage() -> None:
    os.makedirs(MEDIA_DIR, exist_ok=True)


def _validate_extension(media_type: str, filename: str) -> str:
    _, ext = os.path.splitext(filename.lower())
    if media_type == "image" and ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValueError("Unsupported image format. Use JPG/PNG/GIF/BMP/WEBP.")
    if media_type == "video" and ext not in ALLOWED_VIDEO_EXTENSIONS:
        raise ValueError("Unsupported video format. Use MP4/AVI/MOV/MKV/WEBM.")
    return ext


def public_url(path: str) -> str:
    relative = "/" + path.replace("\\", "/").lstrip("/")
    return f"{PUBLIC_BASE_URL}{relative}" if PUBLIC_BASE_URL else relative


def save_bytes(content: bytes, filename: str, media_type: str) -> StoredFile:
    """Store raw upload bytes under the media directory and return where they can be fetched."""
    ensure_storage()
    if not content:
        raise ValueError("Empty file cannot be uploaded.")
    filename = os.path.basename((filename or "upload.bin").replace("\\", "/").strip()) or "upload.bin"
    ext = _validate_extension(media_type, filename)
    size = len(content)
    if media_type == "image" and size > MAX_IMAGE_BYTES:
        raise ValueError(f"Image exceeds the {MAX_IMAGE_BYTES // (1024 * 1024)} MB limit.")
    if media_type == "video" and size > MAX_VIDEO_BYTES:
        raise ValueError(f"Video exceeds the {MAX_VIDEO_BYTES // (1024 * 1024)} MB limit.")
    safe_name, _ = os.path.splitext(filename)
    safe_name = "".join(ch for ch in safe_name if ch.isalnum() or ch in {"-", "_", " "}).strip() or "media"
    stamped_filename = f"{safe_name}-{int(time.time() * 1000)}{ext}"
    path = os.path.join(MEDIA_DIR, stamped_filename)
    with open(path, "wb") as f:
        f.write(content)
    return StoredFile(
        path=path.replace("\\", "/"),
        url=public_url(f"storage/media/{stamped_filename}"),
        size=size,
        filename=filename,
    )


def discard(stored: StoredFile) -> None:
    """Remove a stored upload that never made it into the catalog."""
    try:
        os.remove(stored.path)
    except FileNotFoundError:
        pass

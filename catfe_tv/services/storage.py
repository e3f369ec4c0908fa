import base64
import binascii
import logging
import os
import re
import time
import uuid

logger = logging.getLogger(__name__)

STORAGE_DIR = os.getenv("CATFE_STORAGE_DIR", "storage")
PHOTO_DIR = os.path.join(STORAGE_DIR, "photos")
MAX_PHOTO_BYTES = int(os.getenv("CATFE_MAX_PHOTO_BYTES", str(10 * 1024 * 1024)))
MIN_PHOTO_BYTES = 1024
MIN_BASE64_CHARS = 1000
PHOTO_TYPES = {"happy_tails", "snap_purr"}

_DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")
_SIGNATURES = (
    (b"\xff\xd8\xff", ".jpg"),
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"GIF8", ".gif"),
)


def ensure_storage() -> None:
    os.makedirs(STORAGE_DIR, exist_ok=True)
    for photo_type in PHOTO_TYPES:
        os.makedirs(os.path.join(PHOTO_DIR, photo_type), exist_ok=True)


def _guess_extension(content: bytes) -> str:
    for signature, ext in _SIGNATURES:
        if content.startswith(signature):
            return ext
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return ".webp"
    return ".jpg"


def decode_photo(photo_base64: str) -> bytes:
    data = _DATA_URL_PREFIX.sub("", (photo_base64 or "").strip())
    if len(data) < MIN_BASE64_CHARS:
        raise ValueError("Invalid photo data")
    # base64 grows data by 4/3, reject before decoding
    if len(data) * 3 // 4 > MAX_PHOTO_BYTES:
        raise ValueError(f"Photo is too large (max {MAX_PHOTO_BYTES // (1024 * 1024)} MB)")
    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid photo data") from exc
    if len(content) < MIN_PHOTO_BYTES:
        raise ValueError("Photo is too small")
    if len(content) > MAX_PHOTO_BYTES:
        raise ValueError(f"Photo is too large (max {MAX_PHOTO_BYTES // (1024 * 1024)} MB)")
    return content


def save_photo(photo_base64: str, photo_type: str) -> tuple[str, int]:
    """Store a submitted photo and return its public path and size."""
    if photo_type not in PHOTO_TYPES:
        raise ValueError("Unsupported photo type. Use happy_tails or snap_purr.")
    content = decode_photo(photo_base64)
    ensure_storage()
    filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{_guess_extension(content)}"
    path = os.path.join(PHOTO_DIR, photo_type, filename)
    with open(path, "wb") as f:
        f.write(content)
    logger.info("Stored %s photo %s (%d bytes)", photo_type, filename, len(content))
    return f"/storage/photos/{photo_type}/{filename}", len(content)


def delete_photo(public_path: str | None) -> None:
    prefix = "/storage/"
    if not public_path or not public_path.startswith(prefix):
        return
    relative = public_path[len(prefix):]
    path = os.path.normpath(os.path.join(STORAGE_DIR, relative))
    if not path.startswith(os.path.normpath(STORAGE_DIR)):
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove photo file %s: %s", path, exc)

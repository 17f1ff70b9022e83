"""Local-disk media storage for chat images and stickers."""
import logging
import uuid
from pathlib import Path
from typing import Optional, Set, Tuple

from fastapi import UploadFile

from app.config import settings
from app.core.exceptions import UploadError

# Setup logging
logger = logging.getLogger(__name__)

# ============================================
# FILE TYPE DEFINITIONS WITH MIME VALIDATION
# ============================================

# Magic bytes signatures for file type validation
MAGIC_BYTES = {
    # JPEG: FFD8FF
    "jpeg": [b"\xff\xd8\xff"],
    # PNG: 89504E47
    "png": [b"\x89PNG\r\n\x1a\n"],
    # GIF: GIF87a or GIF89a
    "gif": [b"GIF87a", b"GIF89a"],
    # WEBP: RIFF....WEBP (checked separately below)
    "webp": [b"RIFF"],
}

# Extension to magic type mapping
EXTENSION_TO_TYPE = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".gif": "gif",
    ".webp": "webp",
}

ALLOWED_IMAGE_EXTENSIONS: Set[str] = set(EXTENSION_TO_TYPE)

# Upload kinds -> folder (relative to UPLOAD_DIR)
UPLOAD_PATHS = {
    "chat_image": "chat/images",
    "sticker": "chat/stickers",
}


# ============================================
# SECURITY VALIDATION FUNCTIONS
# ============================================

def validate_magic_bytes(file_content: bytes, expected_type: str) -> bool:
    """
    Validate file content by checking magic bytes (file signature).

    Args:
        file_content: First few bytes of the file
        expected_type: Expected file type (jpeg, png, gif, webp)

    Returns:
        True if magic bytes match expected type
    """
    if expected_type not in MAGIC_BYTES:
        return False

    if expected_type == "webp":
        return file_content.startswith(b"RIFF") and file_content[8:12] == b"WEBP"

    return any(file_content.startswith(signature) for signature in MAGIC_BYTES[expected_type])


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal and other attacks.

    Returns:
        Sanitized filename (only alphanumeric, dash, underscore, and dot)
    """
    if not filename:
        return "unnamed"

    # Get only the basename (remove any path components)
    basename = Path(filename).name

    safe_chars = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_.")
    sanitized = "".join(c if c in safe_chars else "_" for c in basename)

    # Ensure it doesn't start with a dot (hidden file)
    sanitized = sanitized.lstrip(".")

    return sanitized if sanitized else "unnamed"


def get_file_extension(filename: str) -> str:
    """Safely get file extension in lowercase."""
    if not filename:
        return ""
    return Path(filename).suffix.lower()


# ============================================
# MAIN VALIDATION FUNCTION
# ============================================

def validate_image(file_content: bytes, filename: str, max_size_bytes: Optional[int] = None) -> str:
    """
    Validate an image upload.

    Returns:
        The lower-case file extension

    Raises:
        UploadError: If validation fails
    """
    file_ext = get_file_extension(sanitize_filename(filename))
    if file_ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise UploadError(
            f"File type not allowed. Accepted formats: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}"
        )

    if len(file_content) == 0:
        raise UploadError("Empty files are not allowed")

    max_size = max_size_bytes or settings.MAX_UPLOAD_SIZE
    if len(file_content) > max_size:
        raise UploadError(f"File too large. Maximum: {max_size / (1024 * 1024):.1f}MB")

    expected_type = EXTENSION_TO_TYPE[file_ext]
    if not validate_magic_bytes(file_content, expected_type):
        logger.warning(f"Magic bytes mismatch - filename: {filename}, expected_type: {expected_type}")
        raise UploadError("File content does not match its extension")

    return file_ext


# ============================================
# FILE STORAGE FUNCTIONS
# ============================================

def get_file_url(file_path: str) -> str:
    """Public URL for a stored path like /uploads/chat/images/<uuid>.png"""
    return f"{settings.MEDIA_BASE_URL.rstrip('/')}{file_path}"


def store_media(file_content: bytes, filename: str, kind: str) -> str:
    """
    Validate and save media to local storage.

    Args:
        file_content: Raw bytes of the upload
        filename: Original client filename (used for the extension only)
        kind: Upload kind, one of UPLOAD_PATHS

    Returns:
        Publicly fetchable URL of the stored file

    Raises:
        UploadError: If validation or save fails
    """
    if kind not in UPLOAD_PATHS:
        raise UploadError(f"Invalid upload kind: {kind}")

    file_ext = validate_image(file_content, filename)

    subfolder = UPLOAD_PATHS[kind]
    upload_path = Path(settings.UPLOAD_DIR) / subfolder
    unique_filename = f"{uuid.uuid4()}{file_ext}"

    try:
        upload_path.mkdir(parents=True, exist_ok=True)
        with open(upload_path / unique_filename, "wb") as f:
            f.write(file_content)
    except OSError as e:
        logger.error(f"Failed to save file: {e}")
        raise UploadError("Could not store the file. Please try again.") from e

    logger.info(f"File saved: kind={kind}, size={len(file_content)} bytes, name={unique_filename}")
    return get_file_url(f"/uploads/{subfolder}/{unique_filename}")


def delete_media(url: str) -> bool:
    """
    Remove a file written by store_media, given the URL it returned.

    Used to clean up after a send or sticker insert fails once the upload
    has already been stored.

    Returns:
        True if a file was deleted, False otherwise
    """
    prefix = get_file_url("/uploads/")
    if not url or not url.startswith(prefix):
        logger.warning(f"Not a stored media URL, nothing deleted: {url}")
        return False

    upload_dir = Path(settings.UPLOAD_DIR).resolve()
    full_path = (upload_dir / url[len(prefix):]).resolve()
    if upload_dir not in full_path.parents:
        logger.warning(f"Path traversal blocked: {url} -> {full_path}")
        return False

    try:
        full_path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"Error deleting file {full_path}: {e}")
        return False

    logger.info(f"File deleted: {full_path}")
    return True


def read_upload_file(upload_file: UploadFile) -> Tuple[bytes, str]:
    """Read a FastAPI UploadFile into memory. Returns (content, original filename)."""
    if not upload_file or not upload_file.filename:
        raise UploadError("No file provided")

    upload_file.file.seek(0)
    return upload_file.file.read(), upload_file.filename

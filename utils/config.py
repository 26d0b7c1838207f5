import os
from dataclasses import dataclass, field
from typing import Optional


API_URL = os.getenv("MAIL_RELAY_API_URL", "http://localhost:3000")
SENDER_DOMAIN = os.getenv("MAIL_RELAY_DOMAIN", "0541234.com")
AUTH_HEADER = "x-auth-token"


@dataclass
class RelaySettings:
    api_url: str = field(default_factory=lambda: API_URL)
    timeout: float = 60.0
    auth_header: str = AUTH_HEADER


class Endpoints:
    SEND_EMAIL = "/api/send-email"
    UPLOAD_LARGE_FILE = "/api/upload-large-file"
    RECIPIENTS_SEARCH = "/api/recipients/search"
    RECIPIENTS_UPDATE = "/api/recipients/update"
    RECIPIENTS_DELETE = "/api/recipients/delete"
    ALLOWED_EMAILS = "/api/allowed-emails"


MB = 1024 * 1024

MAX_FILES = int(os.getenv("MAIL_RELAY_MAX_FILES", "10"))
MAX_FILE_SIZE_MB = 100
MAX_FILE_SIZE = MAX_FILE_SIZE_MB * MB

# Anything bigger goes to external storage and travels as a link
LARGE_FILE_THRESHOLD = 7 * MB

UPLOAD_CHUNK_SIZE = 64 * 1024

MIN_SEARCH_LENGTH = 2
SEARCH_DEBOUNCE_SECONDS = 0.3
SUCCESS_MESSAGE_SECONDS = 2.0

RECIPIENT_DELIMITERS = (",", " ")

ALLOWED_MIME_TYPES = {
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    # Images
    "image/jpeg", "image/png", "image/gif",
    # Audio
    "audio/mpeg", "audio/wav", "audio/ogg", "audio/mp3", "audio/mp4", "audio/webm",
    # Video
    "video/mp4", "video/webm", "video/quicktime",
}


def is_large_file(size_bytes: int) -> bool:
    return size_bytes > LARGE_FILE_THRESHOLD


def validate_attachment_size(size_bytes: int, max_bytes: int = MAX_FILE_SIZE) -> tuple[bool, Optional[str]]:
    """
    Validate attachment size.

    Returns:
        Tuple of (is_valid, error_message or None)
    """
    if size_bytes > max_bytes:
        size_mb = size_bytes / MB
        return False, f"File size ({size_mb:.1f}MB) exceeds limit ({max_bytes // MB}MB)"

    return True, None


def validate_attachment_type(mime_type: Optional[str]) -> tuple[bool, Optional[str]]:
    """
    Validate attachment MIME type against the allow-list.

    Returns:
        Tuple of (is_valid, error_message or None)
    """
    if not mime_type:
        return False, "File type could not be determined"

    if mime_type.lower() not in ALLOWED_MIME_TYPES:
        return False, f"File type '{mime_type}' not allowed"

    return True, None

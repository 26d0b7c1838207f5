import re
from typing import Optional

from utils.config import RECIPIENT_DELIMITERS


# RFC 5322 simplified email regex pattern
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

# Local part only, used for sender prefixes
PREFIX_PATTERN = re.compile(r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]{1,64}$")


def is_valid_email(email: str) -> bool:
    """
    Validate email address format.

    Args:
        email: Email address to validate

    Returns:
        True if valid format, False otherwise
    """
    if not email or not isinstance(email, str):
        return False

    email = email.strip()

    # Basic length checks
    if len(email) < 3 or len(email) > 254:
        return False

    # Check for exactly one @
    if email.count("@") != 1:
        return False

    local, domain = email.rsplit("@", 1)

    # Local part length (max 64 chars)
    if len(local) > 64 or len(local) < 1:
        return False

    # Domain length
    if len(domain) < 3:
        return False

    return bool(EMAIL_PATTERN.match(email))


def is_valid_prefix(prefix: str) -> bool:
    if not prefix or not isinstance(prefix, str):
        return False
    return bool(PREFIX_PATTERN.match(prefix))


def validate_email_list(emails: list[str]) -> tuple[list[str], list[str]]:
    """
    Split addresses into valid and invalid ones.

    Args:
        emails: Addresses to check

    Returns:
        Tuple of (valid_emails, invalid_emails)
    """
    valid = []
    invalid = []

    for email in emails:
        if is_valid_email(email):
            valid.append(email)
        else:
            invalid.append(email)

    return valid, invalid


def format_invalid_emails(invalid: list[str]) -> Optional[str]:
    if not invalid:
        return None
    return f"Invalid email(s): {', '.join(invalid)}"


def parse_email_input(email_string: str) -> tuple[list[str], Optional[str]]:
    """
    Parse and validate email input string.

    Args:
        email_string: User input with comma-separated emails

    Returns:
        Tuple of (valid_emails, error_message or None)
    """
    if not email_string or not email_string.strip():
        return [], None

    parts = [p.strip() for p in sanitize_email_input(email_string).split(",")]
    valid, invalid = validate_email_list([p for p in parts if p])

    return valid, format_invalid_emails(invalid)


def split_confirmed_token(buffer: str) -> tuple[Optional[str], str]:
    """
    Detect a delimiter-confirmed address in the raw recipient input.

    When the buffer ends in a delimiter (comma or space) every trailing
    delimiter is consumed and the token, trimmed of delimiters on both
    ends, is returned for confirmation.

    Returns:
        Tuple of (token or None, remaining buffer)
    """
    if not buffer or buffer[-1] not in RECIPIENT_DELIMITERS:
        return None, buffer

    delimiters = "".join(RECIPIENT_DELIMITERS)
    remainder = buffer.rstrip(delimiters)
    token = remainder.strip(delimiters)
    if not token:
        return None, ""

    return token, remainder


def sanitize_email_input(email_string: str) -> str:
    """
    Clean up email input string.

    Handles various separators and whitespace.
    """
    # Normalize common separators to comma
    normalized = email_string.replace(";", ",").replace("\n", ",").replace("\t", ",")

    # Remove multiple commas and extra whitespace
    parts = [p.strip() for p in normalized.split(",") if p.strip()]

    return ", ".join(parts)

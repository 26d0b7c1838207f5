"""
Recipient set for the composition form.

Keeps the confirmed destination addresses unique and valid, and turns raw
keystrokes (delimiters, Enter) into confirmations.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional

from utils.validators import (
    format_invalid_emails,
    is_valid_email,
    parse_email_input,
    split_confirmed_token,
    validate_email_list,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Recipient:
    email: str
    display_name: Optional[str] = None

    @property
    def key(self) -> str:
        return self.email.strip().lower()

    def label(self) -> str:
        if self.display_name:
            return f"{self.display_name} <{self.email}>"
        return self.email

    @classmethod
    def from_dict(cls, data: dict) -> "Recipient":
        return cls(email=data["email"], display_name=data.get("name") or None)


class RejectedReason(str, Enum):
    INVALID_SYNTAX = "invalid_syntax"
    DUPLICATE = "duplicate"


@dataclass(slots=True)
class AddResult:
    recipient: Optional[Recipient] = None
    reason: Optional[RejectedReason] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(slots=True)
class ValidationOutcome:
    invalid: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.invalid

    @property
    def message(self) -> Optional[str]:
        return format_invalid_emails(self.invalid)


class RecipientSet:

    def __init__(self, on_query: Optional[Callable[[str], None]] = None):
        """
        Args:
            on_query: Called with the current input buffer whenever it
                changes, so directory suggestions can follow the typing
        """
        self._recipients: list[Recipient] = []
        self.on_query = on_query
        self.error: Optional[str] = None

    def __len__(self) -> int:
        return len(self._recipients)

    def __iter__(self) -> Iterator[Recipient]:
        return iter(list(self._recipients))

    def __contains__(self, email: str) -> bool:
        key = email.strip().lower()
        return any(r.key == key for r in self._recipients)

    def emails(self) -> list[str]:
        return [r.email for r in self._recipients]

    def to_field(self) -> str:
        return ",".join(self.emails())

    def add(self, candidate: str, display_name: Optional[str] = None) -> AddResult:
        email = (candidate or "").strip()

        if not is_valid_email(email):
            self.error = f"Invalid email address: {email}" if email else "Email address is empty"
            return AddResult(reason=RejectedReason.INVALID_SYNTAX, message=self.error)

        if email in self:
            self.error = f"{email} is already a recipient"
            return AddResult(reason=RejectedReason.DUPLICATE, message=self.error)

        recipient = Recipient(email=email, display_name=display_name)
        self._recipients.append(recipient)
        self.error = None
        logger.debug("Recipient added: %s", email)
        self._notify("")
        return AddResult(recipient=recipient)

    def remove(self, email: str) -> None:
        key = email.strip().lower()
        self._recipients = [r for r in self._recipients if r.key != key]

    def clear(self) -> None:
        self._recipients = []
        self.error = None

    def select_suggestion(self, recipient: Recipient) -> AddResult:
        return self.add(recipient.email, recipient.display_name)

    def handle_input(self, buffer: str) -> tuple[str, Optional[AddResult]]:
        """
        Process a change of the raw recipient input.

        A trailing comma or space confirms the token before it.

        Returns:
            Tuple of (buffer to show, AddResult when a confirmation happened)
        """
        token, remainder = split_confirmed_token(buffer)

        if token is None:
            self._notify(remainder)
            return remainder, None

        result = self.add(token)
        if result.ok:
            return "", result

        # Keep the rejected token so the user can fix it
        self._notify(remainder)
        return remainder, result

    def handle_enter(self, buffer: str) -> tuple[str, Optional[AddResult]]:
        candidate = (buffer or "").strip()
        if not is_valid_email(candidate):
            return buffer, None

        result = self.add(candidate)
        return ("" if result.ok else buffer), result

    def paste(self, text: str) -> list[AddResult]:
        """Add every address of a pasted comma/semicolon/newline separated list."""
        valid, invalid_message = parse_email_input(text)
        results = [self.add(email) for email in valid]
        if invalid_message:
            self.error = invalid_message
        return results

    def validate_all(self) -> ValidationOutcome:
        _, invalid = validate_email_list(self.emails())
        return ValidationOutcome(invalid=invalid)

    def _notify(self, buffer: str) -> None:
        if self.on_query is not None:
            self.on_query(buffer)

from dataclasses import dataclass, field
from typing import Optional

from mail_relay.attachments import AttachmentManager
from mail_relay.recipients import RecipientSet


def filter_prefixes(allowed: list[str], query: str) -> list[str]:
    """Allowed sender prefixes containing query, case-insensitive."""
    query = (query or "").strip().lower()
    if not query:
        return list(allowed)
    return [prefix for prefix in allowed if query in prefix.lower()]


@dataclass
class FormState:
    recipients: RecipientSet = field(default_factory=RecipientSet)
    attachments: AttachmentManager = field(default_factory=AttachmentManager)
    sender_prefix: str = ""
    recipient_input: str = ""
    subject: str = ""
    message: str = ""
    error: Optional[str] = None
    success_message: Optional[str] = None

    def sender_address(self, domain: str) -> Optional[str]:
        if not self.sender_prefix:
            return None
        return f"{self.sender_prefix}@{domain}"

    def set_error(self, message: Optional[str]) -> None:
        self.error = message
        if message:
            self.success_message = None

    def clear_error(self) -> None:
        self.error = None

    def reset(self) -> None:
        """Back to the empty form; the success message is left alone."""
        self.recipients.clear()
        self.attachments.clear()
        self.sender_prefix = ""
        self.recipient_input = ""
        self.subject = ""
        self.message = ""
        self.error = None

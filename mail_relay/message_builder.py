import json
from dataclasses import dataclass, field
from typing import Optional

from mail_relay.attachments import Attachment, UploadTask
from utils.validators import is_valid_email


@dataclass(slots=True, frozen=True)
class HostedFile:
    filename: str
    link: str
    size_mb: float

    def to_dict(self) -> dict[str, str]:
        return {
            "filename": self.filename,
            "link": self.link,
            "size": f"{self.size_mb:.2f}",
        }


@dataclass(slots=True)
class OutboundMessage:
    data: dict[str, str] = field(default_factory=dict)
    files: list[tuple] = field(default_factory=list)


class MessageBuilder:

    __slots__ = ('domain',)

    def __init__(self, domain: str):
        """
        Initialize with the fixed sender domain.

        Args:
            domain: Domain appended to the sender prefix
        """
        self.domain = domain

    def sender_address(self, prefix: str) -> str:
        return f"{prefix}@{self.domain}"

    def build(
        self,
        sender_prefix: str,
        recipients: list[str],
        subject: str,
        message: str,
        attachments: Optional[list[Attachment]] = None,
        hosted: Optional[list[tuple[Attachment, UploadTask]]] = None,
    ) -> OutboundMessage:
        """
        Build the multipart submission for the relay.

        Args:
            sender_prefix: Local part of the sender address
            recipients: Confirmed recipient addresses
            subject: Email subject line
            message: Email body
            attachments: Small attachments sent inline
            hosted: Large attachments with their finished upload tasks

        Returns:
            OutboundMessage with text fields and file parts
        """
        if not recipients:
            raise MessageBuilderError("At least one recipient required")

        sender = self.sender_address(sender_prefix)
        if not is_valid_email(sender):
            raise MessageBuilderError(f"Invalid sender address: {sender}")

        drive_links = []
        for attachment, task in hosted or []:
            if not task.result_link:
                raise MessageBuilderError(f"Upload not finished: {attachment.name}")
            drive_links.append(HostedFile(attachment.name, task.result_link, attachment.size_mb))

        outbound = OutboundMessage(
            data={
                "from": sender,
                "to": ",".join(recipients),
                "subject": subject or "",
                "message": message or "",
                "driveLinks": json.dumps([f.to_dict() for f in drive_links]),
            }
        )

        for attachment in attachments or []:
            self._attach_file(outbound, attachment)

        return outbound

    def _attach_file(self, outbound: OutboundMessage, attachment: Attachment) -> None:
        if attachment.is_large:
            raise MessageBuilderError(f"{attachment.name} is too large to send inline")

        outbound.files.append(
            ("files", (attachment.name, attachment.content, attachment.mime_type))
        )


class MessageBuilderError(Exception):
    pass

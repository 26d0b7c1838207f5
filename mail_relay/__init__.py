from mail_relay.api_client import RelayAPIClient, RelayAPIError
from mail_relay.attachments import (
    Attachment,
    AttachmentManager,
    ClassifyResult,
    RejectedFileReason,
    UploadTask,
    relay_uploader,
)
from mail_relay.credentials import CredentialProvider
from mail_relay.directory import DebouncedSearch, RecipientDirectory, highlight_segments
from mail_relay.form import FormState, filter_prefixes
from mail_relay.message_builder import MessageBuilder, MessageBuilderError
from mail_relay.recipients import AddResult, Recipient, RecipientSet, RejectedReason
from mail_relay.submission import (
    BlockedReason,
    SubmissionAssembler,
    SubmissionResult,
    SubmissionState,
)

__all__ = [
    "AddResult",
    "Attachment",
    "AttachmentManager",
    "BlockedReason",
    "ClassifyResult",
    "CredentialProvider",
    "DebouncedSearch",
    "FormState",
    "MessageBuilder",
    "MessageBuilderError",
    "Recipient",
    "RecipientDirectory",
    "RecipientSet",
    "RejectedFileReason",
    "RejectedReason",
    "RelayAPIClient",
    "RelayAPIError",
    "SubmissionAssembler",
    "SubmissionResult",
    "SubmissionState",
    "UploadTask",
    "filter_prefixes",
    "highlight_segments",
    "relay_uploader",
]

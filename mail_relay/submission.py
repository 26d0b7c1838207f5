"""
Final submission of the composed email.

One attempt runs IDLE -> VALIDATING -> BLOCKED or SENDING ->
SUCCEEDED or FAILED and then returns to IDLE. A blocked attempt never
touches the network; a failed one keeps everything the user entered.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from mail_relay.api_client import RelayAPIClient, RelayAPIError
from mail_relay.form import FormState
from mail_relay.message_builder import MessageBuilder, MessageBuilderError
from utils.config import SENDER_DOMAIN, SUCCESS_MESSAGE_SECONDS
from utils.validators import is_valid_prefix

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Email sent successfully!"
GENERIC_FAILURE = "Failed to send email"


class SubmissionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BLOCKED = "blocked"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BlockedReason(str, Enum):
    NO_RECIPIENTS = "no_recipients"
    INVALID_RECIPIENTS = "invalid_recipients"
    UPLOADS_PENDING = "uploads_pending"
    NO_SENDER = "no_sender"
    IN_PROGRESS = "in_progress"


@dataclass(slots=True)
class SubmissionResult:
    state: SubmissionState
    reason: Optional[BlockedReason] = None
    message: Optional[str] = None
    invalid_recipients: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is SubmissionState.SUCCEEDED


class SubmissionAssembler:

    def __init__(
        self,
        client: RelayAPIClient,
        domain: str = SENDER_DOMAIN,
        success_message_seconds: float = SUCCESS_MESSAGE_SECONDS,
    ):
        self.client = client
        self.builder = MessageBuilder(domain)
        self.success_message_seconds = success_message_seconds
        self.state = SubmissionState.IDLE
        self.last_result: Optional[SubmissionResult] = None
        self._clear_handle: Optional[asyncio.TimerHandle] = None

    async def submit(self, form: FormState) -> SubmissionResult:
        if self.state is not SubmissionState.IDLE:
            return SubmissionResult(
                state=SubmissionState.BLOCKED,
                reason=BlockedReason.IN_PROGRESS,
                message="A submission is already in progress",
            )

        self.state = SubmissionState.VALIDATING
        try:
            result = self._validate(form)
            if result is None:
                self.state = SubmissionState.SENDING
                result = await self._send(form)
            self.state = result.state
            self.last_result = result
            return result
        finally:
            self.state = SubmissionState.IDLE

    def _validate(self, form: FormState) -> Optional[SubmissionResult]:
        if not len(form.recipients):
            return self._blocked(form, BlockedReason.NO_RECIPIENTS, "At least one recipient is required")

        outcome = form.recipients.validate_all()
        if not outcome.ok:
            return self._blocked(
                form,
                BlockedReason.INVALID_RECIPIENTS,
                outcome.message,
                invalid=outcome.invalid,
            )

        if not form.attachments.is_submit_ready():
            pending = ", ".join(t.attachment_name for t in form.attachments.pending_uploads())
            return self._blocked(
                form,
                BlockedReason.UPLOADS_PENDING,
                f"Waiting for uploads to finish: {pending}",
            )

        if not is_valid_prefix(form.sender_prefix):
            return self._blocked(form, BlockedReason.NO_SENDER, "Choose a sender address")

        return None

    async def _send(self, form: FormState) -> SubmissionResult:
        try:
            outbound = self.builder.build(
                sender_prefix=form.sender_prefix,
                recipients=form.recipients.emails(),
                subject=form.subject,
                message=form.message,
                attachments=form.attachments.small_attachments(),
                hosted=form.attachments.hosted_attachments(),
            )
        except MessageBuilderError as e:
            return self._failed(form, str(e))

        try:
            response = await self.client.send_email(outbound.data, outbound.files)
        except RelayAPIError as e:
            logger.error("Error sending email: %s", e)
            return self._failed(form, e.server_message or GENERIC_FAILURE)

        if not response.get("success"):
            return self._failed(form, response.get("error") or GENERIC_FAILURE)

        logger.info(
            "Email sent to %d recipient(s) with %d inline and %d hosted attachment(s)",
            len(form.recipients),
            len(outbound.files),
            len(form.attachments.hosted_attachments()),
        )
        form.reset()
        form.success_message = SUCCESS_MESSAGE
        self._schedule_success_clear(form)
        return SubmissionResult(state=SubmissionState.SUCCEEDED, message=SUCCESS_MESSAGE)

    def _blocked(
        self,
        form: FormState,
        reason: BlockedReason,
        message: str,
        invalid: Optional[list[str]] = None,
    ) -> SubmissionResult:
        logger.warning("Submission blocked (%s): %s", reason.value, message)
        form.set_error(message)
        return SubmissionResult(
            state=SubmissionState.BLOCKED,
            reason=reason,
            message=message,
            invalid_recipients=invalid or [],
        )

    def _failed(self, form: FormState, message: str) -> SubmissionResult:
        form.set_error(message)
        return SubmissionResult(state=SubmissionState.FAILED, message=message)

    def _schedule_success_clear(self, form: FormState) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()

        def clear() -> None:
            if form.success_message == SUCCESS_MESSAGE:
                form.success_message = None
            self._clear_handle = None

        loop = asyncio.get_running_loop()
        self._clear_handle = loop.call_later(self.success_message_seconds, clear)

"""
Attachment list and large-file pre-upload orchestration.

Small files travel inline with the final submission. Files above
LARGE_FILE_THRESHOLD are uploaded to external storage first and replaced
by a link; each of those gets an UploadTask tracking its progress.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union
from uuid import uuid4

from utils.config import (
    MAX_FILE_SIZE,
    MAX_FILES,
    MB,
    is_large_file,
    validate_attachment_size,
    validate_attachment_type,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@lru_cache(maxsize=128)
def _guess_mime_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


@dataclass(slots=True)
class Attachment:
    name: str
    size_bytes: int
    mime_type: str
    content: bytes = field(default=b"", repr=False)
    attachment_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def is_large(self) -> bool:
        return is_large_file(self.size_bytes)

    @property
    def size_mb(self) -> float:
        return self.size_bytes / MB

    @classmethod
    def from_path(cls, file_path: Union[str, Path], mime_type: Optional[str] = None) -> "Attachment":
        path = Path(file_path)
        content = path.read_bytes()
        return cls(
            name=path.name,
            size_bytes=len(content),
            mime_type=mime_type or _guess_mime_type(path.name),
            content=content,
        )

    @classmethod
    def from_upload(cls, filename: str, content: bytes, mime_type: Optional[str] = None) -> "Attachment":
        return cls(
            name=filename,
            size_bytes=len(content),
            mime_type=mime_type or _guess_mime_type(filename),
            content=content,
        )


@dataclass(slots=True)
class UploadTask:
    attachment_id: str
    attachment_name: str
    progress_percent: int = 0
    result_link: Optional[str] = None
    failed: bool = False
    error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.progress_percent == 100 and bool(self.result_link)


class RejectedFileReason(str, Enum):
    TOO_MANY_FILES = "too_many_files"
    UNSUPPORTED_TYPE = "unsupported_type"
    FILE_TOO_LARGE = "file_too_large"


@dataclass(slots=True)
class ClassifyResult:
    attachments: list[Attachment] = field(default_factory=list)
    reason: Optional[RejectedFileReason] = None
    filename: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


Uploader = Callable[[Attachment, ProgressCallback], Awaitable[str]]


def relay_uploader(client) -> Uploader:
    """Adapt a RelayAPIClient to the uploader signature."""
    async def upload(attachment: Attachment, on_progress: ProgressCallback) -> str:
        return await client.upload_large_file(
            attachment.name,
            attachment.content,
            attachment.mime_type,
            on_progress=on_progress,
        )
    return upload


class AttachmentManager:

    def __init__(
        self,
        uploader: Optional[Uploader] = None,
        max_files: int = MAX_FILES,
        max_file_size: int = MAX_FILE_SIZE,
        max_concurrent_uploads: Optional[int] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            uploader: Coroutine function doing the actual transfer of a
                large file; gets the attachment and a (sent, total)
                progress callback and returns the hosted link
            max_files: Attachment count limit
            max_file_size: Per-file size limit in bytes
            max_concurrent_uploads: Optional cap on parallel transfers
            on_change: Called after every state change (progress included)
        """
        self.uploader = uploader
        self.max_files = max_files
        self.max_file_size = max_file_size
        self.on_change = on_change
        self.error: Optional[str] = None
        self.upload_errors: dict[str, str] = {}
        self._attachments: list[Attachment] = []
        self._tasks: dict[str, UploadTask] = {}
        self._handles: dict[str, asyncio.Task] = {}
        self.max_concurrent_uploads = max_concurrent_uploads
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None

    def __len__(self) -> int:
        return len(self._attachments)

    @property
    def attachments(self) -> list[Attachment]:
        return list(self._attachments)

    @property
    def tasks(self) -> dict[str, UploadTask]:
        return dict(self._tasks)

    def task_for(self, name: str) -> Optional[UploadTask]:
        for task in self._tasks.values():
            if task.attachment_name == name:
                return task
        return None

    def small_attachments(self) -> list[Attachment]:
        return [a for a in self._attachments if not a.is_large]

    def large_attachments(self) -> list[Attachment]:
        return [a for a in self._attachments if a.is_large]

    def hosted_attachments(self) -> list[tuple[Attachment, UploadTask]]:
        hosted = []
        for attachment in self.large_attachments():
            task = self._tasks.get(attachment.attachment_id)
            if task is not None and task.is_complete:
                hosted.append((attachment, task))
        return hosted

    def pending_uploads(self) -> list[UploadTask]:
        pending = []
        for attachment in self.large_attachments():
            task = self._tasks.get(attachment.attachment_id)
            if task is None or not task.is_complete:
                pending.append(task or UploadTask(attachment.attachment_id, attachment.name))
        return pending

    def classify(self, files: list[Attachment]) -> ClassifyResult:
        """
        Validate a batch of newly selected files and append it.

        Checks run in a fixed order and stop at the first failure:
        count limit, MIME allow-list, per-file size. A rejected batch
        adds nothing.
        """
        if len(self._attachments) + len(files) > self.max_files:
            return self._reject(
                RejectedFileReason.TOO_MANY_FILES,
                None,
                f"Cannot attach more than {self.max_files} files",
            )

        for attachment in files:
            type_valid, type_error = validate_attachment_type(attachment.mime_type)
            if not type_valid:
                return self._reject(
                    RejectedFileReason.UNSUPPORTED_TYPE,
                    attachment.name,
                    f"Unsupported file type: {attachment.name} ({type_error})",
                )

        for attachment in files:
            size_valid, size_error = validate_attachment_size(attachment.size_bytes, self.max_file_size)
            if not size_valid:
                return self._reject(
                    RejectedFileReason.FILE_TOO_LARGE,
                    attachment.name,
                    f"{attachment.name}: {size_error}",
                )

        self._attachments.extend(files)
        self.error = None
        self._changed()
        return ClassifyResult(attachments=list(files))

    def add_files(self, files: list[Attachment]) -> ClassifyResult:
        """Classify a batch and start uploads for its large files."""
        if self.uploader is None and any(f.is_large for f in files):
            raise RuntimeError("No uploader configured for large attachments")

        result = self.classify(files)
        if result.ok:
            self.begin_uploads_if_needed(result.attachments)
        return result

    def begin_uploads_if_needed(self, attachments: list[Attachment]) -> None:
        """
        Start one background upload per large attachment.

        Must be called from inside a running event loop.
        """
        for attachment in attachments:
            if not attachment.is_large or attachment.attachment_id in self._tasks:
                continue
            if self.uploader is None:
                raise RuntimeError("No uploader configured for large attachments")

            self._tasks[attachment.attachment_id] = UploadTask(
                attachment_id=attachment.attachment_id,
                attachment_name=attachment.name,
            )
            self._handles[attachment.attachment_id] = asyncio.create_task(
                self._run_upload(attachment),
                name=f"upload:{attachment.name}",
            )
            logger.info("Upload started: %s (%.1fMB)", attachment.name, attachment.size_mb)
        self._changed()

    def is_submit_ready(self) -> bool:
        return not self.pending_uploads()

    def remove_attachment(self, key: str) -> None:
        """
        Remove an attachment by file name or attachment id.

        Its upload task is dropped whatever its state and an in-flight
        transfer is cancelled.
        """
        for attachment in self._attachments:
            if key in (attachment.name, attachment.attachment_id):
                break
        else:
            return

        self._attachments.remove(attachment)
        self._tasks.pop(attachment.attachment_id, None)
        handle = self._handles.pop(attachment.attachment_id, None)
        if handle is not None and not handle.done():
            handle.cancel()
            logger.info("Upload cancelled: %s", attachment.name)
        self._changed()

    async def wait_for_uploads(self) -> None:
        handles = list(self._handles.values())
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)

    def clear(self) -> None:
        for handle in self._handles.values():
            if not handle.done():
                handle.cancel()
        self._handles.clear()
        self._tasks.clear()
        self._attachments.clear()
        self.upload_errors.clear()
        self.error = None
        self._changed()

    async def _run_upload(self, attachment: Attachment) -> None:
        attachment_id = attachment.attachment_id

        def on_progress(sent: int, total: int) -> None:
            self._record_progress(attachment_id, sent, total)

        try:
            semaphore = self._upload_semaphore()
            if semaphore is not None:
                async with semaphore:
                    link = await self.uploader(attachment, on_progress)
            else:
                link = await self.uploader(attachment, on_progress)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._fail(attachment, e)
        else:
            self._complete(attachment, link)
        finally:
            if self._handles.get(attachment_id) is asyncio.current_task():
                del self._handles[attachment_id]

    def _upload_semaphore(self) -> Optional[asyncio.Semaphore]:
        """The concurrency cap for the running loop; each loop gets its own."""
        if not self.max_concurrent_uploads:
            return None

        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrent_uploads)
            self._semaphore_loop = loop
        return self._semaphore

    def _record_progress(self, attachment_id: str, sent: int, total: int) -> None:
        task = self._tasks.get(attachment_id)
        if task is None or task.failed:
            return

        percent = min(100, int(sent * 100 / total)) if total else 0
        if percent > task.progress_percent:
            task.progress_percent = percent
            self._changed()

    def _complete(self, attachment: Attachment, link: str) -> None:
        task = self._tasks.get(attachment.attachment_id)
        if task is None:
            return

        task.result_link = link
        task.progress_percent = 100
        logger.info("Upload finished: %s", attachment.name)
        self._changed()

    def _fail(self, attachment: Attachment, exc: Exception) -> None:
        task = self._tasks.pop(attachment.attachment_id, None)
        if task is None:
            return

        task.failed = True
        task.error = str(exc) or exc.__class__.__name__
        message = f"Upload failed for {attachment.name}: {task.error}"

        if attachment in self._attachments:
            self._attachments.remove(attachment)
        self.upload_errors[attachment.name] = message
        self.error = message
        logger.warning(message)
        self._changed()

    def _reject(self, reason: RejectedFileReason, filename: Optional[str], message: str) -> ClassifyResult:
        self.error = message
        logger.debug("Attachment batch rejected: %s", message)
        return ClassifyResult(reason=reason, filename=filename, message=message)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

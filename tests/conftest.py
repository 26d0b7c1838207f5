"""
Shared fixtures for mail relay tests.
"""

import asyncio

import httpx
import pytest

from mail_relay import Attachment, CredentialProvider, RelayAPIClient
from utils.config import MB, RelaySettings


API_URL = "http://relay.test"


# ============================================================================
# Attachment Fixtures
# ============================================================================

@pytest.fixture
def make_file():
    """
    Factory for attachments.

    Content is kept tiny; routing and limits only look at size_bytes.
    """
    def _make(name="report.pdf", size=1 * MB, mime_type="application/pdf"):
        return Attachment(
            name=name,
            size_bytes=size,
            mime_type=mime_type,
            content=f"content of {name}".encode(),
        )
    return _make


class FakeUploader:
    """Uploader whose transfers finish only when the test says so."""

    def __init__(self):
        self.calls = {}

    async def __call__(self, attachment, on_progress):
        future = asyncio.get_running_loop().create_future()
        self.calls[attachment.attachment_id] = (attachment, future, on_progress)
        return await future

    def _find(self, attachment):
        return self.calls[attachment.attachment_id]

    def progress(self, attachment, sent, total):
        self._find(attachment)[2](sent, total)

    def finish(self, attachment, link):
        self._find(attachment)[1].set_result(link)

    def fail(self, attachment, exc):
        self._find(attachment)[1].set_exception(exc)


@pytest.fixture
def uploader():
    return FakeUploader()


# ============================================================================
# HTTP Fixtures
# ============================================================================

@pytest.fixture
def make_client():
    """Factory for a RelayAPIClient talking to an httpx.MockTransport."""
    def _make(handler, token="test-token"):
        return RelayAPIClient(
            credentials=CredentialProvider(token=token),
            settings=RelaySettings(api_url=API_URL),
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture
def recorder():
    """Handler that records requests and answers from a path -> response map."""
    class Recorder:
        def __init__(self):
            self.requests = []
            self.responses = {}

        def __call__(self, request):
            self.requests.append(request)
            response = self.responses.get(request.url.path)
            if response is None:
                return httpx.Response(404, json={"error": "Not found"})
            if callable(response):
                return response(request)
            return response

    return Recorder()

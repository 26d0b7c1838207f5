"""
Lookup of previously used recipients on the relay's address book.
"""

import asyncio
import logging
from typing import Optional

from mail_relay.api_client import RelayAPIClient, RelayAPIError
from mail_relay.recipients import Recipient
from utils.config import MIN_SEARCH_LENGTH, SEARCH_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


def highlight_segments(text: str, query: str) -> list[tuple[str, bool]]:
    """
    Split text into (segment, is_match) pairs for every case-insensitive
    occurrence of query.
    """
    if not query or not query.strip():
        return [(text, False)]

    segments = []
    lower_text = text.lower()
    lower_query = query.lower()
    last = 0

    index = lower_text.find(lower_query)
    while index != -1:
        if index > last:
            segments.append((text[last:index], False))
        segments.append((text[index:index + len(query)], True))
        last = index + len(query)
        index = lower_text.find(lower_query, last)

    if last < len(text):
        segments.append((text[last:], False))

    return segments


class RecipientDirectory:

    def __init__(self, client: RelayAPIClient, min_length: int = MIN_SEARCH_LENGTH):
        self.client = client
        self.min_length = min_length
        self.suggestions: list[Recipient] = []
        self.is_open = False
        self.query = ""

    def close(self) -> None:
        self.is_open = False

    async def search(self, query: str) -> list[Recipient]:
        """
        Look up directory entries matching a partial address or name.

        Short queries clear the suggestions without a request. Without a
        credential nothing happens.
        """
        query = query or ""
        self.query = query

        if len(query) < self.min_length:
            self.suggestions = []
            self.is_open = False
            return []

        if not self.client.has_credentials:
            return []

        try:
            results = await self.client.search_recipients(query)
        except RelayAPIError as e:
            logger.error("Error searching recipients: %s", e)
            return []

        # A newer query may have started while this one was in flight
        if query != self.query:
            return results

        self.suggestions = results
        self.is_open = True
        return results

    async def rename(self, email: str, name: str) -> bool:
        if not self.client.has_credentials:
            return False

        try:
            await self.client.update_recipient(email, name)
        except RelayAPIError as e:
            logger.error("Error updating recipient %s: %s", email, e)
            return False

        for recipient in self.suggestions:
            if recipient.email == email:
                recipient.display_name = name or None
        return True

    async def delete(self, email: str) -> bool:
        if not self.client.has_credentials:
            return False

        try:
            deleted = await self.client.delete_recipient(email)
        except RelayAPIError as e:
            logger.error("Error deleting recipient %s: %s", email, e)
            return False

        if deleted:
            self.suggestions = [r for r in self.suggestions if r.email != email]
        return deleted


class DebouncedSearch:
    """Runs directory searches after the input has been quiet for a moment."""

    def __init__(self, directory: RecipientDirectory, delay: float = SEARCH_DEBOUNCE_SECONDS):
        self.directory = directory
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None

    def schedule(self, query: str) -> None:
        self.cancel()

        # Short queries clear immediately, no point waiting
        if len(query or "") < self.directory.min_length:
            self.directory.query = query or ""
            self.directory.suggestions = []
            self.directory.is_open = False
            return

        self._pending = asyncio.create_task(self._run(query))

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> None:
        if self._pending is not None:
            await asyncio.wait({self._pending})

    async def _run(self, query: str) -> None:
        await asyncio.sleep(self.delay)
        await self.directory.search(query)

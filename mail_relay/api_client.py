import logging
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from mail_relay.credentials import CredentialProvider
from mail_relay.recipients import Recipient
from utils.config import Endpoints, RelaySettings, UPLOAD_CHUNK_SIZE

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


def _error_text(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        return payload.get("error") or payload.get("message")
    return None


class RelayAPIClient:

    __slots__ = ('settings', 'credentials', '_transport', '_client')

    def __init__(
        self,
        credentials: Optional[CredentialProvider] = None,
        settings: Optional[RelaySettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or RelaySettings()
        self.credentials = credentials or CredentialProvider(header_name=self.settings.auth_header)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_url,
                timeout=self.settings.timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    @property
    def has_credentials(self) -> bool:
        return self.credentials.has_token

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RelayAPIError("Client is closed. Use 'async with' or call open() first.")
        return self._client

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = self.credentials.auth_headers()
        if extra:
            headers.update(extra)
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        headers = self._headers(kwargs.pop("headers", None))
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise RelayAPIError(f"Request timed out: {url}") from e
        except httpx.HTTPError as e:
            raise RelayAPIError(f"Connection failed: {str(e)}") from e

        payload = _json_or_empty(response)

        if response.is_error:
            server_message = _error_text(payload)
            raise RelayAPIError(
                server_message or f"Server returned HTTP {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
            )

        return payload

    async def send_email(self, data: dict[str, str], files: list[tuple]) -> dict:
        """
        Submit the composed email to the relay as one multipart request.

        Args:
            data: Text fields (from, to, subject, message, driveLinks)
            files: ("files", (filename, content, content_type)) parts

        Returns:
            dict with 'success' bool and optional 'error' text
        """
        # Text fields go as filename-less parts so the body is multipart
        # even when no file is attached
        parts = [(name, (None, value)) for name, value in data.items()]
        parts.extend(files)

        payload = await self._request("POST", Endpoints.SEND_EMAIL, files=parts)
        if not isinstance(payload, dict):
            return {"success": False, "error": "Unexpected response from mail relay"}
        return payload

    async def upload_large_file(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Upload one file to external storage ahead of the final submission.

        The encoded multipart body is streamed in chunks and ``on_progress``
        is called with (bytes_sent, total_bytes) as each chunk goes out.

        Returns:
            Link to the hosted file
        """
        request = self.client.build_request(
            "POST",
            Endpoints.UPLOAD_LARGE_FILE,
            files={"file": (filename, content, content_type)},
        )
        body = request.read()
        total = len(body)

        async def stream() -> AsyncIterator[bytes]:
            sent = 0
            for start in range(0, total, UPLOAD_CHUNK_SIZE):
                chunk = body[start:start + UPLOAD_CHUNK_SIZE]
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(sent, total)
                yield chunk

        payload = await self._request(
            "POST",
            Endpoints.UPLOAD_LARGE_FILE,
            content=stream(),
            headers={
                "Content-Type": request.headers["Content-Type"],
                "Content-Length": str(total),
            },
        )

        link = payload.get("link") if isinstance(payload, dict) else None
        if not link:
            raise RelayAPIError(_error_text(payload) or "Upload response did not include a link")

        logger.info("Uploaded %s (%d bytes)", filename, len(content))
        return link

    async def search_recipients(self, query: str) -> list[Recipient]:
        payload = await self._request("GET", Endpoints.RECIPIENTS_SEARCH, params={"query": query})
        recipients = payload.get("recipients") if isinstance(payload, dict) else None
        return [Recipient.from_dict(item) for item in recipients or [] if item.get("email")]

    async def update_recipient(self, email: str, name: str) -> bool:
        await self._request("POST", Endpoints.RECIPIENTS_UPDATE, json={"email": email, "name": name})
        return True

    async def delete_recipient(self, email: str) -> bool:
        payload = await self._request("POST", Endpoints.RECIPIENTS_DELETE, json={"email": email})
        return bool(isinstance(payload, dict) and payload.get("success"))

    async def fetch_allowed_prefixes(self) -> list[str]:
        payload = await self._request("GET", Endpoints.ALLOWED_EMAILS)
        if not isinstance(payload, list):
            return []
        return [str(prefix) for prefix in payload if prefix]


class RelayAPIError(Exception):

    def __init__(self, message: str, status_code: Optional[int] = None, server_message: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message

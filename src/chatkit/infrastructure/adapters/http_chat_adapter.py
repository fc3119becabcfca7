"""Shared HTTP plumbing for vendor chat adapters.

Wraps ``httpx.AsyncClient`` with bearer auth, token refresh, tracing,
request metrics, and mapping of transport and status failures to
``ChatApiError``.
"""

import json
import logging
import time
from typing import Any, Optional

import httpx
from opentelemetry import trace

from chatkit.application.adapters.chat_adapter import ChatAdapter, StreamHandle
from chatkit.application.errors import ChatApiError
from chatkit.application.services.token_refresh import RefreshCallback, TokenRefresher
from chatkit.observability import adapter_request_count, adapter_request_time

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _decode_body(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class HttpChatAdapter(ChatAdapter):
    """Base class for adapters that talk to a vendor over HTTP.

    Args:
        base_url: Vendor API root
        token: Access token sent as ``Authorization: Bearer <token>``
        timeout: Request timeout in seconds
        refresh_token: Async callback returning a new token after a 401
        client: Pre-configured client (tests inject one backed by ``httpx.MockTransport``)
    """

    PROVIDER_NAME = "http"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 120.0,
        refresh_token: Optional[RefreshCallback] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._auth = TokenRefresher(token, refresh_token, self.should_refresh_token)

    @property
    def token(self) -> str:
        return self._auth.token

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._auth.token}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        *,
        json_body: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Send a request (with token refresh) and return its decoded JSON body.

        Returns:
            The decoded body, the raw text when it is not JSON, or ``None`` when empty

        Raises:
            ChatApiError: On transport failure or a non-2xx response
        """

        async def call() -> httpx.Response:
            return await self._send(method, url, operation, json_body=json_body, params=params, headers=headers)

        response = await self._auth.execute(call)
        if not response.content:
            return None
        return _decode_body(response.text)

    async def _open_stream(
        self,
        url: str,
        operation: str,
        *,
        json_body: Any,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> StreamHandle:
        """POST a streaming request (with token refresh) and return the open response."""

        async def call() -> httpx.Response:
            return await self._send("POST", url, operation, json_body=json_body, params=params, headers=headers, stream=True)

        return StreamHandle(await self._auth.execute(call), provider=self.PROVIDER_NAME)

    async def _send(
        self,
        method: str,
        url: str,
        operation: str,
        *,
        json_body: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        stream: bool = False,
    ) -> httpx.Response:
        client = await self._get_client()
        start_time = time.time()

        with tracer.start_as_current_span(f"{self.PROVIDER_NAME}.{operation}") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.url", url)
            span.set_attribute("chatkit.provider", self.PROVIDER_NAME)

            request = client.build_request(method, url, json=json_body, params=params, headers=self._headers(headers))
            try:
                response = await client.send(request, stream=stream)
            except httpx.TimeoutException as e:
                span.set_attribute("error", True)
                logger.error(f"{self.PROVIDER_NAME} {operation} timed out: {e}")
                raise ChatApiError(f"{self.PROVIDER_NAME} request timed out", status=0, provider=self.PROVIDER_NAME, details={"url": url})
            except httpx.RequestError as e:
                span.set_attribute("error", True)
                logger.error(f"Cannot reach {self.PROVIDER_NAME} at {url}: {e}")
                raise ChatApiError(f"Failed to communicate with {self.PROVIDER_NAME}", status=0, provider=self.PROVIDER_NAME, details={"url": url})

            duration_ms = (time.time() - start_time) * 1000
            adapter_request_count.add(1, {"provider": self.PROVIDER_NAME, "operation": operation, "status": str(response.status_code)})
            adapter_request_time.record(duration_ms, {"provider": self.PROVIDER_NAME, "operation": operation})
            span.set_attribute("http.status_code", response.status_code)
            span.set_attribute("chatkit.duration_ms", duration_ms)

            if response.is_success:
                return response

            span.set_attribute("error", True)
            if stream:
                await response.aread()
                await response.aclose()
            error_text = response.text
            logger.error(f"{self.PROVIDER_NAME} HTTP error on {operation}: {response.status_code} - {error_text[:500]}")
            raise ChatApiError(
                f"{self.PROVIDER_NAME} {operation} failed with status {response.status_code}",
                status=response.status_code,
                body=_decode_body(error_text),
                provider=self.PROVIDER_NAME,
                details={"url": url},
            )

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

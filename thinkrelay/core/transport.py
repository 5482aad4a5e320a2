"""Upstream transport: the single outbound HTTP call per relayed request."""

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Optional

import httpx

from .exceptions import ProxyError, UpstreamError, UpstreamTimeout, UpstreamUnreachable
from .upstream_transport import get_upstream_transport

logger = logging.getLogger("thinkrelay")

DEFAULT_TIMEOUT = 30.0
SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "x-api-key"}


def build_outbound_headers(api_key: str, *, is_stream: bool) -> dict[str, str]:
    """Build headers for the upstream request."""
    headers = {
        "Content-Type": "application/json",
        "Accept": "text/event-stream" if is_stream else "application/json",
        # Explicitly request uncompressed responses
        "Accept-Encoding": "identity",
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _safe_headers_for_log(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        key: ("***" if key.lower() in SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


def map_httpx_error(exc: httpx.HTTPError, url: str, timeout: float) -> ProxyError:
    """Translate an httpx failure into the relay's upstream error taxonomy."""
    detail = str(exc).strip() or exc.__class__.__name__
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamTimeout(
            f"Upstream {url} timed out ({exc.__class__.__name__}; timeout={timeout}s)"
        )
    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamError(
            f"Upstream {url} returned status {exc.response.status_code}",
            status=exc.response.status_code,
        )
    return UpstreamUnreachable(
        f"Upstream {url} unreachable: {exc.__class__.__name__}: {detail}"
    )


def describe_error_body(body: bytes, status: int) -> str:
    """Pick the upstream's own error message out of an error body if it has one."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if isinstance(payload, dict):
        error_obj = payload.get("error")
        if isinstance(error_obj, dict) and error_obj.get("message"):
            return str(error_obj["message"])
        if isinstance(error_obj, str) and error_obj:
            return error_obj
        if payload.get("message"):
            return str(payload["message"])
    text = body.decode("utf-8", errors="replace").strip()
    if text:
        return text[:500]
    return f"Upstream returned status {status}"


@dataclass
class UpstreamReply:
    status_code: int
    headers: httpx.Headers
    body: bytes

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class UpstreamStream:
    """An open, successful upstream streaming response."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        url: str,
        timeout: float,
    ) -> None:
        self._client = client
        self._response = response
        self.url = url
        self.timeout = timeout
        self.closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield decoded body fragments; httpx errors become relay errors."""
        stream = self._response.aiter_bytes()
        while True:
            try:
                chunk = await stream.__anext__()
            except StopAsyncIteration:
                return
            except httpx.HTTPError as exc:
                raise map_httpx_error(exc, self.url, self.timeout) from exc
            if chunk:
                yield chunk

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        logger.debug(f"Closing stream for {self.url}")
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


class UpstreamTransport:
    """Issues chat-completion calls to the configured upstream."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        chat_path: str = "/chat/completions",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.chat_path = chat_path

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.chat_path}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=get_upstream_transport(self.url),
            follow_redirects=True,
        )

    async def post(self, payload: Mapping[str, Any]) -> UpstreamReply:
        """Buffered call. Raises the upstream error taxonomy on failure."""
        url = self.url
        headers = build_outbound_headers(self.api_key, is_stream=False)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("POST %s headers=%s", url, _safe_headers_for_log(headers))
        try:
            async with self._client() as client:
                resp = await client.post(url, headers=headers, json=dict(payload))
        except httpx.HTTPError as exc:
            error = map_httpx_error(exc, url, self.timeout)
            logger.error(f"Upstream request to {url} failed: {error.message}")
            raise error from exc

        logger.info(f"Upstream {url} answered with status {resp.status_code}")
        if resp.status_code >= 400:
            raise UpstreamError(
                describe_error_body(resp.content, resp.status_code), status=resp.status_code
            )
        return UpstreamReply(resp.status_code, resp.headers, resp.content)

    async def open_stream(self, payload: Mapping[str, Any]) -> UpstreamStream:
        """Send a streaming request and return once the status is known.

        The caller owns the returned stream and must ``aclose`` it.
        """
        url = self.url
        headers = build_outbound_headers(self.api_key, is_stream=True)
        client = self._client()
        try:
            request = client.build_request("POST", url, headers=headers, json=dict(payload))
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Sending streaming request to %s headers=%s",
                    url,
                    _safe_headers_for_log(request.headers),
                )
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            error = map_httpx_error(exc, url, self.timeout)
            logger.error(f"Failed to send streaming request to {url}: {error.message}")
            raise error from exc
        except BaseException:
            await client.aclose()
            raise

        if resp.status_code >= 400:
            logger.warning(f"Streaming request to {url} returned error status {resp.status_code}")
            try:
                data = await resp.aread()
            except httpx.HTTPError:
                data = b""
            finally:
                await resp.aclose()
                await client.aclose()
            raise UpstreamError(describe_error_body(data, resp.status_code), status=resp.status_code)

        logger.info(f"Streaming request to {url} successful, status {resp.status_code}")
        return UpstreamStream(client, resp, url, self.timeout)

"""Request dispatch and response ownership for the Dify API."""

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import ValidationError

from .errors import ConfigurationError, StatusError, TransportError
from .routes import Route
from .stream import EventStream, StreamBridge, StreamScheduler, iter_lines
from .types import ApiErrorResponse, CredentialStore

logger = logging.getLogger(__name__)


class ResponseBody:
    """Body of a ``DeferredCloseResponse``.

    Closing it releases the connection only when the response is bounded;
    for a streaming response it is a no-op.
    """

    def __init__(self, owner: "DeferredCloseResponse") -> None:
        self._owner = owner

    def aiter_lines(self) -> AsyncIterator[str]:
        return iter_lines(self._owner.raw.aiter_text())

    async def aread_text(self) -> str:
        await self._owner.raw.aread()
        return self._owner.raw.text

    async def aclose(self) -> None:
        if self._owner.streaming:
            return
        await self._owner.aclose()


class DeferredCloseResponse:
    """Wraps an open ``httpx.Response`` whose close policy is fixed up front.

    Bounded (``streaming=False``): closing ``body`` closes the connection.
    Streaming (``streaming=True``): closing ``body`` does nothing and only
    ``aclose()`` on the wrapper releases the connection.
    ``aclose()`` is idempotent.
    """

    def __init__(self, raw: httpx.Response, *, streaming: bool) -> None:
        self.raw = raw
        self._streaming = streaming
        self._closed = False
        self.body = ResponseBody(self)

    @property
    def streaming(self) -> bool:
        return self._streaming

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def status_code(self) -> int:
        return self.raw.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.raw.headers

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.raw.aclose()


def _status_error(response: httpx.Response) -> StatusError:
    """Build a StatusError, using the API error document when there is one."""
    try:
        data = ApiErrorResponse.model_validate(response.json())
        return StatusError(
            data.message,
            data.code,
            response.status_code,
            response.text,
        )
    except (ValueError, ValidationError):
        return StatusError(
            f"HTTP {response.status_code} {response.reason_phrase}",
            "HTTP_ERROR",
            response.status_code,
            response.text,
        )


class RequestDispatcher:
    """Sends route-described requests with the credential of the route's scope.

    ``send`` returns the body of a bounded response. ``open_stream`` returns
    the read end of a live event feed whose body is consumed by a background
    task on ``scheduler``.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore,
        *,
        client: httpx.AsyncClient,
        scheduler: StreamScheduler,
        stream_buffer_size: int,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._client = client
        self._scheduler = scheduler
        self._stream_buffer_size = stream_buffer_size

    def _build_request(
        self, route: Route, args: tuple[str, ...], body: Any | None
    ) -> httpx.Request:
        path = route.format(*args)
        headers = {"Authorization": f"Bearer {self._credentials.get(route.scope)}"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        logger.debug(
            "%s %s%s scope=%s", route.method, self.base_url, path, route.scope.value
        )
        return self._client.build_request(
            route.method,
            f"{self.base_url}{path}",
            headers=headers,
            json=body,
        )

    async def _open(
        self, request: httpx.Request, *, streaming: bool
    ) -> DeferredCloseResponse:
        try:
            raw = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", request.method, request.url, e)
            raise TransportError(
                f"Error occurred while sending request: {e}", "TRANSPORT_ERROR"
            ) from e

        if raw.status_code != httpx.codes.OK:
            logger.warning(
                "%s %s returned %d", request.method, request.url, raw.status_code
            )
            try:
                await raw.aread()
                error = _status_error(raw)
            except httpx.TransportError as e:
                logger.debug("Could not read error body: %s", e)
                error = StatusError(
                    f"HTTP {raw.status_code} {raw.reason_phrase}",
                    "HTTP_ERROR",
                    raw.status_code,
                )
            finally:
                await raw.aclose()
            raise error

        return DeferredCloseResponse(raw, streaming=streaming)

    async def send(self, route: Route, *args: str, body: Any | None = None) -> str:
        """Send a request and return the body of the 200 response as text.

        Raises:
            ConfigurationError: On a missing credential or bad route arguments
            TransportError: On connection failures and timeouts
            StatusError: On any status other than 200
        """
        request = self._build_request(route, args, body)
        response = await self._open(request, streaming=False)
        try:
            return await response.body.aread_text()
        except httpx.TransportError as e:
            raise TransportError(
                f"Error occurred while reading response: {e}", "TRANSPORT_ERROR"
            ) from e
        finally:
            await response.body.aclose()

    async def open_stream(
        self, route: Route, *args: str, body: Any | None = None
    ) -> EventStream:
        """Send a request and return its SSE payloads as an ``EventStream``.

        Returns as soon as the response headers are in and the background
        reader is running. Errors after that point end the stream instead of
        being raised here.

        Raises:
            ConfigurationError: On a missing credential, bad route arguments
                or a shut down scheduler
            TransportError: On connection failures and timeouts
            StatusError: On any status other than 200
        """
        if self._scheduler.closed:
            raise ConfigurationError(
                "Cannot open a stream on a shut down scheduler", "SCHEDULER_CLOSED"
            )
        request = self._build_request(route, args, body)
        response = await self._open(request, streaming=True)
        bridge = StreamBridge(
            response.body,
            response,
            self._scheduler,
            capacity=self._stream_buffer_size,
            name=f"dify-stream {route.method} {route.url_template}",
        )
        try:
            return bridge.start()
        except RuntimeError as e:
            await response.aclose()
            raise ConfigurationError(
                "Scheduler shut down while the stream was opening", "SCHEDULER_CLOSED"
            ) from e

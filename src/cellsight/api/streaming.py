"""Newline-delimited JSON streaming over HTTP."""

import json
import logging
from typing import Any, AsyncIterator, Optional

import httpx
from pydantic import ValidationError

from cellsight import NetworkError, ProtocolError, StreamFormatError
from cellsight.models import ApiError

logger = logging.getLogger(__name__)


class StreamingClient:
    """HTTP client for the assistant backend.

    Streaming endpoints answer with one JSON object per line, each a partial
    update of the same logical response. stream() folds those frames
    together, so every value it yields is a more complete view of the
    response than the one before.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Backend base URL
            timeout: Request timeout in seconds
            transport: Custom transport (used by tests)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "StreamingClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def post_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """Send a request and parse a single JSON object response.

        Args:
            path: Endpoint path
            body: JSON request body

        Returns:
            dict: Parsed response

        Raises:
            NetworkError: If the request could not be sent
            ProtocolError: If the backend answered with an error status
        """
        try:
            response = await self.client.post(path, json=body)
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        if response.is_error:
            raise self._protocol_error(response)

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise StreamFormatError(f"Invalid JSON from {path}: {e}") from e
        if not isinstance(data, dict):
            raise StreamFormatError(f"Expected a JSON object from {path}, got {type(data).__name__}")
        return data

    async def stream(self, path: str, body: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Send a request and yield the response as it accumulates.

        Each complete line of the response body is parsed as a JSON object
        and shallow-merged into a running accumulator; a fresh copy of the
        accumulator is yielded after every line. Trailing text without a
        final newline is parsed as the last frame.

        Args:
            path: Endpoint path
            body: JSON request body

        Yields:
            dict: The response merged from every frame received so far

        Raises:
            NetworkError: If the connection fails
            ProtocolError: If the backend answered with an error status
            StreamFormatError: If a line is not a JSON object
        """
        request = self.client.build_request("POST", path, json=body)
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        try:
            if response.is_error:
                await response.aread()
                raise self._protocol_error(response)

            accumulator: dict[str, Any] = {}
            buffer = ""
            frames = 0
            try:
                async for text in response.aiter_text():
                    buffer += text
                    while "\n" in buffer:
                        line, buffer = buffer.split("\n", 1)
                        if not line.strip():
                            continue
                        accumulator = {**accumulator, **self._parse_frame(line)}
                        frames += 1
                        yield accumulator
            except httpx.TransportError as e:
                raise NetworkError(f"Stream from {path} interrupted: {e}") from e

            if buffer.strip():
                accumulator = {**accumulator, **self._parse_frame(buffer)}
                frames += 1
                yield accumulator

            logger.debug("Stream from %s finished after %d frame(s)", path, frames)
        finally:
            await response.aclose()

    def _parse_frame(self, line: str) -> dict[str, Any]:
        """Parse one line of the stream."""
        try:
            frame = json.loads(line)
        except json.JSONDecodeError as e:
            raise StreamFormatError(f"Malformed stream line {line[:80]!r}: {e}") from e
        if not isinstance(frame, dict):
            raise StreamFormatError(f"Stream frame is not an object: {line[:80]!r}")
        return frame

    def _protocol_error(self, response: httpx.Response) -> ProtocolError:
        """Build the error for a non-2xx response."""
        try:
            error = ApiError.model_validate(response.json())
        except (ValueError, ValidationError):
            error = ApiError(code=str(response.status_code), message=response.reason_phrase)

        logger.warning(
            "Backend returned %d for %s: [%s] %s",
            response.status_code,
            response.request.url.path,
            error.code,
            error.message,
        )
        return ProtocolError(code=error.code, message=error.message, status=response.status_code)

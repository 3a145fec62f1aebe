"""Typed endpoints of the assistant backend."""

import logging
from typing import Any, AsyncIterator, Optional

from pydantic import ValidationError

from cellsight import ProtocolError
from cellsight.api.streaming import StreamingClient
from cellsight.config import CellSightConfig, get_config
from cellsight.models import AnalysisRequest, ChatRequest, LoginResponse

logger = logging.getLogger(__name__)


class AssistantClient:
    """Client for the login, analysis and chat endpoints.

    analyse() and chat() return the merged stream of partial responses
    produced by StreamingClient.stream().
    """

    def __init__(self, streaming: StreamingClient, config: Optional[CellSightConfig] = None):
        """Initialize the client.

        Args:
            streaming: Transport for all requests
            config: Endpoint configuration (defaults to the global config)
        """
        self.streaming = streaming
        self.config = config or get_config()

    @classmethod
    def from_config(cls, config: Optional[CellSightConfig] = None) -> "AssistantClient":
        """Build a client talking to the configured backend."""
        config = config or get_config()
        streaming = StreamingClient(base_url=config.api_base_url, timeout=config.request_timeout)
        return cls(streaming, config)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.streaming.close()

    async def __aenter__(self) -> "AssistantClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def login(self) -> str:
        """Obtain a session id.

        Returns:
            str: Opaque session id for analysis requests

        Raises:
            NetworkError: If the backend cannot be reached
            ProtocolError: If login is refused or the answer has no session id
        """
        data = await self.streaming.post_json(self.config.login_path, {})
        try:
            login = LoginResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(
                code="invalid_response",
                message="Login response carries no session_id",
                status=200,
            ) from e
        logger.info("Logged in to %s", self.streaming.base_url)
        return login.session_id

    def analyse(self, request: AnalysisRequest) -> AsyncIterator[dict[str, Any]]:
        """Stream the explanation of a cell.

        Args:
            request: Cell, output and context to explain

        Returns:
            AsyncIterator[dict]: Accumulated response with chat_id,
                explanation, details and followUps as they arrive
        """
        logger.debug("Requesting analysis of cell %d", request.cell_id)
        return self.streaming.stream(self.config.analysis_path, request.model_dump())

    def chat(self, request: ChatRequest) -> AsyncIterator[dict[str, Any]]:
        """Stream the answer to a follow-up question.

        Args:
            request: Conversation id and question

        Returns:
            AsyncIterator[dict]: Accumulated response with explanation and
                followUps as they arrive
        """
        logger.debug("Sending follow-up on chat %s", request.chat_id)
        return self.streaming.stream(self.config.chat_path, request.model_dump())

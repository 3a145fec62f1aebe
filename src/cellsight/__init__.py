"""CellSight - Explain notebook cells with an AI assistant.

Reads cells out of a live notebook document and holds a streamed,
multi-turn conversation about them.
"""

__version__ = "0.1.0"


class CellSightError(Exception):
    """Base exception for all CellSight errors."""

    pass


class ExtractionError(CellSightError):
    """Raised when host markup does not look like a notebook cell."""

    pass


class NetworkError(CellSightError):
    """Raised when the assistant backend cannot be reached."""

    pass


class ProtocolError(CellSightError):
    """Raised when the assistant backend answers with an error status.

    Attributes:
        code: Error code from the backend payload (or the HTTP status)
        message: Human-readable message
        status: HTTP status code
    """

    def __init__(self, code: str, message: str, status: int):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.status = status


class StreamFormatError(CellSightError):
    """Raised when a streamed frame is not a JSON object."""

    pass


class ConversationStateError(CellSightError):
    """Raised when a conversation action is invalid in the current state."""

    pass


class ConfigurationError(CellSightError):
    """Raised when configuration is invalid or missing."""

    pass

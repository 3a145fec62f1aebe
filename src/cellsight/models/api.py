"""Wire models for the assistant backend."""

from pydantic import BaseModel, ConfigDict, Field


class OutputPayload(BaseModel):
    """Output of the explained cell as sent to the backend."""

    output_type: str
    text: list[str] = Field(default_factory=list)


class ContextEntry(BaseModel):
    """Earlier execution sent along as context."""

    cell_id: int
    code: str


class AnalysisRequest(BaseModel):
    """Body of the request that opens a conversation."""

    session_id: str
    cell_id: int
    code: str
    output: OutputPayload
    context: list[ContextEntry] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """Body of a follow-up request."""

    chat_id: str
    prompt: str


class LoginResponse(BaseModel):
    """Body returned by the login endpoint."""

    session_id: str


class ApiError(BaseModel):
    """Error payload returned with a non-2xx status."""

    code: str
    message: str

    model_config = ConfigDict(coerce_numbers_to_str=True)

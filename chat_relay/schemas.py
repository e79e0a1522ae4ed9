from typing import Any, Optional
from pydantic import BaseModel, Field, StrictStr, field_validator

DEFAULT_MODEL = "gpt-3.5-turbo"


class ChatRequest(BaseModel):
    message: StrictStr = Field(..., min_length=1, description="Mensaje del usuario")
    # sin validar: cualquier valor llega tal cual a OpenAI
    model: Any = Field(DEFAULT_MODEL, description="Modelo de OpenAI, sin whitelist")

    @field_validator("model", mode="before")
    @classmethod
    def _null_model_is_default(cls, value: Any) -> Any:
        return DEFAULT_MODEL if value is None else value


class ChatResponse(BaseModel):
    success: bool
    reply: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Any] = None
    error: Optional[str] = None
    details: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class DeleteBookRequest(_CamelModel):
    book_id: int | str = Field(alias="bookId")


class ChatRequest(_CamelModel):
    user_message: str = Field(alias="userMessage", min_length=1)
    book_id: int | str | None = Field(default=None, alias="bookId")
    conversation_history: list[dict[str, Any]] = Field(
        default_factory=list, alias="conversationHistory"
    )
    highlighted_text: str | None = Field(default=None, alias="highlightedText")


class SpeechRequest(BaseModel):
    text: str = ""


class AnnotationCreate(_CamelModel):
    """Payload accepted by the annotation store."""

    book_id: int | str = Field(alias="bookId")
    text: str = Field(min_length=1)
    start_offset: int = Field(alias="startOffset", ge=0)
    end_offset: int = Field(alias="endOffset", ge=0)

    @model_validator(mode="after")
    def _check_offsets(self) -> AnnotationCreate:
        if not self.text.strip():
            raise ValueError("text must not be blank")
        if self.start_offset >= self.end_offset:
            raise ValueError("startOffset must be less than endOffset")
        return self


class AnnotationOut(_CamelModel):
    id: str = Field(serialization_alias="_id")
    user_id: str = Field(serialization_alias="userId")
    book_id: str = Field(serialization_alias="bookId")
    text: str
    start_offset: int = Field(serialization_alias="startOffset")
    end_offset: int = Field(serialization_alias="endOffset")
    timestamp: datetime

    def as_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

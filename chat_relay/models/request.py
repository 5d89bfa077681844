from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List
from enum import Enum
import math

from chat_relay.core.errors import InvalidRequestError


class ChatMessageRole(str, Enum):
    """Chat message role enumeration"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def _float_text(value: float) -> str:
    """Render a finite or infinite float like JavaScript's String(): 1.0 -> "1", 0.5 -> "0.5"."""
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _coerce_text(value: Any) -> str:
    """Normalize an untrusted JSON value to a string.

    Falsy values (None, false, 0, NaN) and structured values become "".
    """
    if isinstance(value, str):
        return value
    if not value or (isinstance(value, float) and math.isnan(value)):
        return ""
    if isinstance(value, bool):
        return "true"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _float_text(value)
    return ""


class ChatMessage(BaseModel):
    """Single message sent to the completion provider"""
    role: ChatMessageRole
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class KnowledgeItem(BaseModel):
    """Knowledge-base article snippet supplied by the caller"""
    title: str = Field(default="", description="Article title")
    body: str = Field(default="", description="Article body (truncated on use)")

    @field_validator("title", "body", mode="before")
    @classmethod
    def validate_text(cls, v):
        """Non-string values become empty strings"""
        return v if isinstance(v, str) else ""

    @classmethod
    def from_raw(cls, raw: Any) -> "KnowledgeItem":
        if not isinstance(raw, dict):
            return cls()
        return cls(title=raw.get("title"), body=raw.get("body"))


class HistoryTurn(BaseModel):
    """Previous conversation turn; role is kept raw so unknown roles can be dropped later"""
    role: str = ""
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v):
        return v if isinstance(v, str) else ""

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v):
        return _coerce_text(v)

    @property
    def is_conversational(self) -> bool:
        return self.role in (ChatMessageRole.USER.value, ChatMessageRole.ASSISTANT.value)

    @classmethod
    def from_raw(cls, raw: Any) -> "HistoryTurn":
        if not isinstance(raw, dict):
            return cls()
        return cls(role=raw.get("role"), content=raw.get("content"))


class ChatRequest(BaseModel):
    """Chat request model"""
    question: str = Field(..., min_length=1, description="User question (trimmed)")
    context: List[KnowledgeItem] = Field(default_factory=list, description="Knowledge-base snippets")
    history: List[HistoryTurn] = Field(default_factory=list, description="Recent conversation turns")

    @field_validator("question")
    @classmethod
    def validate_question(cls, v):
        """Validate question is not just whitespace"""
        if not v.strip():
            raise ValueError("Question cannot be empty or whitespace only")
        return v.strip()

    @classmethod
    def from_payload(cls, payload: Any) -> "ChatRequest":
        """
        Build a request from a decoded JSON body, normalizing anything malformed.

        A non-object body is treated as empty, non-list ``context``/``history``
        as empty lists.

        Raises:
            InvalidRequestError: If the question is missing or blank
        """
        if not isinstance(payload, dict):
            payload = {}

        question = payload.get("question")
        question = question.strip() if isinstance(question, str) else ""
        if not question:
            raise InvalidRequestError("Missing question")

        context = payload.get("context")
        history = payload.get("history")

        return cls(
            question=question,
            context=[KnowledgeItem.from_raw(item) for item in context] if isinstance(context, list) else [],
            history=[HistoryTurn.from_raw(turn) for turn in history] if isinstance(history, list) else [],
        )

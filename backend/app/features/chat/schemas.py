"""
Chat feature: Schemas for request/response models.
"""

from typing import Literal

from pydantic import BaseModel, Field

from app.features.chat.prompts import ExplanationMode


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Ask the tutor a question grounded in the caller's documents."""
    question: str = Field(min_length=1)
    conversation_history: list[HistoryMessage] = []
    mode: ExplanationMode = ExplanationMode.DEFAULT


class ChatResponse(BaseModel):
    answer: str
    sources: list[str]


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int | None = Field(default=None, ge=1, le=50)


class RetrievedChunk(BaseModel):
    chunk_text: str
    document_title: str
    page_label: str
    score: float

"""Pydantic schemas for the chat assistant API."""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[datetime] = None


class ChatRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=4000)
    conversation_history: List[HistoryMessage] = []


class RelatedItem(BaseModel):
    type: Literal["invoice", "client", "insight", "recommendation"]
    id: str
    title: str


class ChatAction(BaseModel):
    label: str
    action: str
    params: Optional[Dict[str, str]] = None


class ChatResponse(BaseModel):
    message: str
    suggestions: List[str] = []
    related_data: List[RelatedItem] = []
    actions: List[ChatAction] = []
    ai_enabled: bool = True


class ChatHistoryResponse(BaseModel):
    messages: List[HistoryMessage]

# noa/api/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from noa.assessment.schema import Report


class MessageRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    message: str
    patient_name: Optional[str] = None


class ReplyResponse(BaseModel):
    content: str
    confidence: float
    type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemoryEntrySchema(BaseModel):
    id: str
    content: str
    type: str
    timestamp: datetime
    importance: float
    tags: List[str]


class ConversationMessageSchema(BaseModel):
    id: str
    role: str
    content: str
    timestamp: datetime
    intent: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionStateResponse(BaseModel):
    user_id: str
    step: str
    phase: Optional[str] = None
    patient_name: Optional[str] = None
    state: Dict[str, Any]


class ReportListResponse(BaseModel):
    patient_id: str
    reports: List[Report]

# noa/platform/intents.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class PlatformIntentType(str, Enum):
    ASSESSMENT_START = "ASSESSMENT_START"
    ASSESSMENT_COMPLETE = "ASSESSMENT_COMPLETE"
    REPORT_GENERATE = "REPORT_GENERATE"
    DASHBOARD_QUERY = "DASHBOARD_QUERY"
    NOTIFY_PROFESSIONAL = "NOTIFY_PROFESSIONAL"
    NONE = "NONE"


@dataclass
class PlatformIntent:
    """
    What system action a message should fire. Independent of the clinical
    intent and of the reply text.
    """

    type: PlatformIntentType
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def none(cls) -> "PlatformIntent":
        return cls(type=PlatformIntentType.NONE, confidence=0.0)


@dataclass
class ActionResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    # The reply must mention this outcome.
    requires_response: bool = False

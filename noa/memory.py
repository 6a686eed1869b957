# noa/memory.py
from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set

from noa.nlp.classifier import fold

DEFAULT_CAPACITY = 50

# (tag, folded substrings that trigger it)
TAG_RULES = (
    ("noa-residente", ("noa",)),
    ("avaliacao-clinica", ("avaliacao",)),
    ("cannabis", ("cannabis",)),
    ("dashboard", ("dashboard",)),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def tags_for(message: str) -> Set[str]:
    folded = fold(message or "")
    return {tag for tag, needles in TAG_RULES if any(n in folded for n in needles)}


@dataclass
class MemoryEntry:
    content: str
    type: str = "conversation"  # conversation | assessment | learning
    importance: float = 0.0
    tags: Set[str] = field(default_factory=set)
    id: str = field(default_factory=lambda: _new_id("memory"))
    timestamp: datetime = field(default_factory=_utcnow)


class MemoryRing:
    """
    The most recent `capacity` memory entries; the oldest is evicted first.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._entries: Deque[MemoryEntry] = deque(maxlen=capacity)

    def add(self, entry: MemoryEntry) -> None:
        self._entries.append(entry)

    def remember_exchange(
        self,
        user_message: str,
        reply_content: str,
        importance: float,
        entry_type: str = "conversation",
    ) -> MemoryEntry:
        entry = MemoryEntry(
            content=f"Usuário: {user_message}\nAssistente: {reply_content}",
            type=entry_type,
            importance=importance,
            tags=tags_for(user_message),
        )
        self.add(entry)
        return entry

    def snapshot(self) -> List[MemoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ConversationMessage:
    role: str  # user | assistant | system
    content: str
    intent: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: _new_id("msg"))
    timestamp: datetime = field(default_factory=_utcnow)


class ConversationLog:
    """Append-only message history, one list per user id."""

    def __init__(self):
        self._messages: Dict[str, List[ConversationMessage]] = {}

    def append(self, user_id: str, message: ConversationMessage) -> None:
        self._messages.setdefault(user_id, []).append(message)

    def history(self, user_id: str) -> List[ConversationMessage]:
        return list(self._messages.get(user_id, []))

    def last(self, user_id: str, role: Optional[str] = None) -> Optional[ConversationMessage]:
        for message in reversed(self._messages.get(user_id, [])):
            if role is None or message.role == role:
                return message
        return None

# noa/assessment/store.py
from __future__ import annotations

import asyncio
import weakref
from typing import Dict, Iterator, Optional, Tuple

from noa.assessment.state import InterviewSession


class SessionStore:
    """
    Keyed store of live interview sessions, one per user id.

    Access for a given user is serialised with `lock_for(user_id)`; callers
    that read-modify-write a session (the orchestrator) hold that lock for the
    whole turn. A lock lives only while some turn holds or awaits it.
    """

    def __init__(self):
        self._sessions: Dict[str, InterviewSession] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, user_id: str) -> Optional[InterviewSession]:
        return self._sessions.get(user_id)

    def set(self, session: InterviewSession) -> None:
        session.touch()
        self._sessions[session.user_id] = session

    def delete(self, user_id: str) -> bool:
        return self._sessions.pop(user_id, None) is not None

    def get_or_create(
        self,
        user_id: str,
        patient_name: Optional[str] = None,
    ) -> Tuple[InterviewSession, bool]:
        """
        Return (session, created). An existing session is reused untouched.
        """
        existing = self._sessions.get(user_id)
        if existing is not None:
            return existing, False
        session = InterviewSession(user_id=user_id, patient_name=patient_name)
        self._sessions[user_id] = session
        return session, True

    def reset(self, user_id: str, patient_name: Optional[str] = None) -> InterviewSession:
        session = InterviewSession(user_id=user_id, patient_name=patient_name)
        self._sessions[user_id] = session
        return session

    def lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[InterviewSession]:
        return iter(list(self._sessions.values()))

# noa/errors.py
from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class NoaError(Exception):
    """
    Base class for errors raised inside the dialogue engine.
    None of these are allowed to escape ConversationOrchestrator.handle.
    """


class CollaboratorError(NoaError):
    """
    Any failure coming from an external collaborator (knowledge search,
    report service, assistant, patient-record store, platform API).
    """

    def __init__(self, collaborator: str, message: str, retryable: bool = True):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.message = message
        self.retryable = retryable


class SessionAbsentError(NoaError):
    def __init__(self, user_id: str):
        super().__init__(f"No active interview session for user {user_id!r}")
        self.user_id = user_id


class InputValidationError(NoaError):
    pass


async def call_collaborator(
    name: str,
    awaitable: Awaitable[T],
    timeout: Optional[float] = None,
) -> T:
    """
    Await a collaborator call, normalising every failure to CollaboratorError.

    A timeout is reported as retryable; the caller decides how to degrade.
    """
    try:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except CollaboratorError:
        raise
    except asyncio.TimeoutError as exc:
        raise CollaboratorError(name, f"timed out after {timeout}s", retryable=True) from exc
    except Exception as exc:
        raise CollaboratorError(name, str(exc) or exc.__class__.__name__) from exc

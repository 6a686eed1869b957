# noa/api/routes.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from noa.errors import CollaboratorError, call_collaborator
from noa.orchestrator import ConversationOrchestrator
from .schemas import (
    ConversationMessageSchema,
    MemoryEntrySchema,
    MessageRequest,
    ReplyResponse,
    ReportListResponse,
    SessionStateResponse,
)

router = APIRouter()


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


@router.post("/conversation/message", response_model=ReplyResponse)
async def post_message(
    payload: MessageRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ReplyResponse:
    """
    Handle one user message and return Nôa's reply.
    """
    reply = await orchestrator.handle(
        payload.user_id,
        payload.message,
        patient_name=payload.patient_name,
    )
    return ReplyResponse(
        content=reply.content,
        confidence=reply.confidence,
        type=reply.type,
        metadata=reply.metadata,
    )


@router.get("/conversation/{user_id}/history", response_model=List[ConversationMessageSchema])
def get_history(
    user_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> List[ConversationMessageSchema]:
    return [
        ConversationMessageSchema(
            id=m.id,
            role=m.role,
            content=m.content,
            timestamp=m.timestamp,
            intent=m.intent,
            metadata=m.metadata,
        )
        for m in orchestrator.get_history(user_id)
    ]


@router.get("/memory", response_model=List[MemoryEntrySchema])
def get_memory(
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> List[MemoryEntrySchema]:
    return [
        MemoryEntrySchema(
            id=e.id,
            content=e.content,
            type=e.type,
            timestamp=e.timestamp,
            importance=e.importance,
            tags=sorted(e.tags),
        )
        for e in orchestrator.get_memory()
    ]


@router.delete("/memory", status_code=204)
def clear_memory(
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.clear_memory()


@router.get("/sessions/{user_id}", response_model=SessionStateResponse)
def get_session(
    user_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> SessionStateResponse:
    state = orchestrator.get_session_state(user_id)
    if state is None:
        raise HTTPException(
            status_code=404,
            detail="No assessment in progress for this user.",
        )

    return SessionStateResponse(
        user_id=user_id,
        step=state["step"],
        phase=state["investigation"].get("phase"),
        patient_name=state.get("patient_name"),
        state=state,
    )


@router.get("/patients/{user_id}/reports", response_model=ReportListResponse)
async def list_reports(
    user_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ReportListResponse:
    try:
        reports = await call_collaborator(
            "report_service",
            orchestrator.dispatcher.report_service.list_reports(user_id),
            timeout=orchestrator.timeout,
        )
    except CollaboratorError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return ReportListResponse(patient_id=user_id, reports=reports)

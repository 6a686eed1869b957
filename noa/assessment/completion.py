# noa/assessment/completion.py
from __future__ import annotations

from typing import List, Optional

from loguru import logger

from noa.assessment.schema import (
    DEFAULT_EVOLUTION,
    DEFAULT_METHODOLOGY,
    DEFAULT_RESULT,
    Report,
    ReportSections,
)
from noa.assessment.stages import AssessmentStep
from noa.assessment.state import ComplaintDetail, InterviewSession
from noa.assessment.store import SessionStore
from noa.collaborators import ReportService
from noa.errors import call_collaborator

NOT_INFORMED = "Não informado"
DEFAULT_PATIENT_NAME = "Paciente"

_DETAIL_LABELS = (
    ("location", "localização"),
    ("when", "início"),
    ("how", "características"),
    ("associated", "sintomas associados"),
    ("improves", "melhora com"),
    ("worsens", "piora com"),
)


def _describe_detail(complaint: str, detail: ComplaintDetail) -> str:
    parts = []
    for attr, label in _DETAIL_LABELS:
        value = getattr(detail, attr)
        if value:
            parts.append(f"{label}: {value}")
    if not parts:
        return f"- {complaint}"
    return f"- {complaint} ({'; '.join(parts)})"


def _build_investigation(session: InterviewSession) -> str:
    inv = session.investigation
    lines: List[str] = ["INVESTIGAÇÃO (I):"]
    lines.append(f"Apresentação: {inv.presenting_self or NOT_INFORMED}")
    lines.append(f"Motivo Principal: {inv.main_complaint or NOT_INFORMED}")

    if inv.complaints_list:
        lines.append("Lista Indiciária: " + "; ".join(inv.complaints_list))
    else:
        lines.append(f"Lista Indiciária: {NOT_INFORMED}")

    described = [
        _describe_detail(complaint, detail)
        for complaint, detail in inv.complaint_details.items()
    ]
    if described:
        lines.append("Desenvolvimento das queixas:")
        lines.extend(described)

    return "\n".join(lines)


def build_report_sections(session: InterviewSession) -> ReportSections:
    """
    Build the IMRE report sections from the structured fields of a session.
    Empty fields fall back to the protocol defaults.
    """
    return ReportSections(
        investigation=_build_investigation(session),
        methodology=f"METODOLOGIA (M):\n{session.methodology or DEFAULT_METHODOLOGY}",
        result=f"RESULTADO (R):\n{session.result or DEFAULT_RESULT}",
        evolution=f"EVOLUÇÃO (E):\n{session.evolution or DEFAULT_EVOLUTION}",
    )


class AssessmentCompleter:
    """
    Turns a live session into a generated report and retires it.

    Shared by the state machine (Evolution answer) and the action dispatcher
    (explicit completion request), so a report is generated by exactly one
    code path.
    """

    def __init__(
        self,
        store: SessionStore,
        report_service: ReportService,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.report_service = report_service
        self.timeout = timeout

    async def complete(
        self,
        session: InterviewSession,
        answer: Optional[str] = None,
    ) -> Report:
        """
        Record the evolution answer (when the session is at Evolution),
        generate the report and remove the session from the store.

        Raises CollaboratorError if the report service fails; in that case
        the session stays in the store at its current step.
        """
        if answer is not None and session.step == AssessmentStep.EVOLUTION:
            session.evolution = answer.strip()
            session.touch()

        sections = build_report_sections(session)
        patient_name = session.patient_name or DEFAULT_PATIENT_NAME

        report = await call_collaborator(
            "report_service",
            self.report_service.generate_report(session.user_id, patient_name, sections),
            timeout=self.timeout,
        )

        self.store.delete(session.user_id)
        session.step = AssessmentStep.COMPLETED
        session.touch()
        logger.info("Assessment completed for {} with report {}", session.user_id, report.id)
        return report

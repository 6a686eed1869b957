# noa/platform/dispatcher.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from loguru import logger

from noa.assessment.machine import AssessmentStateMachine
from noa.assessment.schema import DEFAULT_EVOLUTION, DEFAULT_METHODOLOGY, ReportSections
from noa.assessment.stages import AssessmentStep
from noa.assessment.store import SessionStore
from noa.collaborators import PatientRecordStore, ReportService
from noa.errors import CollaboratorError, InputValidationError, SessionAbsentError, call_collaborator
from noa.nlp.classifier import fold
from noa.platform.intents import ActionResult, PlatformIntent, PlatformIntentType

COMPLETION_KEYWORDS = ("finalizar", "concluir", "terminar", "pronto")
START_PHRASES = ("avaliacao clinica inicial", "protocolo imre")
REPORT_PHRASES = ("gerar relatorio", "relatorio clinico", "criar relatorio")
DASHBOARD_PHRASES = ("dashboard", "meus relatorios", "relatorios salvos")
NOTIFY_VERBS = ("notificar", "avisar")
NOTIFY_TARGETS = ("medico", "profissional")

DEFAULT_PATIENT_NAME = "Paciente"


def _has_any(folded: str, phrases: Iterable[str]) -> bool:
    return any(p in folded for p in phrases)


def _manual_report_sections() -> ReportSections:
    return ReportSections(
        investigation="Dados coletados através da avaliação clínica inicial.",
        methodology=DEFAULT_METHODOLOGY,
        result="Avaliação clínica inicial concluída.",
        evolution=DEFAULT_EVOLUTION,
        recommendations=[
            "Continuar acompanhamento clínico regular",
            "Seguir protocolo de tratamento estabelecido",
            "Manter comunicação com equipe médica",
        ],
    )


class ActionDispatcher:
    """
    Maps a message to a platform action (start/complete an assessment,
    generate a report, query the dashboard, notify a professional) and runs it.

    Detection is a pure function of the text and the session store;
    execution talks to the collaborators and never raises.
    """

    def __init__(
        self,
        store: SessionStore,
        machine: AssessmentStateMachine,
        report_service: ReportService,
        records: Optional[PatientRecordStore] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.machine = machine
        self.completer = machine.completer
        self.report_service = report_service
        self.records = records
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, text: str, user_id: Optional[str]) -> PlatformIntent:
        folded = fold(text or "")

        session = self.store.get(user_id) if user_id else None
        if session is not None and (
            _has_any(folded, COMPLETION_KEYWORDS) or session.step == AssessmentStep.EVOLUTION
        ):
            return PlatformIntent(
                type=PlatformIntentType.ASSESSMENT_COMPLETE,
                confidence=0.9,
                metadata={"session": session},
            )

        if _has_any(folded, START_PHRASES) or (
            _has_any(folded, ("avaliacao",)) and _has_any(folded, ("imre",))
        ):
            return PlatformIntent(type=PlatformIntentType.ASSESSMENT_START, confidence=0.95)

        if _has_any(folded, REPORT_PHRASES):
            return PlatformIntent(type=PlatformIntentType.REPORT_GENERATE, confidence=0.85)

        if _has_any(folded, DASHBOARD_PHRASES):
            return PlatformIntent(type=PlatformIntentType.DASHBOARD_QUERY, confidence=0.8)

        if _has_any(folded, NOTIFY_VERBS) and _has_any(folded, NOTIFY_TARGETS):
            return PlatformIntent(type=PlatformIntentType.NOTIFY_PROFESSIONAL, confidence=0.75)

        return PlatformIntent.none()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        intent: PlatformIntent,
        user_id: Optional[str],
        context_data: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        if intent.type == PlatformIntentType.NONE:
            return ActionResult(success=False)
        if not user_id or not user_id.strip():
            error = InputValidationError("a user id is required for platform actions")
            return ActionResult(success=False, error=str(error))

        context_data = context_data or {}
        handlers = {
            PlatformIntentType.ASSESSMENT_START: self._start_assessment,
            PlatformIntentType.ASSESSMENT_COMPLETE: self._complete_assessment,
            PlatformIntentType.REPORT_GENERATE: self._generate_report,
            PlatformIntentType.DASHBOARD_QUERY: self._query_dashboard,
            PlatformIntentType.NOTIFY_PROFESSIONAL: self._notify_professional,
        }

        try:
            return await handlers[intent.type](intent, user_id, context_data)
        except CollaboratorError as exc:
            logger.warning("Platform action {} failed for {}: {}", intent.type.value, user_id, exc)
            return ActionResult(success=False, error=str(exc), requires_response=True)

    async def _start_assessment(self, intent, user_id, context_data) -> ActionResult:
        reply = await self.machine.start(user_id, patient_name=context_data.get("patient_name"))
        return ActionResult(
            success=True,
            data={
                "assessment_started": reply.created,
                "step": reply.step.value,
                "message": reply.content,
            },
            requires_response=True,
        )

    async def _complete_assessment(self, intent, user_id, context_data) -> ActionResult:
        session = intent.metadata.get("session") or self.store.get(user_id)
        if session is None:
            return ActionResult(
                success=False,
                error=str(SessionAbsentError(user_id)),
                requires_response=True,
            )

        try:
            report = await self.completer.complete(session, answer=context_data.get("answer"))
        except CollaboratorError as exc:
            logger.warning("Assessment completion failed for {}: {}", user_id, exc)
            return ActionResult(
                success=False,
                data={"step": session.step.value},
                error=str(exc),
                requires_response=True,
            )

        await self.machine.record_progress(session, "completed", report_id=report.id)
        return ActionResult(
            success=True,
            data={
                "report_id": report.id,
                "report_generated": True,
                "assessment_completed": True,
                "message": self.machine.COMPLETED.format(report_id=report.id),
            },
            requires_response=True,
        )

    async def _generate_report(self, intent, user_id, context_data) -> ActionResult:
        patient_name = context_data.get("patient_name") or DEFAULT_PATIENT_NAME
        report = await call_collaborator(
            "report_service",
            self.report_service.generate_report(user_id, patient_name, _manual_report_sections()),
            timeout=self.timeout,
        )
        return ActionResult(
            success=True,
            data={"report_id": report.id, "report_generated": True},
            requires_response=True,
        )

    async def _query_dashboard(self, intent, user_id, context_data) -> ActionResult:
        reports = await call_collaborator(
            "report_service",
            self.report_service.list_reports(user_id),
            timeout=self.timeout,
        )
        return ActionResult(
            success=True,
            data={"reports": reports, "report_count": len(reports)},
            requires_response=True,
        )

    async def _notify_professional(self, intent, user_id, context_data) -> ActionResult:
        if self.records is None:
            return ActionResult(
                success=False,
                error="notification channel is not configured",
                requires_response=True,
            )
        message = context_data.get("message") or "Paciente solicitou contato com o profissional."
        request_id = await call_collaborator(
            "patient_records",
            self.records.request_notification(user_id, message, {"source": "noa"}),
            timeout=self.timeout,
        )
        return ActionResult(
            success=True,
            data={"notification_id": request_id, "notified": True},
            requires_response=True,
        )

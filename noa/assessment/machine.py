# noa/assessment/machine.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from noa.assessment.completion import AssessmentCompleter
from noa.assessment.heuristics import (
    is_closing_utterance,
    match_main_complaint,
    split_factors,
)
from noa.assessment.schema import DEFAULT_METHODOLOGY, DEFAULT_RESULT
from noa.assessment.stages import AssessmentStep, InvestigationPhase
from noa.assessment.state import InterviewSession, InvestigationState
from noa.assessment.store import SessionStore
from noa.background import PersistenceQueue
from noa.collaborators import PatientRecordStore
from noa.errors import CollaboratorError, call_collaborator


@dataclass
class StepReply:
    content: str
    step: Optional[AssessmentStep]
    completed: bool = False
    report_id: Optional[str] = None
    degraded: bool = False
    session_missing: bool = False
    created: bool = False


class AssessmentStateMachine:
    """
    Drives the IMRE interview (Investigation -> Methodology -> Result ->
    Evolution -> Completed), one step per call.

    Investigation has four internal phases:
      - presentation
      - open complaint collection ("O que mais?")
      - main complaint selection
      - per-complaint drill-down (location, onset, character,
        associated symptoms, relieving/aggravating factors)

    Questions are fixed templates; the session lives in the SessionStore
    and is mutated in place.
    """

    OPENING = (
        "🌬️ Bons ventos soprem! Vamos iniciar sua avaliação clínica usando o método "
        "IMRE Triaxial - Arte da Entrevista Clínica.\n\n"
        "Por favor, apresente-se e diga em que posso ajudar hoje."
    )
    RESUME = "Sua avaliação clínica já está em andamento. Vamos continuar de onde paramos."
    NO_SESSION = (
        "Não encontrei uma avaliação em andamento. Deseja iniciar uma avaliação clínica "
        "inicial com o protocolo IMRE? É só me dizer \"iniciar avaliação clínica inicial\"."
    )
    COMPLETED = (
        "Avaliação clínica concluída! Seu relatório foi gerado (ID: {report_id}) "
        "e já está disponível no seu dashboard."
    )
    REPORT_FAILED = (
        "Desculpe, não consegui gerar seu relatório agora. Suas respostas foram "
        "preservadas; envie sua última resposta novamente para tentarmos outra vez."
    )

    PROMPTS: Dict[str, str] = {
        InvestigationPhase.PRESENTATION.value: "Por favor, apresente-se e diga em que posso ajudar hoje.",
        "chief_reason": "Obrigada por se apresentar. Qual é o principal motivo que traz você a esta avaliação?",
        "what_else": "O que mais?",
        "need_one": "Antes de seguirmos, conte-me pelo menos uma queixa ou motivo da consulta.",
        "selection": (
            "Entendi. Você mencionou:\n{numbered}\n\n"
            "De todas essas questões, qual mais o(a) incomoda?"
        ),
        AssessmentStep.METHODOLOGY.value: (
            "Obrigada pelos detalhes. Agora, na etapa de Metodologia: quais tratamentos, "
            "medicações ou abordagens você já utilizou para essas questões?"
        ),
        AssessmentStep.RESULT.value: "E quais resultados você percebeu com essas abordagens até agora?",
        AssessmentStep.EVOLUTION.value: (
            "Por fim, na etapa de Evolução: como você gostaria que sua saúde evoluísse "
            "daqui para frente? Quais são seus objetivos?"
        ),
        AssessmentStep.COMPLETED.value: "Esta avaliação já foi concluída.",
    }

    DETAIL_QUESTIONS: Dict[str, str] = {
        "location": "Onde você sente {complaint}?",
        "when": "Quando {complaint} começou?",
        "how": "Como é {complaint}? Descreva como você sente.",
        "associated": "O que mais você sente junto com {complaint}?",
        "factors": "O que parece melhorar e o que parece piorar {complaint}?",
    }

    def __init__(
        self,
        store: SessionStore,
        completer: AssessmentCompleter,
        records: Optional[PatientRecordStore] = None,
        background: Optional[PersistenceQueue] = None,
        drill_all_complaints: bool = False,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.completer = completer
        self.records = records
        self.background = background
        self.drill_all_complaints = drill_all_complaints
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, user_id: str, patient_name: Optional[str] = None) -> StepReply:
        """
        Open an interview for `user_id`, or resume the one already live.
        """
        session, created = self.store.get_or_create(user_id, patient_name=patient_name)
        if not created:
            return StepReply(
                content=f"{self.RESUME}\n\n{self.current_prompt(session)}",
                step=session.step,
            )

        await self.record_progress(session, "in_progress")
        return StepReply(content=self.OPENING, step=session.step, created=True)

    async def advance(self, user_id: str, text: str) -> StepReply:
        """
        Apply one patient message to the live session and return the next
        prompt. Without a session, offer to start one.
        """
        session = self.store.get(user_id)
        if session is None:
            return StepReply(content=self.NO_SESSION, step=None, session_missing=True)

        answer = (text or "").strip()
        previous_step = session.step

        if session.step == AssessmentStep.INVESTIGATION:
            reply = self._investigate(session, answer)
        elif session.step == AssessmentStep.METHODOLOGY:
            session.methodology = answer or DEFAULT_METHODOLOGY
            session.step = AssessmentStep.RESULT
            reply = StepReply(content=self.current_prompt(session), step=session.step)
        elif session.step == AssessmentStep.RESULT:
            session.result = answer or DEFAULT_RESULT
            session.step = AssessmentStep.EVOLUTION
            reply = StepReply(content=self.current_prompt(session), step=session.step)
        elif session.step == AssessmentStep.EVOLUTION:
            return await self._complete(session, answer)
        else:
            return StepReply(content=self.current_prompt(session), step=session.step, completed=True)

        session.touch()
        if session.step != previous_step:
            await self.record_progress(session, "in_progress")
        return reply

    def current_prompt(self, session: InterviewSession) -> str:
        """
        The question the patient is expected to answer next.
        """
        if session.step != AssessmentStep.INVESTIGATION:
            return self.PROMPTS[session.step.value]

        inv = session.investigation
        phase = inv.phase
        if phase == InvestigationPhase.PRESENTATION:
            return self.PROMPTS[phase.value]
        if phase == InvestigationPhase.COMPLAINT_COLLECTION:
            return self.PROMPTS["what_else"] if inv.complaints_list else self.PROMPTS["chief_reason"]
        if phase == InvestigationPhase.MAIN_COMPLAINT_SELECTION:
            return self._selection_prompt(inv)

        complaint = self._current_complaint(inv)
        if complaint is None:
            return self.PROMPTS[AssessmentStep.METHODOLOGY.value]
        field_name = inv.detail_for(complaint).next_field() or "location"
        return self.DETAIL_QUESTIONS[field_name].format(complaint=complaint)

    # ------------------------------------------------------------------
    # Investigation
    # ------------------------------------------------------------------

    def _investigate(self, session: InterviewSession, answer: str) -> StepReply:
        inv = session.investigation
        phase = inv.phase

        if phase == InvestigationPhase.PRESENTATION:
            if not answer:
                return StepReply(content=self.PROMPTS[phase.value], step=session.step)
            inv.presenting_self = answer
            inv.collecting_complaints = True
            return StepReply(content=self.PROMPTS["chief_reason"], step=session.step)

        if phase == InvestigationPhase.COMPLAINT_COLLECTION:
            return self._collect_complaint(session, answer)

        if phase == InvestigationPhase.MAIN_COMPLAINT_SELECTION:
            main = match_main_complaint(answer, inv.complaints_list)
            inv.main_complaint = main
            inv.current_complaint_index = 0
            inv.selecting_main_complaint = False
            inv.detail_for(main)
            question = self.DETAIL_QUESTIONS["location"].format(complaint=main)
            return StepReply(
                content=f"Vamos explorar melhor: {main}.\n{question}",
                step=session.step,
            )

        return self._record_detail(session, answer)

    def _collect_complaint(self, session: InterviewSession, answer: str) -> StepReply:
        inv = session.investigation

        if answer and is_closing_utterance(answer):
            if not inv.complaints_list:
                return StepReply(content=self.PROMPTS["need_one"], step=session.step)
            inv.collecting_complaints = False
            inv.selecting_main_complaint = True
            return StepReply(content=self._selection_prompt(inv), step=session.step)

        if answer:
            inv.complaints_list.append(answer)
        return StepReply(content=self.current_prompt(session), step=session.step)

    def _record_detail(self, session: InterviewSession, answer: str) -> StepReply:
        inv = session.investigation
        complaint = self._current_complaint(inv)
        if complaint is None:
            session.step = AssessmentStep.METHODOLOGY
            return StepReply(content=self.current_prompt(session), step=session.step)

        detail = inv.detail_for(complaint)
        field_name = detail.next_field()

        if field_name == "factors":
            improves, worsens = split_factors(answer)
            detail.improves = improves
            detail.worsens = worsens
        elif field_name is not None:
            setattr(detail, field_name, answer)

        if not detail.is_complete:
            next_field = detail.next_field()
            return StepReply(
                content=self.DETAIL_QUESTIONS[next_field].format(complaint=complaint),
                step=session.step,
            )

        inv.current_complaint_index += 1
        next_complaint = self._current_complaint(inv)
        if next_complaint is not None:
            inv.detail_for(next_complaint)
            question = self.DETAIL_QUESTIONS["location"].format(complaint=next_complaint)
            return StepReply(
                content=f"Agora vamos falar sobre: {next_complaint}.\n{question}",
                step=session.step,
            )

        session.step = AssessmentStep.METHODOLOGY
        return StepReply(content=self.current_prompt(session), step=session.step)

    def _drill_queue(self, inv: InvestigationState) -> List[str]:
        main = inv.main_complaint or (inv.complaints_list[0] if inv.complaints_list else None)
        if main is None:
            return []
        queue = [main]
        if self.drill_all_complaints:
            queue.extend(c for c in inv.complaints_list if c != main)
        return queue

    def _current_complaint(self, inv: InvestigationState) -> Optional[str]:
        queue = self._drill_queue(inv)
        if inv.current_complaint_index < len(queue):
            return queue[inv.current_complaint_index]
        return None

    def _selection_prompt(self, inv: InvestigationState) -> str:
        numbered = "\n".join(
            f"{i}. {complaint}" for i, complaint in enumerate(inv.complaints_list, start=1)
        )
        return self.PROMPTS["selection"].format(numbered=numbered)

    # ------------------------------------------------------------------
    # Completion & persistence
    # ------------------------------------------------------------------

    async def _complete(self, session: InterviewSession, answer: str) -> StepReply:
        try:
            report = await self.completer.complete(session, answer=answer)
        except CollaboratorError as exc:
            logger.warning("Report generation failed for {}: {}", session.user_id, exc)
            return StepReply(
                content=self.REPORT_FAILED,
                step=session.step,
                degraded=True,
            )

        await self.record_progress(session, "completed", report_id=report.id)
        return StepReply(
            content=self.COMPLETED.format(report_id=report.id),
            step=AssessmentStep.COMPLETED,
            completed=True,
            report_id=report.id,
        )

    async def record_progress(self, session: InterviewSession, status: str, **extra) -> None:
        """
        Best-effort upsert of the assessment record; queued when a background
        queue is configured.
        """
        if self.records is None:
            return

        data = session.to_dict()
        data.update(extra)
        records = self.records
        user_id = session.user_id

        def job():
            return call_collaborator(
                "patient_records",
                records.upsert_assessment_record(user_id, status, data),
                timeout=self.timeout,
            )

        if self.background is not None:
            self.background.submit("assessment_record", job)
            return

        try:
            await job()
        except CollaboratorError as exc:
            logger.warning("Could not persist assessment record for {}: {}", user_id, exc)

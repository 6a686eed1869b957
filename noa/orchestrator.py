# noa/orchestrator.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from noa.assessment.machine import AssessmentStateMachine
from noa.assessment.store import SessionStore
from noa.background import PersistenceQueue
from noa.collaborators import (
    AssistantService,
    KnowledgeSearch,
    PatientRecordStore,
    PlatformDataSource,
)
from noa.errors import CollaboratorError, InputValidationError, NoaError, call_collaborator
from noa.knowledge import KnowledgeHighlight, extract_knowledge_query, find_knowledge_highlight
from noa.memory import ConversationLog, ConversationMessage, MemoryEntry, MemoryRing
from noa.nlp.classifier import IntentClassifier
from noa.nlp.intents import Intent, IntentType
from noa.platform.dispatcher import ActionDispatcher
from noa.platform.intents import ActionResult, PlatformIntent, PlatformIntentType
from noa.response.payloads import ImrePayload, payload_for
from noa.response.synthesizer import ResponseSynthesizer, SynthesisOptions

ASSISTANT_CONFIDENCE = 0.97
ASSISTANT_FALLBACK_CONFIDENCE = 0.86
INTERVIEW_CONFIDENCE = 0.9
CLINICAL_CONFIDENCE = 0.85
SMALL_TALK_CONFIDENCE = 0.8
GUIDANCE_CONFIDENCE = 0.6
ERROR_CONFIDENCE = 0.3

ROUTE_CONTEXT = "clinica"


@dataclass
class Reply:
    content: str
    confidence: float
    type: str = "text"  # text | assessment | error
    metadata: Dict[str, Any] = field(default_factory=dict)


def knowledge_library_query(text: str) -> Optional[str]:
    parts = text.split(" ")
    if len(parts) < 3:
        return None
    return " ".join(parts[-3:])


class ConversationOrchestrator:
    """
    Entry point for one user message.

    Per call: classify the clinical intent, detect and run the platform
    action, look up a knowledge highlight, then either delegate to the
    assistant service or answer locally (action outcome, interview step, or
    a synthesized clinical reply). The exchange is kept in memory and the
    interaction snapshot is queued for persistence.

    Calls for the same user id are serialised; different users run
    concurrently.
    """

    GENERIC_ERROR = "Desculpe, ocorreu um erro ao processar sua mensagem. Tente novamente."
    PLATFORM_ERROR = (
        "Encontrei uma intercorrência ao consultar a plataforma. "
        "Podemos tentar novamente ou ajustar o comando clínico?"
    )
    ACTION_ERROR = "Não consegui concluir a ação solicitada agora. Podemos tentar novamente?"
    SMALL_TALK = (
        "Gratidão pelo contato. Sigo à disposição para novos comandos clínicos ou dúvidas pedagógicas."
    )
    ASK_NEXT = "Pode me orientar sobre o próximo passo clínico ou dúvida sobre a plataforma?"
    LAST_EXCHANGE = (
        'Entendi. Em nossa última interação falamos sobre "{content}". '
        "Deseja aprofundar ou abrir novo foco?"
    )
    INTRO = (
        "Estou pronta para auxiliar com protocolos de cannabis medicinal, nefrologia "
        "e metodologia IMRE. Como posso contribuir?"
    )

    def __init__(
        self,
        classifier: IntentClassifier,
        store: SessionStore,
        machine: AssessmentStateMachine,
        dispatcher: ActionDispatcher,
        synthesizer: ResponseSynthesizer,
        knowledge: Optional[KnowledgeSearch] = None,
        assistant: Optional[AssistantService] = None,
        platform: Optional[PlatformDataSource] = None,
        records: Optional[PatientRecordStore] = None,
        background: Optional[PersistenceQueue] = None,
        memory: Optional[MemoryRing] = None,
        conversation_log: Optional[ConversationLog] = None,
        timeout: Optional[float] = None,
        clinician_profile: Optional[str] = None,
    ):
        self.classifier = classifier
        self.store = store
        self.machine = machine
        self.dispatcher = dispatcher
        self.synthesizer = synthesizer
        self.knowledge = knowledge
        self.assistant = assistant
        self.platform = platform
        self.records = records
        self.background = background or PersistenceQueue()
        self.memory = memory or MemoryRing()
        self.conversation_log = conversation_log or ConversationLog()
        self.timeout = timeout
        self.clinician_profile = clinician_profile

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle(
        self,
        user_id: str,
        text: str,
        patient_name: Optional[str] = None,
    ) -> Reply:
        text = text or ""
        if not user_id or not user_id.strip():
            exc = InputValidationError("user id is required")
            logger.warning("Rejected message: {}", exc)
            return Reply(self.GENERIC_ERROR, ERROR_CONFIDENCE, "error", {"error": str(exc)})

        async with self.store.lock_for(user_id):
            intent = self.classifier.classify(text)
            try:
                reply = await self._respond(user_id, text, intent, patient_name)
            except NoaError as exc:
                logger.exception("Turn failed for {}", user_id)
                reply = Reply(self.GENERIC_ERROR, ERROR_CONFIDENCE, "error", {"error": str(exc)})

            reply.metadata.setdefault("intent", intent.type.value)
            reply.metadata.setdefault("domain", intent.domain.value)
            self._remember(user_id, text, intent, reply)
            return reply

    def get_memory(self) -> List[MemoryEntry]:
        return self.memory.snapshot()

    def clear_memory(self) -> None:
        self.memory.clear()

    def get_session_state(self, user_id: str) -> Optional[Dict[str, Any]]:
        session = self.store.get(user_id)
        return session.to_dict() if session is not None else None

    def get_history(self, user_id: str) -> List[ConversationMessage]:
        return self.conversation_log.history(user_id)

    # ------------------------------------------------------------------
    # One turn
    # ------------------------------------------------------------------

    async def _respond(
        self,
        user_id: str,
        text: str,
        intent: Intent,
        patient_name: Optional[str],
    ) -> Reply:
        platform_intent = self.dispatcher.detect(text, user_id)
        interview_was_active = user_id in self.store

        context_data = {"patient_name": patient_name, "answer": text, "message": text}
        action_result, highlight = await asyncio.gather(
            self._run_action(platform_intent, user_id, context_data),
            self._lookup_highlight(text, skip=interview_was_active),
        )

        action_context = None
        if action_result is not None and action_result.requires_response:
            action_context = self._describe_action(platform_intent, action_result)

        interview_active = user_id in self.store

        if self.assistant is not None and not interview_active:
            reply = await self._ask_assistant(
                user_id, text, intent, patient_name, action_context, highlight
            )
            if reply is not None:
                if platform_intent.type != PlatformIntentType.NONE:
                    reply.metadata["platform_action"] = platform_intent.type.value
                return reply

        if action_context is not None:
            return self._action_reply(platform_intent, action_result, action_context)

        if interview_active:
            step = await self.machine.advance(user_id, text)
            return Reply(
                step.content,
                ERROR_CONFIDENCE if step.degraded else INTERVIEW_CONFIDENCE,
                "error" if step.degraded else "assessment",
                {"step": step.step.value if step.step else None, "report_id": step.report_id},
            )

        return await self._clinical_reply(user_id, text, intent, highlight)

    async def _run_action(
        self,
        platform_intent: PlatformIntent,
        user_id: str,
        context_data: Dict[str, Any],
    ) -> Optional[ActionResult]:
        if platform_intent.type == PlatformIntentType.NONE:
            return None
        return await self.dispatcher.execute(platform_intent, user_id, context_data)

    async def _lookup_highlight(self, text: str, skip: bool) -> Optional[KnowledgeHighlight]:
        if self.knowledge is None or skip or not text.strip():
            return None
        return await find_knowledge_highlight(
            self.knowledge, extract_knowledge_query(text), timeout=self.timeout
        )

    def _describe_action(self, platform_intent: PlatformIntent, result: ActionResult) -> str:
        data = result.data or {}
        kind = platform_intent.type

        if not result.success:
            return f"A ação {kind.value} não pôde ser concluída: {result.error or 'erro desconhecido'}."
        if kind == PlatformIntentType.ASSESSMENT_START:
            if data.get("assessment_started"):
                return "Avaliação clínica inicial iniciada pelo protocolo IMRE (etapa de Investigação)."
            return f"Avaliação clínica já em andamento (etapa {data.get('step')})."
        if kind == PlatformIntentType.ASSESSMENT_COMPLETE:
            return f"Avaliação clínica concluída; relatório {data.get('report_id')} gerado."
        if kind == PlatformIntentType.REPORT_GENERATE:
            return f"Relatório clínico {data.get('report_id')} gerado e salvo no dashboard."
        if kind == PlatformIntentType.DASHBOARD_QUERY:
            reports = data.get("reports") or []
            if not reports:
                return "Nenhum relatório clínico salvo no dashboard até o momento."
            ids = ", ".join(str(r.id) for r in reports[:3])
            return f"{data.get('report_count', len(reports))} relatório(s) no dashboard. Mais recentes: {ids}."
        if kind == PlatformIntentType.NOTIFY_PROFESSIONAL:
            return (
                "Solicitação de contato enviada ao profissional responsável "
                f"(protocolo {data.get('notification_id')})."
            )
        return ""

    def _action_reply(
        self,
        platform_intent: PlatformIntent,
        result: ActionResult,
        action_context: str,
    ) -> Reply:
        data = result.data or {}
        metadata = {"platform_action": platform_intent.type.value}
        assessment_action = platform_intent.type in (
            PlatformIntentType.ASSESSMENT_START,
            PlatformIntentType.ASSESSMENT_COMPLETE,
        )

        if not result.success:
            content = (
                self.machine.REPORT_FAILED
                if platform_intent.type == PlatformIntentType.ASSESSMENT_COMPLETE
                else self.ACTION_ERROR
            )
            metadata["error"] = result.error
            metadata["step"] = data.get("step")
            return Reply(content, ERROR_CONFIDENCE, "error", metadata)

        if data.get("report_id"):
            metadata["report_id"] = data["report_id"]
        return Reply(
            data.get("message") or action_context,
            platform_intent.confidence,
            "assessment" if assessment_action else "text",
            metadata,
        )

    async def _ask_assistant(
        self,
        user_id: str,
        text: str,
        intent: Intent,
        patient_name: Optional[str],
        action_context: Optional[str],
        highlight: Optional[KnowledgeHighlight],
    ) -> Optional[Reply]:
        prompt = self._compose_prompt(text, intent, patient_name or user_id, action_context, highlight)
        try:
            answer = await call_collaborator(
                "assistant",
                self.assistant.send_message(prompt, user_id=user_id, route_context=ROUTE_CONTEXT),
                timeout=self.timeout,
            )
        except CollaboratorError as exc:
            logger.warning("Assistant unavailable, answering locally: {}", exc)
            return None

        if answer is None or not answer.content:
            return None

        metadata = {"source": answer.source, **answer.metadata}
        if highlight is not None:
            metadata["knowledge_highlight"] = highlight.id
        confidence = (
            ASSISTANT_CONFIDENCE if answer.source == "assistant" else ASSISTANT_FALLBACK_CONFIDENCE
        )
        return Reply(answer.content, confidence, "text", metadata)

    def _compose_prompt(
        self,
        text: str,
        intent: Intent,
        user_label: str,
        action_context: Optional[str],
        highlight: Optional[KnowledgeHighlight],
    ) -> str:
        lines = [
            "Contexto da plataforma:",
            f"- Usuário: {user_label}",
            f"- Intenção detectada: {intent.type.value} (domínio {intent.domain.value})",
        ]
        if action_context:
            lines.append(f"- Ação da plataforma: {action_context}")
        if highlight is not None:
            lines.append(f"- Base de conhecimento: {highlight.title}\n  {highlight.summary}")
        return "\n".join(lines) + f"\n\nMensagem do usuário:\n{text}"

    async def _clinical_reply(
        self,
        user_id: str,
        text: str,
        intent: Intent,
        highlight: Optional[KnowledgeHighlight],
    ) -> Reply:
        if intent.type == IntentType.SMALL_TALK:
            return Reply(self.SMALL_TALK, SMALL_TALK_CONFIDENCE)

        if not intent.is_clinical:
            if not text.strip():
                return Reply(self.ASK_NEXT, GUIDANCE_CONFIDENCE)
            previous = self.conversation_log.last(user_id, role="user")
            if previous is not None:
                return Reply(self.LAST_EXCHANGE.format(content=previous.content), GUIDANCE_CONFIDENCE)
            return Reply(self.INTRO, GUIDANCE_CONFIDENCE)

        try:
            payload = await self._fetch_payload(intent, text)
        except CollaboratorError as exc:
            logger.warning("Platform data unavailable for {}: {}", intent.type.value, exc)
            return Reply(self.PLATFORM_ERROR, ERROR_CONFIDENCE, "error", {"error": str(exc)})

        options = SynthesisOptions(
            clinician_profile=self.clinician_profile,
            context_summary=highlight.render() if highlight is not None else None,
        )
        response = self.synthesizer.synthesize(intent, payload, options)
        metadata = {}
        if highlight is not None:
            metadata["knowledge_highlight"] = highlight.id
        return Reply(response.render(), CLINICAL_CONFIDENCE, "text", metadata)

    async def _fetch_payload(self, intent: Intent, text: str):
        if intent.type == IntentType.IMRE_ANALYSIS:
            return ImrePayload(domain=intent.domain)
        if self.platform is None:
            return None

        fetchers = {
            IntentType.STATUS: self.platform.get_platform_status,
            IntentType.TRAINING_CONTEXT: self.platform.get_training_context,
            IntentType.SIMULATION: self.platform.get_patient_simulations,
        }
        if intent.type == IntentType.KNOWLEDGE:
            call = self.platform.get_knowledge_library(knowledge_library_query(text))
        else:
            call = fetchers[intent.type]()

        data = await call_collaborator("platform_api", call, timeout=self.timeout)
        try:
            return payload_for(intent.type, data)
        except ValidationError as exc:
            raise CollaboratorError("platform_api", f"unexpected payload: {exc}") from exc

    # ------------------------------------------------------------------
    # Memory & persistence
    # ------------------------------------------------------------------

    def _remember(self, user_id: str, text: str, intent: Intent, reply: Reply) -> None:
        self.conversation_log.append(
            user_id, ConversationMessage(role="user", content=text, intent=intent.type.value)
        )
        self.conversation_log.append(
            user_id,
            ConversationMessage(
                role="assistant",
                content=reply.content,
                intent=intent.type.value,
                metadata=dict(reply.metadata),
            ),
        )
        self.memory.remember_exchange(
            text,
            reply.content,
            importance=reply.confidence,
            entry_type="assessment" if reply.type == "assessment" else "conversation",
        )

        if self.records is None:
            return

        records = self.records
        snapshot = {
            "user_message": text,
            "reply": reply.content,
            "reply_type": reply.type,
            "confidence": reply.confidence,
            "intent": intent.type.value,
            "domain": intent.domain.value,
            "metadata": {k: v for k, v in reply.metadata.items() if _is_plain(v)},
        }
        self.background.submit(
            "interaction_snapshot",
            lambda: call_collaborator(
                "patient_records",
                records.record_interaction(user_id, snapshot),
                timeout=self.timeout,
            ),
        )


def _is_plain(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))

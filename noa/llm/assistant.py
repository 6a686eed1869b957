# noa/llm/assistant.py
from __future__ import annotations

import time
from collections import OrderedDict
from typing import Dict, List, Optional

from loguru import logger

from noa.collaborators import AssistantReply
from noa.llm.client import LLMClient

SYSTEM_PROMPT = (
    "Você é Nôa Esperança, a IA Residente especializada em avaliações clínicas e "
    "treinamentos da plataforma MedCannLab.\n\n"
    "Sua especialização inclui:\n"
    "- Avaliações clínicas iniciais usando o método IMRE Triaxial\n"
    "- Arte da Entrevista Clínica (AEC)\n"
    "- Cannabis medicinal e nefrologia\n"
    "- Treinamentos especializados\n"
    "- Análise de casos clínicos\n"
    "- Orientações terapêuticas\n\n"
    "Cumprimente de forma breve apenas uma vez na conversa e vá direto ao ponto. "
    "Quando o contexto trouxer uma ação da plataforma, mencione o resultado dela. "
    "Sempre seja empática, profissional e focada na saúde do paciente."
)

# Kept per user so the assistant sees the recent exchange.
HISTORY_TURNS = 6
# Least recently active users are dropped beyond this.
HISTORY_USERS = 1000


class LLMAssistantService:
    """
    Assistant collaborator backed by an LLMClient.

    Replies are tagged "assistant"; when the model returns nothing the
    service answers with `fallback_message` tagged "fallback".
    """

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.7,
        fallback_message: Optional[str] = None,
    ):
        self.llm = llm_client
        self.temperature = temperature
        self.fallback_message = fallback_message or (
            "Estou com dificuldade para acessar meu assistente agora, mas sigo disponível "
            "para conduzir sua avaliação clínica ou consultar a plataforma."
        )
        self._history: "OrderedDict[str, List[Dict[str, str]]]" = OrderedDict()

    async def send_message(
        self,
        prompt: str,
        user_id: Optional[str] = None,
        route_context: Optional[str] = None,
    ) -> AssistantReply:
        history = self._history_for(user_id or "anonymous")
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        if route_context:
            messages.append({"role": "system", "content": f"Rota atual: {route_context}"})
        messages.extend(history[-HISTORY_TURNS * 2:])
        messages.append({"role": "user", "content": prompt})

        started = time.perf_counter()
        content = (await self.llm.chat(messages, temperature=self.temperature)).strip()
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        if not content:
            logger.warning("Assistant returned an empty answer for {}", user_id)
            return AssistantReply(
                content=self.fallback_message,
                source="fallback",
                metadata={"processing_time_ms": elapsed_ms},
            )

        history.append({"role": "user", "content": prompt})
        history.append({"role": "assistant", "content": content})
        del history[:-HISTORY_TURNS * 2]
        return AssistantReply(
            content=content,
            source="assistant",
            metadata={
                "model": getattr(self.llm, "default_model", None),
                "processing_time_ms": elapsed_ms,
            },
        )

    def _history_for(self, user_id: str) -> List[Dict[str, str]]:
        history = self._history.get(user_id)
        if history is None:
            history = self._history[user_id] = []
            if len(self._history) > HISTORY_USERS:
                self._history.popitem(last=False)
        else:
            self._history.move_to_end(user_id)
        return history

# noa/response/synthesizer.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from noa.nlp.intents import Intent, IntentType
from noa.response.payloads import (
    ImrePayload,
    KnowledgePayload,
    Payload,
    SimulationPayload,
    StatusPayload,
    TrainingPayload,
)
from noa.response.phrases import EMPATHY_PHRASES, PhraseSource, RandomPhraseSource

NO_DATA_SUMMARY = (
    "Não encontrei dados adicionais neste momento, mas posso investigar outra fonte se desejar."
)

CONFIRMATIONS: Dict[IntentType, str] = {
    IntentType.STATUS: "Vou verificar o status operacional da plataforma.",
    IntentType.TRAINING_CONTEXT: (
        "Reunindo o histórico recente de treinamento para IMRE e metodologias associadas."
    ),
    IntentType.SIMULATION: (
        "Vamos revisar as simulações clínicas em andamento para ajustar a triagem."
    ),
    IntentType.KNOWLEDGE: "Consultando a biblioteca médica para trazer a evidência mais relevante.",
    IntentType.IMRE_ANALYSIS: "Integrarei os eixos IMRE Triaxial com escuta e hipóteses clínicas.",
}
DEFAULT_CONFIRMATION = "Estou processando seu pedido com atenção plena."


@dataclass
class SynthesisOptions:
    clinician_profile: Optional[str] = None
    # Extra line appended to the summary (e.g. a knowledge highlight).
    context_summary: Optional[str] = None


@dataclass
class SynthesizedResponse:
    intro: str
    confirmation: str
    summary: str

    def render(self) -> str:
        return f"{self.intro}\n{self.confirmation}\n{self.summary}"


def describe_status(payload: StatusPayload) -> str:
    base = (
        f"Sistema identificado como {payload.status}."
        if payload.status
        else "Status operacional coletado."
    )
    updated = f" Última atualização registrada em {payload.updated_at}." if payload.updated_at else ""
    notes = f" Observação técnica: {payload.notes}" if payload.notes else ""
    return f"{base}{updated}{notes}".strip()


def describe_training(payload: TrainingPayload) -> str:
    if not payload.modules:
        return (
            "Nenhum módulo de treinamento encontrado. Podemos iniciar uma nova trilha "
            "focada em cannabis medicinal ou nefrologia."
        )
    highlighted = ", ".join(f"{m.title} ({m.focus})" for m in payload.modules[:3])
    return (
        f"Módulos priorizados: {highlighted}. "
        "Podemos revisar objetivos e registrar insights IMRE para cada um."
    )


def describe_simulations(payload: SimulationPayload) -> str:
    if not payload.simulations:
        return (
            "Nenhuma simulação ativa. Podemos abrir um cenário com foco em dor crônica "
            "ou ajuste renal para cannabis medicinal."
        )
    overview = "; ".join(f"{s.specialty} ({s.status})" for s in payload.simulations[:3])
    return f"Simulações monitoradas: {overview}. Posso detalhar intervenções sugeridas."


def describe_knowledge(payload: KnowledgePayload) -> str:
    if not payload.entries:
        return (
            "Biblioteca sem resultados para esse recorte. Ajuste o termo ou peça "
            "sugestões clínicas que eu pesquiso por você."
        )
    highlights = " | ".join(f"{e.title} [{e.category}]" for e in payload.entries[:3])
    return f"Conteúdos em destaque: {highlights}. Envio o link completo mediante confirmação."


def describe_imre(payload: ImrePayload) -> str:
    return (
        "Vamos correlacionar sinais, sintomas e camadas contextuais pelo IMRE Triaxial. "
        "Posso aprofundar-se em cada eixo se precisar."
    )


FORMATTERS: Dict[str, Callable] = {
    "status": describe_status,
    "training": describe_training,
    "simulation": describe_simulations,
    "knowledge": describe_knowledge,
    "imre": describe_imre,
}


class ResponseSynthesizer:
    """
    Composes intro + confirmation + payload summary. No business logic:
    given the same phrase source the output is deterministic.
    """

    def __init__(self, phrases: Optional[PhraseSource] = None):
        self.phrases = phrases or RandomPhraseSource()

    def introduction(self, clinician_profile: Optional[str] = None) -> str:
        greeting = f"Olá, {clinician_profile}." if clinician_profile else "Olá."
        return f"{greeting} {self.phrases.pick(EMPATHY_PHRASES)}"

    def confirmation(self, intent: Intent) -> str:
        return CONFIRMATIONS.get(intent.type, DEFAULT_CONFIRMATION)

    def summarize(self, payload: Optional[Payload]) -> str:
        if payload is None:
            return NO_DATA_SUMMARY
        return FORMATTERS[payload.kind](payload)

    def synthesize(
        self,
        intent: Intent,
        payload: Optional[Payload] = None,
        options: Optional[SynthesisOptions] = None,
    ) -> SynthesizedResponse:
        options = options or SynthesisOptions()
        summary = self.summarize(payload)
        if options.context_summary:
            summary = f"{summary}\n{options.context_summary}"
        return SynthesizedResponse(
            intro=self.introduction(options.clinician_profile),
            confirmation=self.confirmation(intent),
            summary=summary,
        )

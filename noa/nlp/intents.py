# noa/nlp/intents.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List


class IntentType(str, Enum):
    # Declaration order is the tie-break order used by the classifier.
    STATUS = "STATUS"
    TRAINING_CONTEXT = "TRAINING_CONTEXT"
    SIMULATION = "SIMULATION"
    KNOWLEDGE = "KNOWLEDGE"
    IMRE_ANALYSIS = "IMRE_ANALYSIS"
    SMALL_TALK = "SMALL_TALK"
    UNKNOWN = "UNKNOWN"


class Domain(str, Enum):
    CANNABIS = "cannabis"
    NEPHROLOGY = "nephrology"
    GENERAL = "general"


CLINICAL_INTENTS: FrozenSet[IntentType] = frozenset(
    {
        IntentType.STATUS,
        IntentType.TRAINING_CONTEXT,
        IntentType.SIMULATION,
        IntentType.KNOWLEDGE,
        IntentType.IMRE_ANALYSIS,
    }
)

# Intent used when no keyword matched but the text carries domain vocabulary.
CLINICAL_CATCH_ALL = IntentType.IMRE_ANALYSIS

KEYWORD_MATRIX: Dict[IntentType, List[str]] = {
    IntentType.STATUS: ["status", "plataforma", "sistema", "online", "latência", "healthcheck"],
    IntentType.TRAINING_CONTEXT: ["treinamento", "histórico", "contexto", "módulo", "imre", "triaxial"],
    IntentType.SIMULATION: ["simulação", "simulacao", "paciente", "caso clínico", "case", "triagem"],
    IntentType.KNOWLEDGE: ["biblioteca", "protocolo", "dissertação", "artigo", "paper", "guideline"],
    IntentType.IMRE_ANALYSIS: ["imre", "triaxial", "escuta", "entrevista clínica", "análise", "contextualizar"],
    IntentType.SMALL_TALK: ["obrigado", "agradeço", "como você está", "bom dia", "olá"],
    IntentType.UNKNOWN: [],
}

CANNABIS_KEYWORDS: List[str] = ["cannabis", "canabidiol", "thc", "terpeno"]
NEPHROLOGY_KEYWORDS: List[str] = ["nefro", "rim", "renal", "hemodiálise", "creatinina"]


@dataclass(frozen=True)
class Intent:
    """
    Result of one classification call. Immutable.
    """

    type: IntentType
    confidence: float
    domain: Domain
    raw_input: str
    keywords: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_clinical(self) -> bool:
        return self.type in CLINICAL_INTENTS

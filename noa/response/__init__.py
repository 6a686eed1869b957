# noa/response/__init__.py
from .payloads import (
    ImrePayload,
    KnowledgePayload,
    Payload,
    SimulationPayload,
    StatusPayload,
    TrainingPayload,
    payload_for,
)
from .phrases import EMPATHY_PHRASES, FixedPhraseSource, PhraseSource, RandomPhraseSource
from .synthesizer import (
    DEFAULT_CONFIRMATION,
    NO_DATA_SUMMARY,
    ResponseSynthesizer,
    SynthesisOptions,
    SynthesizedResponse,
)

__all__ = [
    "ImrePayload",
    "KnowledgePayload",
    "Payload",
    "SimulationPayload",
    "StatusPayload",
    "TrainingPayload",
    "payload_for",
    "EMPATHY_PHRASES",
    "FixedPhraseSource",
    "PhraseSource",
    "RandomPhraseSource",
    "DEFAULT_CONFIRMATION",
    "NO_DATA_SUMMARY",
    "ResponseSynthesizer",
    "SynthesisOptions",
    "SynthesizedResponse",
]

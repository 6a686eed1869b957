# noa/response/phrases.py
from __future__ import annotations

import random
from typing import Optional, Protocol, Sequence

EMPATHY_PHRASES = (
    "Estou aqui para apoiar cada passo da sua avaliação clínica.",
    "Vamos integrar ciência, escuta ativa e protocolos atualizados.",
    "Seguirei com acolhimento e foco na segurança do paciente.",
)


class PhraseSource(Protocol):
    def pick(self, phrases: Sequence[str]) -> str:
        ...


class RandomPhraseSource:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def pick(self, phrases: Sequence[str]) -> str:
        return self.rng.choice(list(phrases))


class FixedPhraseSource:
    """
    Deterministic source: returns phrases[index], advancing by `step` on
    every pick (step=0 always returns the same phrase).
    """

    def __init__(self, index: int = 0, step: int = 0):
        self.index = index
        self.step = step

    def pick(self, phrases: Sequence[str]) -> str:
        phrase = phrases[self.index % len(phrases)]
        self.index += self.step
        return phrase

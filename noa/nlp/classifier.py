# noa/nlp/classifier.py
from __future__ import annotations

import unicodedata
from typing import Dict, List, Optional, Sequence

from noa.nlp.intents import (
    CANNABIS_KEYWORDS,
    CLINICAL_CATCH_ALL,
    KEYWORD_MATRIX,
    NEPHROLOGY_KEYWORDS,
    Domain,
    Intent,
    IntentType,
)


def normalize(text: str) -> str:
    """
    Lowercase, NFD-decompose and replace anything that is not a letter,
    digit or whitespace with a space.

    Combining accents become spaces, so keywords must go through the
    same function before matching.
    """
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    return "".join(ch if ch.isalnum() or ch.isspace() else " " for ch in decomposed)


def fold(text: str) -> str:
    """
    Lowercase and strip accents, keeping everything else. Used by the
    interview heuristics where "só isso" and "so isso" must compare equal.
    """
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split())


class IntentClassifier:
    """
    Keyword-scoring classifier over a fixed, ordered intent taxonomy.

    classify() is total: it never raises, whatever the input.
    """

    def __init__(
        self,
        keyword_matrix: Optional[Dict[IntentType, List[str]]] = None,
        cannabis_keywords: Sequence[str] = CANNABIS_KEYWORDS,
        nephrology_keywords: Sequence[str] = NEPHROLOGY_KEYWORDS,
    ):
        matrix = keyword_matrix or KEYWORD_MATRIX
        # (intent, [(original keyword, normalized keyword), ...]) in declared order
        self._categories = [
            (intent, [(kw, normalize(kw).strip()) for kw in matrix.get(intent, [])])
            for intent in IntentType
            if intent is not IntentType.UNKNOWN
        ]
        self._cannabis = [normalize(kw).strip() for kw in cannabis_keywords]
        self._nephrology = [normalize(kw).strip() for kw in nephrology_keywords]

    def classify(self, text: Optional[str]) -> Intent:
        raw_input = text if isinstance(text, str) else ""
        normalized = normalize(raw_input)

        best_intent = IntentType.UNKNOWN
        best_score = 0
        matched: List[str] = []

        for intent, keywords in self._categories:
            score = 0
            for original, norm_kw in keywords:
                if norm_kw and norm_kw in normalized:
                    score += 1
                    matched.append(original)
            # Strictly greater: ties keep the earlier category.
            if score > best_score:
                best_intent = intent
                best_score = score

        domain = self._detect_domain(normalized)

        if best_score == 0:
            if not normalized.strip():
                return Intent(
                    type=IntentType.UNKNOWN,
                    confidence=0.0,
                    domain=domain,
                    raw_input=raw_input,
                )
            if domain is not Domain.GENERAL:
                best_intent = CLINICAL_CATCH_ALL
                best_score = 1

        bonus = 0.1 if domain is not Domain.GENERAL else 0.0
        confidence = min(1.0, best_score / 3 + bonus)

        return Intent(
            type=best_intent,
            confidence=confidence,
            domain=domain,
            raw_input=raw_input,
            keywords=frozenset(matched),
        )

    def _detect_domain(self, normalized: str) -> Domain:
        if any(kw and kw in normalized for kw in self._cannabis):
            return Domain.CANNABIS
        if any(kw and kw in normalized for kw in self._nephrology):
            return Domain.NEPHROLOGY
        return Domain.GENERAL

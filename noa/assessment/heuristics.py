# noa/assessment/heuristics.py
from __future__ import annotations

import re
import unicodedata
from typing import List, Optional, Tuple

from noa.nlp.classifier import fold

# Compared after accent folding.
CLOSING_PHRASES = (
    "so isso",
    "somente isso",
    "apenas isso",
    "nada mais",
    "mais nada",
    "nao tenho mais",
    "nao ha mais",
    "acho que e so",
    "era isso",
    "terminei",
)
NEGATION_WORDS = frozenset({"nao", "nada", "nenhum", "nenhuma", "nunca"})
SHORT_NEGATIVE_MAX_LEN = 20
CLOSING_PHRASE_MAX_LEN = 40
# Too ambiguous to look for inside longer sentences.
EXACT_CLOSING_REPLIES = frozenset({"e isso", "e so", "so", "nada", "nao"})

IMPROVE_KEYWORDS = ("melhora", "alivia", "alivio", "passa", "ajuda")
WORSEN_KEYWORDS = ("piora", "agrava", "intensifica", "aumenta")

MATCH_PREFIX_LEN = 10

_TRAILING_JOINER = re.compile(r"[\s,;.]*(\b(e|mas|porem|porém)\b)?[\s,;.]*$")


def is_closing_utterance(text: str) -> bool:
    """
    True when the patient signals there are no more complaints: one of the
    fixed "nothing else" phrases, or a short reply with a negation word.
    """
    folded = fold(text).strip(" .!?")
    if not folded:
        return False
    if folded in EXACT_CLOSING_REPLIES or folded in CLOSING_PHRASES:
        return True
    if len(folded) < CLOSING_PHRASE_MAX_LEN and any(
        re.search(rf"\b{p}\b", folded) for p in CLOSING_PHRASES
    ):
        return True
    if len(folded) < SHORT_NEGATIVE_MAX_LEN:
        words = set(re.findall(r"\w+", folded))
        return bool(words & NEGATION_WORDS)
    return False


def match_main_complaint(answer: str, complaints: List[str]) -> Optional[str]:
    """
    Pick the complaint the patient referred to.

    A list number ("2") selects by position. Otherwise the first complaint
    whose first characters appear in the answer, or vice versa, wins
    (case-insensitive). Falls back to the first complaint.
    """
    if not complaints:
        return None

    cleaned = answer.strip().strip(".")
    if cleaned.isdigit():
        position = int(cleaned)
        if 1 <= position <= len(complaints):
            return complaints[position - 1]

    needle = fold(answer)
    if needle:
        for complaint in complaints:
            hay = fold(complaint)
            if not hay:
                continue
            if needle[:MATCH_PREFIX_LEN] in hay or hay[:MATCH_PREFIX_LEN] in needle:
                return complaint

    return complaints[0]


def _first_index(folded: str, keywords) -> int:
    positions = [folded.find(kw) for kw in keywords if kw in folded]
    return min(positions) if positions else -1


def split_factors(answer: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Split an answer about relieving/aggravating factors into
    (improves, worsens).

    Only improve keywords -> improves; only worsen keywords -> worsens;
    both -> the answer is cut where the second clause starts; neither ->
    the whole answer is taken as improves.
    """
    # Composed, single-spaced text keeps positions aligned with fold().
    text = " ".join(unicodedata.normalize("NFC", answer).split())
    folded = fold(text)

    improve_at = _first_index(folded, IMPROVE_KEYWORDS)
    worsen_at = _first_index(folded, WORSEN_KEYWORDS)

    if improve_at < 0 and worsen_at < 0:
        return text, None
    if worsen_at < 0:
        return text, None
    if improve_at < 0:
        return None, text

    cut = max(improve_at, worsen_at)
    first = _TRAILING_JOINER.sub("", text[:cut]).strip()
    second = text[cut:].strip(" .")
    if improve_at < worsen_at:
        return first or text, second
    return second, first or text

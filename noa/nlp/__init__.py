# noa/nlp/__init__.py
from .intents import Intent, IntentType, Domain, CLINICAL_INTENTS
from .classifier import IntentClassifier, normalize, fold

__all__ = [
    "Intent",
    "IntentType",
    "Domain",
    "CLINICAL_INTENTS",
    "IntentClassifier",
    "normalize",
    "fold",
]

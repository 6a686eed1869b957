# noa/platform/__init__.py
from .intents import ActionResult, PlatformIntent, PlatformIntentType
from .dispatcher import ActionDispatcher

__all__ = ["ActionResult", "PlatformIntent", "PlatformIntentType", "ActionDispatcher"]

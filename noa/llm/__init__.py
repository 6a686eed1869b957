# noa/llm/__init__.py
from .client import LLMClient, OpenAILLMClient
from .assistant import LLMAssistantService

__all__ = ["LLMClient", "OpenAILLMClient", "LLMAssistantService"]

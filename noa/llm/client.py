# noa/llm/client.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from noa.config import get_settings
from noa.errors import CollaboratorError

ChatMessages = List[Dict[str, str]]


class LLMClient(ABC):
    """
    Chat-completion provider used by the assistant and the report narrative.
    """

    default_model: Optional[str] = None

    @abstractmethod
    async def chat(
        self,
        messages: ChatMessages,
        temperature: float = 0.2,
        model: Optional[str] = None,
    ) -> str:
        """
        messages: list of {"role": "system"|"user"|"assistant", "content": "..."}
        returns: assistant content ("" when the model produced none)
        """
        ...


class OpenAILLMClient(LLMClient):
    """
    OpenAI-compatible chat client. Provider failures surface as
    CollaboratorError("llm", ...); 4xx answers other than 429 are not
    retryable.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 1,
    ):
        settings = get_settings()
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is not set in environment (.env).")

        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=timeout_seconds or settings.collaborator_timeout_seconds,
            max_retries=max_retries,
        )
        self.default_model = model or settings.llm_model

    async def chat(
        self,
        messages: ChatMessages,
        temperature: float = 0.2,
        model: Optional[str] = None,
    ) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=model or self.default_model,
                messages=messages,
                temperature=temperature,
            )
        except openai.APIStatusError as exc:
            retryable = exc.status_code == 429 or exc.status_code >= 500
            raise CollaboratorError("llm", f"HTTP {exc.status_code}: {exc.message}", retryable) from exc
        except openai.APIError as exc:
            raise CollaboratorError("llm", str(exc)) from exc

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

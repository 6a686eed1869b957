# noa/services/platform_api.py
from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx
from loguru import logger

from noa.config import get_settings
from noa.errors import CollaboratorError

ApiKeyProvider = Callable[[], Union[str, Awaitable[str]]]


class PlatformApiError(CollaboratorError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__("platform_api", message, retryable=status is None or status >= 500)
        self.status = status


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    return message or f"Platform API request failed with status {response.status_code}"


class PlatformApiClient:
    """
    Async client for the clinical platform data API (status, training
    context, patient simulations, knowledge library).

    Every call writes an audit line: endpoint, clinician profile and either
    the HTTP status or the error. A 401 triggers one retry with a fresh key
    when an `api_key_provider` is configured.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        api_key_provider: Optional[ApiKeyProvider] = None,
        clinician_profile: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.platform_api_base_url
        self.api_key = api_key if api_key is not None else settings.platform_api_key
        self.api_key_provider = api_key_provider
        self.clinician_profile = clinician_profile
        timeout = timeout_seconds or settings.collaborator_timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 8.0)),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_platform_status(self) -> Dict[str, Any]:
        return await self._request("/platform/status")

    async def get_training_context(self) -> Dict[str, Any]:
        return await self._request("/training/context")

    async def get_patient_simulations(self) -> Dict[str, Any]:
        return await self._request("/patients/simulations")

    async def get_knowledge_library(self, query: Optional[str] = None) -> Dict[str, Any]:
        params = {"query": query} if query else None
        return await self._request("/knowledge/library", params=params)

    # ------------------------------------------------------------------

    async def _refresh_api_key(self) -> Optional[str]:
        if self.api_key_provider is None:
            return self.api_key
        key = self.api_key_provider()
        if inspect.isawaitable(key):
            key = await key
        self.api_key = key
        return key

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    async def _send(self, path: str, params: Optional[Dict[str, str]]) -> httpx.Response:
        try:
            return await self._client.get(path, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            self._audit(path, error="timeout")
            raise PlatformApiError(f"{path} timed out") from exc
        except httpx.HTTPError as exc:
            self._audit(path, error=str(exc))
            raise PlatformApiError(f"failed to reach {path}: {exc}") from exc

    async def _request(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = await self._send(path, params)

        if response.status_code == 401 and self.api_key_provider is not None:
            if await self._refresh_api_key():
                response = await self._send(path, params)

        if response.status_code >= 400:
            message = _provider_error_message(response)
            self._audit(path, error=message)
            raise PlatformApiError(message, status=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            self._audit(path, error="invalid JSON")
            raise PlatformApiError(f"{path} returned invalid JSON", status=response.status_code) from exc

        if not isinstance(data, dict):
            self._audit(path, error="non-object JSON body")
            raise PlatformApiError(
                f"{path} returned {type(data).__name__}, expected an object",
                status=response.status_code,
            )

        self._audit(path, status=response.status_code)
        return data

    def _audit(self, endpoint: str, status: Optional[int] = None, error: Optional[str] = None) -> None:
        bound = logger.bind(audit=True, endpoint=endpoint, clinician_profile=self.clinician_profile)
        if error is not None:
            bound.warning("[Audit] {} failed: {}", endpoint, error)
        else:
            bound.info("[Audit] {} -> {}", endpoint, status)

"""
ScriptFlow Chat Client

Async client for OpenAI-compatible ``/chat/completions`` endpoints.
"""

from typing import Any, Dict, Optional, Protocol

import httpx

from scriptflow.core.config import LLMConfig
from scriptflow.core.env_loader import get_api_key
from scriptflow.core.exceptions import LLMProviderError, LLMResponseError, MissingConfigError
from scriptflow.core.logging_config import get_logger

logger = get_logger("llm.api_client")

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
RETRYABLE_MESSAGE_FRAGMENTS = ("timeout", "timed out", "quota", "rate limit", "connection", "network")


class ChatClient(Protocol):
    """Anything that can turn a prompt into a completion string."""

    async def complete(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        timeout: Optional[float] = None
    ) -> str:
        ...


def is_retryable_error(error: Exception) -> bool:
    """Rate limits, server errors, timeouts and connection drops are worth retrying."""
    status = getattr(error, "status_code", None)
    if status is not None:
        return status in RETRYABLE_STATUS_CODES or status >= 500
    if isinstance(error, LLMResponseError):
        return False
    message = str(error).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGE_FRAGMENTS)


class OpenAICompatibleClient:
    """Chat completions over httpx against any OpenAI-compatible API."""

    provider_name = "openai-compatible"

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config or LLMConfig()
        self._api_key = api_key or get_api_key(self.config.api_key_env, ["SCRIPTFLOW_API_KEY", "OPENAI_API_KEY"])
        self._http_client = http_client
        if not self._api_key:
            logger.warning(f"API key not found: {self.config.api_key_env}")

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _build_payload(
        self,
        prompt: str,
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        json_mode: bool,
        system_prompt: str
    ) -> Dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": temperature if temperature is not None else self.config.temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def complete(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        timeout: Optional[float] = None,
        system_prompt: str = ""
    ) -> str:
        if not self._api_key:
            raise MissingConfigError(
                f"API key not configured; set {self.config.api_key_env}",
                {"env": self.config.api_key_env}
            )

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        payload = self._build_payload(prompt, model, temperature, max_tokens, json_mode, system_prompt)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        request_timeout = timeout or self.config.timeout

        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, headers=headers, json=payload, timeout=request_timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, headers=headers, json=payload, timeout=request_timeout)
        except httpx.TimeoutException as e:
            raise LLMProviderError(self.provider_name, f"request timed out after {request_timeout}s: {e}")
        except httpx.HTTPError as e:
            raise LLMProviderError(self.provider_name, f"connection error: {e}")

        if response.status_code >= 400:
            raise LLMProviderError(
                self.provider_name,
                self._error_message(response),
                status_code=response.status_code
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(f"Unexpected completion payload: {e}")

        if not isinstance(content, str) or not content.strip():
            raise LLMResponseError("Model returned an empty completion")

        logger.debug(f"Completion received ({len(content)} chars) from {payload['model']}")
        return content

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
            error = data.get("error") if isinstance(data, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
            if message:
                return str(message)
        except ValueError:
            pass
        return response.text or f"HTTP error: {response.status_code}"

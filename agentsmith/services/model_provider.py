"""
Model gateway for Agent Smith.
Sends one prompt to the provider that serves a given model id.

OpenAI, Perplexity, Groq and KazLLM share the OpenAI-compatible client;
Anthropic uses its own SDK; local models go through Ollama with a raw
HTTP fallback.
"""

import asyncio
import enum
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Tuple, Type

from agentsmith.core.config import settings
from agentsmith.core.exceptions import (
    ModelGatewayError,
    ModelAuthError,
    ModelRateLimitError,
    ModelTimeoutError,
)
from agentsmith.models.entities.audit import ActivityLevel
from agentsmith.models.schemas.tasks import ModelSelection

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "Вы ИИ-ассистент государственного органа. Отвечайте точно, вежливо "
    "и по существу, на языке обращения."
)


class ProviderType(str, enum.Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    PERPLEXITY = "perplexity"
    GROQ = "groq"
    LOCAL = "local"      # Ollama, llama.cpp, LM Studio
    KAZLLM = "kazllm"    # OpenAI-compatible national model endpoint


# Checked in order against the lowercased model id
MODEL_PREFIXES: Tuple[Tuple[str, ProviderType], ...] = (
    ("gpt", ProviderType.OPENAI),
    ("o1", ProviderType.OPENAI),
    ("o3", ProviderType.OPENAI),
    ("text-davinci", ProviderType.OPENAI),
    ("dall-e", ProviderType.OPENAI),
    ("claude", ProviderType.ANTHROPIC),
    ("kazllm", ProviderType.KAZLLM),
    ("sonar", ProviderType.PERPLEXITY),
    ("perplexity", ProviderType.PERPLEXITY),
    ("pplx", ProviderType.PERPLEXITY),
    ("groq", ProviderType.GROQ),
    ("llama", ProviderType.LOCAL),
    ("mistral", ProviderType.LOCAL),
    ("gemma", ProviderType.LOCAL),
)


def split_model_id(model: str) -> Tuple[Optional[ProviderType], str]:
    """Split an explicit "provider/model" id. Returns (None, model) otherwise."""
    if "/" in model:
        head, tail = model.split("/", 1)
        try:
            return ProviderType(head.lower()), tail
        except ValueError:
            pass
    return None, model


def resolve_provider(model: str) -> ProviderType:
    """Map a model id to its provider. Unknown ids go to OpenAI."""
    explicit, name = split_model_id(model or "")
    if explicit is not None:
        return explicit
    lowered = name.lower()
    for prefix, provider in MODEL_PREFIXES:
        if lowered.startswith(prefix):
            return provider
    return ProviderType.OPENAI


class BaseModelProvider(ABC):
    """Abstract base for all model providers."""

    requires_api_key = True

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout_seconds: Optional[float] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    async def generate(self, system_prompt: str, user_message: str, **kwargs) -> Dict[str, Any]:
        """Returns content, tokens_used, latency_ms and model."""


class OpenAICompatibleProvider(BaseModelProvider):
    """
    Provider for any OpenAI-compatible API.
    Works with OpenAI, Perplexity, Groq and KazLLM endpoints.
    """

    async def generate(self, system_prompt: str, user_message: str, **kwargs) -> Dict[str, Any]:
        import openai

        client = openai.AsyncOpenAI(
            api_key=self.api_key or "not-needed",
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

        start_time = time.time()
        response = await client.chat.completions.create(
            model=kwargs["model"],
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message}
            ],
            max_tokens=kwargs.get("max_tokens"),
            temperature=kwargs.get("temperature"),
        )

        latency = int((time.time() - start_time) * 1000)
        return {
            "content": response.choices[0].message.content or "",
            "tokens_used": response.usage.total_tokens if response.usage else 0,
            "latency_ms": latency,
            "model": response.model,
        }


class AnthropicProvider(BaseModelProvider):
    """Anthropic Claude API."""

    async def generate(self, system_prompt: str, user_message: str, **kwargs) -> Dict[str, Any]:
        import anthropic

        client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

        start_time = time.time()
        response = await client.messages.create(
            model=kwargs["model"],
            max_tokens=kwargs.get("max_tokens") or 1024,
            temperature=kwargs.get("temperature"),
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}]
        )

        latency = int((time.time() - start_time) * 1000)
        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return {
            "content": content,
            "tokens_used": response.usage.input_tokens + response.usage.output_tokens if response.usage else 0,
            "latency_ms": latency,
            "model": response.model,
        }


class LocalProvider(OpenAICompatibleProvider):
    """Local models via Ollama, llama.cpp, LM Studio, etc."""

    requires_api_key = False

    async def generate(self, system_prompt: str, user_message: str, **kwargs) -> Dict[str, Any]:
        import openai

        # Local models handle system prompts inconsistently; send one user turn
        combined_prompt = f"{system_prompt}\n\nUser: {user_message}"

        client = openai.AsyncOpenAI(
            base_url=self.base_url or "http://localhost:11434/v1",
            api_key="ollama",
            timeout=self.timeout_seconds,
            max_retries=0,
        )

        start_time = time.time()
        try:
            response = await client.chat.completions.create(
                model=kwargs["model"],
                messages=[{"role": "user", "content": combined_prompt}],
                max_tokens=kwargs.get("max_tokens"),
                temperature=kwargs.get("temperature"),
            )
        except openai.APIConnectionError as e:
            logger.warning(f"Local OpenAI endpoint unavailable ({e}), trying raw generate API")
            return await self._fallback_local_generate(combined_prompt, kwargs)

        latency = int((time.time() - start_time) * 1000)
        content = response.choices[0].message.content or ""
        return {
            "content": content,
            "tokens_used": response.usage.total_tokens if response.usage else len(combined_prompt.split()) + len(content.split()),
            "latency_ms": latency,
            "model": response.model or kwargs["model"],
        }

    async def _fallback_local_generate(self, prompt: str, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Fallback for raw HTTP local servers."""
        import aiohttp

        root = (self.base_url or "http://localhost:11434/v1").rstrip("/")
        if root.endswith("/v1"):
            root = root[:-3]
        url = f"{root}/api/generate"

        start_time = time.time()
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json={
                "model": kwargs["model"],
                "prompt": f"{prompt}\nAssistant:",
                "stream": False,
                "options": {
                    "temperature": kwargs.get("temperature"),
                    "num_predict": kwargs.get("max_tokens"),
                }
            }) as response:
                response.raise_for_status()
                data = await response.json()

        return {
            "content": data.get("response", ""),
            "tokens_used": data.get("eval_count", 0),
            "latency_ms": int((time.time() - start_time) * 1000),
            "model": kwargs["model"],
        }


# Provider factory
PROVIDERS: Dict[ProviderType, Type[BaseModelProvider]] = {
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.LOCAL: LocalProvider,

    # All others use the OpenAI-compatible endpoint
    ProviderType.OPENAI: OpenAICompatibleProvider,
    ProviderType.PERPLEXITY: OpenAICompatibleProvider,
    ProviderType.GROQ: OpenAICompatibleProvider,
    ProviderType.KAZLLM: OpenAICompatibleProvider,
}


def provider_credentials(provider: ProviderType) -> Tuple[Optional[str], Optional[str]]:
    """(api_key, base_url) for a provider, from settings."""
    return {
        ProviderType.OPENAI: (settings.OPENAI_API_KEY, None),
        ProviderType.ANTHROPIC: (settings.ANTHROPIC_API_KEY, None),
        ProviderType.PERPLEXITY: (settings.PERPLEXITY_API_KEY, settings.PERPLEXITY_BASE_URL),
        ProviderType.GROQ: (settings.GROQ_API_KEY, settings.GROQ_BASE_URL),
        ProviderType.LOCAL: (None, settings.LOCAL_LLM_BASE_URL),
        ProviderType.KAZLLM: (settings.KAZLLM_API_KEY, settings.KAZLLM_BASE_URL),
    }[provider]


def _status_of(error: Exception) -> Optional[int]:
    # openai/anthropic expose status_code, aiohttp exposes status
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def translate_error(error: Exception, provider: ProviderType, model: str) -> ModelGatewayError:
    """Map a provider exception onto the gateway error taxonomy."""
    if isinstance(error, ModelGatewayError):
        return error
    status = _status_of(error)
    name = type(error).__name__
    if status == 401 or name == "AuthenticationError":
        return ModelAuthError(f"{provider.value} rejected the API key", provider.value, model)
    if status == 429 or name == "RateLimitError":
        return ModelRateLimitError(f"{provider.value} rate limit exceeded", provider.value, model)
    if isinstance(error, asyncio.TimeoutError) or name in ("APITimeoutError", "TimeoutError"):
        return ModelTimeoutError(f"{provider.value} request timed out", provider.value, model)
    return ModelGatewayError(f"{provider.value} request failed: {error}", provider.value, model)


class ModelGateway:
    """
    Single entry point for language-model calls.
    Exactly one request per send(); no retries.
    """

    def __init__(self, activity_logger=None, providers: Optional[Dict[ProviderType, BaseModelProvider]] = None,
                 timeout: Optional[float] = None):
        self.activity = activity_logger
        self._providers: Dict[ProviderType, BaseModelProvider] = dict(providers or {})
        self.timeout = timeout if timeout is not None else settings.MODEL_TIMEOUT_SECONDS

    def get_provider(self, provider_type: ProviderType) -> BaseModelProvider:
        """Cached provider instance for a provider type."""
        if provider_type not in self._providers:
            api_key, base_url = provider_credentials(provider_type)
            provider_class = PROVIDERS[provider_type]
            if provider_class.requires_api_key and not api_key:
                raise ModelAuthError(
                    f"API key for {provider_type.value} is not configured", provider_type.value
                )
            self._providers[provider_type] = provider_class(
                api_key=api_key, base_url=base_url, timeout_seconds=self.timeout
            )
        return self._providers[provider_type]

    async def send(
        self,
        prompt: str,
        params: ModelSelection,
        system_prompt: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Send a prompt; returns the raw response text or raises ModelGatewayError."""
        provider_type = resolve_provider(params.model)
        _, model_name = split_model_id(params.model)
        deadline = timeout if timeout is not None else self.timeout

        try:
            provider = self.get_provider(provider_type)
            call = provider.generate(
                system_prompt or DEFAULT_SYSTEM_PROMPT,
                prompt,
                model=model_name,
                max_tokens=params.max_tokens,
                temperature=params.temperature,
            )
            if deadline:
                result = await asyncio.wait_for(call, timeout=deadline)
            else:
                result = await call
        except Exception as e:
            error = translate_error(e, provider_type, params.model)
            logger.error(f"LLM call to {params.model} failed: {error}")
            self._record("llm_error", f"Ошибка запроса к модели {params.model}: {error}", ActivityLevel.ERROR, {
                "model": params.model,
                "provider": provider_type.value,
                "error_type": type(error).__name__,
            })
            if error is e:
                raise
            raise error from e

        content = result.get("content") or ""
        self._record("llm_request", f"Запрос к модели {params.model}", ActivityLevel.INFO, {
            "model": params.model,
            "provider": provider_type.value,
            "response_size": len(content),
            "tokens_used": result.get("tokens_used", 0),
            "latency_ms": result.get("latency_ms", 0),
        })
        return content

    def _record(self, action: str, description: str, level: ActivityLevel, details: Dict[str, Any]):
        if self.activity is not None:
            self.activity.record(
                action=action,
                description=description,
                entity_type="model",
                level=level,
                details=details,
            )

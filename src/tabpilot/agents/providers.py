"""
Inference provider registry.

Knows the OpenAI-compatible providers the assistant can talk to, stores
their API keys, lists their models, and builds the configured
InferenceClient.
"""

from typing import Optional

import httpx
from pydantic import BaseModel

from tabpilot.agents.inference import OpenAIInferenceClient
from tabpilot.config import Settings, get_logger
from tabpilot.storage import KeyValueStore

logger = get_logger(__name__)


class ProviderEndpoints(BaseModel):
    chat: str = "/chat/completions"
    models: str = "/models"


class Provider(BaseModel):
    """An OpenAI-compatible inference provider."""

    name: str
    url: str
    api_key_required: bool = True
    endpoints: ProviderEndpoints = ProviderEndpoints()


class ProviderWithKey(Provider):
    api_key: Optional[str] = None
    models: Optional[list[str]] = None


PROVIDERS: list[Provider] = [
    Provider(name="Deepseek", url="https://api.deepseek.com"),
    Provider(name="Openai", url="https://api.openai.com/v1"),
]


class ProviderNotFound(Exception):
    """No provider is registered under the requested name."""


class MissingApiKey(Exception):
    """The provider requires an API key and none is configured."""


def _key_storage_key(provider_name: str) -> str:
    return f"provider_{provider_name}_key"


class ProviderManager:
    """
    Holds provider API keys and cached model lists.

    Keys are persisted under ``provider_<name>_key``; the in-memory copies
    are refreshed by load_provider_keys().
    """

    def __init__(self, storage: KeyValueStore, providers: Optional[list[Provider]] = None):
        self.storage = storage
        self.providers = list(providers or PROVIDERS)
        self._keys: dict[str, str] = {}
        self._models: dict[str, list[str]] = {}

    def get_provider_by_name(self, name: str) -> Optional[Provider]:
        """Find a provider by case-insensitive name."""
        for provider in self.providers:
            if provider.name.lower() == name.lower():
                return provider
        return None

    async def load_provider_keys(self) -> None:
        """Refresh the in-memory keys from storage."""
        for provider in self.providers:
            try:
                key = await self.storage.get(_key_storage_key(provider.name))
            except Exception as e:
                logger.error(f"Failed to get key for {provider.name}: {e}")
                continue
            if key:
                self._keys[provider.name] = key
            else:
                self._keys.pop(provider.name, None)

    async def save_provider_key(self, provider_name: str, api_key: str) -> None:
        await self.storage.set(_key_storage_key(provider_name), api_key)
        self._keys[provider_name] = api_key

    async def delete_provider_key(self, provider_name: str) -> None:
        await self.storage.set(_key_storage_key(provider_name), "")
        self._keys.pop(provider_name, None)
        self._models.pop(provider_name, None)

    def get_provider_key(self, provider_name: str) -> Optional[str]:
        return self._keys.get(provider_name)

    async def fetch_models(self, provider_name: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> list[str]:
        """
        List the models a provider offers and cache the result.

        Args:
            provider_name: Registered provider name
            transport: Optional httpx transport (used by tests)

        Returns:
            Model ids

        Raises:
            ProviderNotFound: If the provider is unknown
            MissingApiKey: If a key is required but not set
            httpx.HTTPStatusError: If the provider rejects the request
        """
        provider = self.get_provider_by_name(provider_name)
        if provider is None:
            raise ProviderNotFound(f"Provider {provider_name} not found")

        api_key = self.get_provider_key(provider.name)
        if not api_key and provider.api_key_required:
            raise MissingApiKey(f"API key required for {provider.name}")

        async with httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=30.0,
            transport=transport,
        ) as client:
            response = await client.get(f"{provider.url}{provider.endpoints.models}")
            response.raise_for_status()
            data = response.json()

        models = [model["id"] for model in data.get("data", []) if "id" in model]
        self._models[provider.name] = models
        logger.info(f"Fetched {len(models)} models for {provider.name}")
        return models

    def get_cached_models(self, provider_name: str) -> Optional[list[str]]:
        return self._models.get(provider_name)

    def get_providers_with_keys(self) -> list[ProviderWithKey]:
        return [
            ProviderWithKey(
                **provider.model_dump(),
                api_key=self.get_provider_key(provider.name),
                models=self.get_cached_models(provider.name),
            )
            for provider in self.providers
        ]

    def clear_cache(self) -> None:
        self._models.clear()


def _normalize_base_url(url: str) -> str:
    """Accept either an API base URL or a full chat completions URL."""
    url = url.rstrip("/")
    suffix = ProviderEndpoints().chat
    if url.endswith(suffix):
        url = url[: -len(suffix)]
    return url


def get_inference_client(
    settings: Settings,
    provider_manager: Optional[ProviderManager] = None,
) -> OpenAIInferenceClient:
    """
    Build the configured inference client.

    Args:
        settings: Application settings
        provider_manager: Source of stored provider keys, consulted when
            settings.ai_token is not set

    Returns:
        Configured inference client

    Raises:
        ProviderNotFound: If neither ai_host nor a known ai_provider is set
        MissingApiKey: If no API key is available
    """
    provider = (provider_manager.get_provider_by_name(settings.ai_provider)
                if provider_manager else None)
    if provider is None:
        provider = next(
            (p for p in PROVIDERS if p.name.lower() == settings.ai_provider.lower()), None
        )

    if settings.ai_host:
        base_url = _normalize_base_url(settings.ai_host)
    elif provider is not None:
        base_url = provider.url
    else:
        raise ProviderNotFound(f"Provider {settings.ai_provider} not found")

    api_key = settings.ai_token
    if not api_key and provider_manager is not None and provider is not None:
        api_key = provider_manager.get_provider_key(provider.name)
    if not api_key:
        raise MissingApiKey("No API token set")

    logger.info(f"Using inference endpoint {base_url} with model {settings.ai_model}")
    return OpenAIInferenceClient(
        api_key=api_key,
        model=settings.ai_model,
        base_url=base_url,
        timeout=settings.ai_timeout,
    )

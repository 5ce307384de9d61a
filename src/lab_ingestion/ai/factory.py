# ============================================================================
# src/lab_ingestion/ai/factory.py
# ============================================================================
"""
AI Provider Factory

Creates providers by type and reuses them through an explicit
ProviderCache owned by the factory. Cache keys are
(provider type, config fingerprint); the fingerprint is a SHA-256 over
the effective config, so API keys are never held as dictionary keys.

Usage:
    factory = ProviderFactory()
    provider = factory.get_provider("openai", AIProviderConfig(api_key="sk-..."))
    ...
    factory.invalidate()            # drop everything
    factory.invalidate("openai")    # drop one provider type
"""

import hashlib
import json
import logging
from dataclasses import asdict, replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from ..config import ai_settings
from ..utils.exceptions import AIConfigurationError
from .anthropic_provider import AnthropicProvider
from .base import AIProviderConfig, BaseAIProvider, ProviderType
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


PROVIDER_CLASSES: Dict[ProviderType, Type[BaseAIProvider]] = {
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.OLLAMA: OllamaProvider,
}

PROVIDER_DESCRIPTIONS = {
    ProviderType.OPENAI: "OpenAI GPT models (cloud, API key required)",
    ProviderType.ANTHROPIC: "Anthropic Claude models (cloud, API key required)",
    ProviderType.OLLAMA: "Local models through Ollama (no API key, data stays local)",
}

API_KEY_PREFIXES = {
    ProviderType.OPENAI: "sk-",
    ProviderType.ANTHROPIC: "sk-ant-",
}

MIN_API_KEY_LENGTH = 20

CacheKey = Tuple[ProviderType, str]


def _provider_type(value: Union[str, ProviderType]) -> ProviderType:
    try:
        return ProviderType(value)
    except ValueError:
        raise AIConfigurationError(f"Unknown AI provider type: {value}", str(value))


def config_fingerprint(provider_type: Union[str, ProviderType], config: AIProviderConfig) -> str:
    """Stable hash of the effective config. Equal configs -> equal fingerprints."""
    provider_type = _provider_type(provider_type)
    payload = {'type': provider_type.value, **asdict(config)}
    encoded = json.dumps(payload, sort_keys=True, default=str).encode('utf-8')
    return hashlib.sha256(encoded).hexdigest()


class ProviderCache:
    """Providers keyed by (type, config fingerprint)."""

    def __init__(self):
        self._providers: Dict[CacheKey, BaseAIProvider] = {}

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._providers

    def get(self, key: CacheKey) -> Optional[BaseAIProvider]:
        return self._providers.get(key)

    def put(self, key: CacheKey, provider: BaseAIProvider) -> None:
        self._providers[key] = provider

    def get_or_create(self, key: CacheKey, create: Callable[[], BaseAIProvider]) -> BaseAIProvider:
        provider = self._providers.get(key)
        if provider is None:
            provider = create()
            self._providers[key] = provider
        return provider

    def invalidate(self, provider_type: Optional[ProviderType] = None) -> List[BaseAIProvider]:
        """
        Drop cached providers (all, or one type).

        Returns the removed providers so the caller can close their sessions.
        """
        if provider_type is None:
            removed = list(self._providers.values())
            self._providers.clear()
        else:
            keys = [k for k in self._providers if k[0] == provider_type]
            removed = [self._providers.pop(k) for k in keys]

        if removed:
            logger.debug(f"Invalidated {len(removed)} cached provider(s)")
        return removed


class ProviderFactory:
    """
    Builds AI providers and owns their cache.

    Config values left unset fall back to the AI_* settings.
    """

    def __init__(self, cache: Optional[ProviderCache] = None):
        self.cache = cache if cache is not None else ProviderCache()

    def resolve_config(
        self,
        provider_type: Union[str, ProviderType],
        config: Optional[AIProviderConfig] = None
    ) -> AIProviderConfig:
        provider_type = _provider_type(provider_type)
        config = config or AIProviderConfig()

        base_urls = {
            ProviderType.OPENAI: ai_settings.OPENAI_BASE_URL,
            ProviderType.ANTHROPIC: ai_settings.ANTHROPIC_BASE_URL,
            ProviderType.OLLAMA: ai_settings.OLLAMA_HOST,
        }

        return replace(
            config,
            model=config.model or ai_settings.AI_MODEL or PROVIDER_CLASSES[provider_type].default_model,
            max_tokens=config.max_tokens or ai_settings.AI_MAX_TOKENS,
            temperature=config.temperature if config.temperature is not None else ai_settings.AI_TEMPERATURE,
            base_url=config.base_url or base_urls[provider_type],
            timeout=config.timeout or ai_settings.AI_TIMEOUT_SECONDS,
        )

    def create(
        self,
        provider_type: Union[str, ProviderType],
        config: Optional[AIProviderConfig] = None
    ) -> BaseAIProvider:
        """New provider, bypassing the cache."""
        provider_type = _provider_type(provider_type)
        resolved = self.resolve_config(provider_type, config)

        if provider_requires_api_key(provider_type) and not resolved.api_key:
            raise AIConfigurationError("API key is required", provider_type.value)

        return PROVIDER_CLASSES[provider_type](resolved)

    def get_provider(
        self,
        provider_type: Union[str, ProviderType],
        config: Optional[AIProviderConfig] = None
    ) -> BaseAIProvider:
        """Cached provider for this type and config."""
        provider_type = _provider_type(provider_type)
        resolved = self.resolve_config(provider_type, config)
        key = (provider_type, config_fingerprint(provider_type, resolved))
        return self.cache.get_or_create(key, lambda: self.create(provider_type, resolved))

    def invalidate(self, provider_type: Optional[Union[str, ProviderType]] = None) -> List[BaseAIProvider]:
        if provider_type is not None:
            provider_type = _provider_type(provider_type)
        return self.cache.invalidate(provider_type)

    async def aclose(self) -> None:
        """Invalidate the cache and close every removed provider."""
        for provider in self.invalidate():
            await provider.close()


# ============================================================================
# PROVIDER INFO
# ============================================================================

def provider_requires_api_key(provider_type: Union[str, ProviderType]) -> bool:
    return _provider_type(provider_type) in API_KEY_PREFIXES


def validate_api_key_format(provider_type: Union[str, ProviderType], api_key: Optional[str]) -> bool:
    """Cheap format check before any network call."""
    provider_type = _provider_type(provider_type)
    if not provider_requires_api_key(provider_type):
        return True
    if not api_key:
        return False
    return api_key.startswith(API_KEY_PREFIXES[provider_type]) and len(api_key) > MIN_API_KEY_LENGTH


def get_available_providers() -> List[Dict[str, Any]]:
    return [
        {
            'type': provider_type.value,
            'name': provider_class.display_name,
            'description': PROVIDER_DESCRIPTIONS[provider_type],
            'default_model': provider_class.default_model,
            'requires_api_key': provider_requires_api_key(provider_type),
        }
        for provider_type, provider_class in PROVIDER_CLASSES.items()
    ]

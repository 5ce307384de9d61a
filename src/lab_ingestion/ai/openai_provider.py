# ============================================================================
# src/lab_ingestion/ai/openai_provider.py
# ============================================================================
"""
OpenAI chat completions provider.
"""

from typing import Optional

from ..utils.exceptions import AIConfigurationError
from .base import AIProviderConfig, BaseAIProvider, ProviderType


class OpenAIProvider(BaseAIProvider):
    provider_type = ProviderType.OPENAI
    display_name = "OpenAI"
    default_model = "gpt-4o-mini"
    default_base_url = "https://api.openai.com/v1"
    default_timeout = 120.0

    def __init__(self, config: Optional[AIProviderConfig] = None):
        super().__init__(config)
        if not self.config.api_key:
            raise AIConfigurationError("API key is required", self.name)
        self.logger.info(f"Initialized OpenAI provider: {self.model}")

    def validate_configuration(self) -> bool:
        return bool(self.config.api_key) and self.config.api_key.startswith('sk-')

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        if system_prompt:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )
        return data["choices"][0]["message"]["content"] or ""

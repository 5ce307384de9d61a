# ============================================================================
# src/lab_ingestion/ai/anthropic_provider.py
# ============================================================================
"""
Anthropic messages API provider.
"""

from typing import Optional

from ..utils.exceptions import AIConfigurationError
from .base import AIProviderConfig, BaseAIProvider, ProviderType


ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicProvider(BaseAIProvider):
    provider_type = ProviderType.ANTHROPIC
    display_name = "Anthropic"
    default_model = "claude-sonnet-4-20250514"
    default_base_url = "https://api.anthropic.com/v1"
    default_timeout = 120.0

    def __init__(self, config: Optional[AIProviderConfig] = None):
        super().__init__(config)
        if not self.config.api_key:
            raise AIConfigurationError("API key is required", self.name)
        self.logger.info(f"Initialized Anthropic provider: {self.model}")

    def validate_configuration(self) -> bool:
        return bool(self.config.api_key) and self.config.api_key.startswith('sk-ant-')

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(
            f"{self.base_url}/messages",
            payload,
            headers={
                "x-api-key": self.config.api_key,
                "anthropic-version": ANTHROPIC_API_VERSION,
            },
        )
        # Text blocks only; tool_use and other block types carry no report text
        parts = [block.get("text", "") for block in data["content"] if block.get("type") == "text"]
        return "".join(parts)

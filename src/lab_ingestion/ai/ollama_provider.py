# ============================================================================
# src/lab_ingestion/ai/ollama_provider.py
# ============================================================================
"""
Ollama Provider (Local Inference)

Uses Ollama's native chat API with JSON mode. No API key; the lab report
never leaves the machine.

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull a model: ollama pull llama3.2:8b
    3. Start server: ollama serve (or it runs automatically)
"""

from typing import Any, Dict, List, Optional

import aiohttp

from .base import BaseAIProvider, ProviderType


class OllamaProvider(BaseAIProvider):
    provider_type = ProviderType.OLLAMA
    display_name = "Ollama"
    default_model = "llama3.2:8b"
    default_base_url = "http://localhost:11434"
    # Local models on CPU are slow on long reports
    default_timeout = 600.0

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "num_predict": max_tokens,
                "temperature": self.temperature,
            },
        }
        # JSON mode - Ollama constrains output to valid JSON
        if system_prompt:
            payload["format"] = "json"

        data = await self._post_json(f"{self.base_url}/api/chat", payload)
        return data.get("message", {}).get("content", "")

    async def list_models(self) -> List[str]:
        """Models installed on the Ollama server. Empty when unreachable."""
        try:
            session = await self._get_session()
            async with session.get(f"{self.base_url}/api/tags") as response:
                if response.status != 200:
                    return []
                data = await response.json()
                return [m.get('name', '') for m in data.get('models', [])]
        except aiohttp.ClientError as e:
            self.logger.warning(f"Cannot list Ollama models at {self.base_url}: {e}")
            return []

    async def health_check(self) -> Dict[str, Any]:
        """Check the server is running and the model is installed."""
        models = await self.list_models()
        if not models:
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self.model,
                "details": f"Cannot reach Ollama at {self.base_url} or no models installed. Try: ollama serve",
            }
        if not any(self.model in m for m in models):
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self.model,
                "details": f"Model not found. Available: {models}. Run: ollama pull {self.model}",
            }
        return {
            "healthy": True,
            "backend": "ollama",
            "model": self.model,
            "details": "Ollama server running and model available",
        }

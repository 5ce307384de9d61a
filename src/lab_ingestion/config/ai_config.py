# ============================================================================
# src/lab_ingestion/config/ai_config.py
# ============================================================================
"""
AI Provider Configuration
- Default provider and model
- Generation parameters
- Timeout
- Endpoints
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class AISettings(BaseSettings):
    AI_PROVIDER: str = Field(
        default="ollama",
        description="Default provider: openai, anthropic or ollama"
    )
    AI_MODEL: Optional[str] = Field(
        default=None,
        description="Model override; provider default is used when unset"
    )
    AI_MAX_TOKENS: int = Field(
        default=4096,
        gt=0,
        description="Maximum tokens for the lab report analysis response"
    )
    AI_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0, le=2.0,
        description="Sampling temperature (0.1 = very deterministic)"
    )
    AI_TIMEOUT_SECONDS: float = Field(
        default=600.0,
        gt=0,
        description="Wall-clock timeout around one inference call (seconds)"
    )
    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL"
    )
    OPENAI_BASE_URL: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API base URL"
    )
    ANTHROPIC_BASE_URL: str = Field(
        default="https://api.anthropic.com/v1",
        description="Anthropic API base URL"
    )


ai_settings = AISettings()

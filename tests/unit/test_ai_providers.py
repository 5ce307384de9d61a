# ============================================================================
# FILE: tests/unit/test_ai_providers.py
# ============================================================================
"""
Unit tests for AI providers (no network: HTTP calls are mocked)
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeProvider
from lab_ingestion.ai.anthropic_provider import AnthropicProvider
from lab_ingestion.ai.base import AIProviderConfig, AnalysisOptions
from lab_ingestion.ai.ollama_provider import OllamaProvider
from lab_ingestion.ai.openai_provider import OpenAIProvider
from lab_ingestion.ai.prompts import create_analysis_prompt
from lab_ingestion.utils.exceptions import AIAnalysisError, AIConfigurationError


REPORT_TEXT = "Glucose 100 mg/dL (70-99)"


# ============================================================================
# BASE CONTRACT
# ============================================================================

@pytest.mark.asyncio
async def test_analyze_lab_report(sample_ai_response):
    provider = FakeProvider(sample_ai_response)
    result = await provider.analyze_lab_report(REPORT_TEXT)

    assert len(result.biomarkers) == 4
    assert result.overall_confidence == pytest.approx((0.95 + 0.9 + 0.9 + 0.8) / 4)
    assert result.analyzed_text == REPORT_TEXT
    assert result.lab_name == "Quest Diagnostics"
    assert result.model_used == "fake-model"
    assert result.processing_time >= 0
    assert REPORT_TEXT in provider.prompts[0]


@pytest.mark.asyncio
async def test_patient_name_only_when_requested(sample_ai_response):
    provider = FakeProvider(sample_ai_response)

    without = await provider.analyze_lab_report(REPORT_TEXT)
    assert without.patient_name is None

    with_info = await provider.analyze_lab_report(REPORT_TEXT, AnalysisOptions(extract_patient_info=True))
    assert with_info.patient_name == "John Doe"


@pytest.mark.asyncio
async def test_empty_text_rejected():
    with pytest.raises(AIAnalysisError, match="Lab report text is empty"):
        await FakeProvider("{}").analyze_lab_report("   ")


@pytest.mark.asyncio
async def test_empty_response_rejected():
    with pytest.raises(AIAnalysisError, match="Empty response from Fake"):
        await FakeProvider("").analyze_lab_report(REPORT_TEXT)


@pytest.mark.asyncio
async def test_timeout_is_reported_with_code():
    class SlowProvider(FakeProvider):
        async def _complete(self, system_prompt, user_prompt, max_tokens):
            await asyncio.sleep(5)
            return "{}"

    provider = SlowProvider(config=AIProviderConfig(timeout=0.01))
    with pytest.raises(AIAnalysisError) as exc_info:
        await provider.analyze_lab_report(REPORT_TEXT)
    assert exc_info.value.code == "TIMEOUT"
    assert "timed out" in str(exc_info.value)


@pytest.mark.asyncio
async def test_unexpected_payload_is_wrapped():
    class BrokenProvider(FakeProvider):
        async def _complete(self, system_prompt, user_prompt, max_tokens):
            raise KeyError("choices")

    with pytest.raises(AIAnalysisError, match="Fake analysis failed"):
        await BrokenProvider().analyze_lab_report(REPORT_TEXT)


@pytest.mark.asyncio
async def test_connection():
    assert await FakeProvider('"OK"').test_connection()
    assert not await FakeProvider("nope").test_connection()


def test_analysis_prompt_includes_options():
    prompt = create_analysis_prompt(
        REPORT_TEXT,
        AnalysisOptions(language="Italian", extract_patient_info=True, additional_instructions="Skip urine"),
    )
    assert "REPORT LANGUAGE: Italian" in prompt
    assert "EXTRACT PATIENT INFO: Yes" in prompt
    assert "ADDITIONAL INSTRUCTIONS: Skip urine" in prompt
    assert REPORT_TEXT in prompt


# ============================================================================
# CONCRETE PROVIDERS
# ============================================================================

def test_cloud_providers_require_api_key():
    with pytest.raises(AIConfigurationError):
        OpenAIProvider(AIProviderConfig())
    with pytest.raises(AIConfigurationError):
        AnthropicProvider(AIProviderConfig())


def test_provider_defaults():
    ollama = OllamaProvider()
    assert ollama.model == "llama3.2:8b"
    assert ollama.base_url == "http://localhost:11434"
    assert ollama.timeout == 600.0

    openai = OpenAIProvider(AIProviderConfig(api_key="sk-test", base_url="https://proxy.local/v1/"))
    assert openai.base_url == "https://proxy.local/v1"
    assert openai.validate_configuration()


@pytest.mark.asyncio
async def test_openai_request(sample_ai_response):
    provider = OpenAIProvider(AIProviderConfig(api_key="sk-test"))
    response = {"choices": [{"message": {"content": sample_ai_response}}]}

    with patch.object(provider, "_post_json", new=AsyncMock(return_value=response)) as post:
        result = await provider.analyze_lab_report(REPORT_TEXT)

    url, payload = post.call_args.args[:2]
    assert url == "https://api.openai.com/v1/chat/completions"
    assert payload["model"] == "gpt-4o-mini"
    assert payload["response_format"] == {"type": "json_object"}
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert len(result.biomarkers) == 4


@pytest.mark.asyncio
async def test_anthropic_request_joins_text_blocks():
    provider = AnthropicProvider(AIProviderConfig(api_key="sk-ant-test"))
    body = json.dumps({"biomarkers": [{"name": "Glucose", "value": 90, "unit": "mg/dL"}]})
    response = {"content": [
        {"type": "text", "text": body[:10]},
        {"type": "tool_use", "id": "x"},
        {"type": "text", "text": body[10:]},
    ]}

    with patch.object(provider, "_post_json", new=AsyncMock(return_value=response)) as post:
        result = await provider.analyze_lab_report(REPORT_TEXT)

    url, payload = post.call_args.args[:2]
    assert url.endswith("/messages")
    assert "system" in payload
    assert post.call_args.kwargs["headers"]["x-api-key"] == "sk-ant-test"
    assert [b.name for b in result.biomarkers] == ["Glucose"]


@pytest.mark.asyncio
async def test_ollama_request_uses_json_mode():
    provider = OllamaProvider(AIProviderConfig(max_tokens=1024))
    response = {"message": {"content": '{"biomarkers": []}'}}

    with patch.object(provider, "_post_json", new=AsyncMock(return_value=response)) as post:
        result = await provider.analyze_lab_report(REPORT_TEXT)

    url, payload = post.call_args.args[:2]
    assert url == "http://localhost:11434/api/chat"
    assert payload["format"] == "json"
    assert payload["stream"] is False
    assert payload["options"]["num_predict"] == 1024
    assert result.biomarkers == []
    assert result.overall_confidence == 0.0


@pytest.mark.asyncio
async def test_ollama_health_check_without_models():
    provider = OllamaProvider()
    with patch.object(provider, "list_models", new=AsyncMock(return_value=[])):
        health = await provider.health_check()
    assert health["healthy"] is False

    with patch.object(provider, "list_models", new=AsyncMock(return_value=["llama3.2:8b"])):
        health = await provider.health_check()
    assert health["healthy"] is True

# ============================================================================
# src/lab_ingestion/ai/base.py
# ============================================================================
"""
Base AI Provider Interface

Every provider (OpenAI, Anthropic, Ollama) exposes the same contract:

    await provider.analyze_lab_report(text, options) -> LabReportAnalysisResult

Subclasses only implement the HTTP exchange (_complete). Prompting,
response parsing, the wall-clock timeout and error wrapping live here.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp

from ..core.context.analysis import LabReportAnalysisResult
from ..utils.exceptions import AIAnalysisError
from .prompts import CONNECTION_TEST_PROMPT, LAB_REPORT_SYSTEM_PROMPT, create_analysis_prompt
from .response_parser import parse_analysis_response


class ProviderType(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class AIProviderConfig:
    api_key: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = None  # seconds


@dataclass
class AnalysisOptions:
    language: str = "English"
    extract_patient_info: bool = False
    additional_instructions: Optional[str] = None


class BaseAIProvider(ABC):
    """
    Abstract base class for AI providers.

    Subclasses set provider_type, display_name and default settings, and
    implement _complete(system_prompt, user_prompt, max_tokens) -> str.
    """

    provider_type: ProviderType
    display_name: str = "AI"
    default_model: str = ""
    default_base_url: str = ""
    default_timeout: float = 120.0

    def __init__(self, config: Optional[AIProviderConfig] = None):
        self.config = config or AIProviderConfig()
        self.logger = logging.getLogger(self.__class__.__name__)

        self.model = self.config.model or self.default_model
        self.base_url = (self.config.base_url or self.default_base_url).rstrip('/')
        self.max_tokens = self.config.max_tokens or 4096
        self.temperature = self.config.temperature if self.config.temperature is not None else 0.1
        self.timeout = self.config.timeout or self.default_timeout

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def name(self) -> str:
        return self.provider_type.value

    # ========================================================================
    # CONTRACT
    # ========================================================================

    async def analyze_lab_report(
        self,
        text: str,
        options: Optional[AnalysisOptions] = None
    ) -> LabReportAnalysisResult:
        """
        Extract biomarkers from lab report text.

        Raises:
            AIAnalysisError: empty text, timeout, HTTP or parse failure
        """
        options = options or AnalysisOptions()
        start_time = datetime.now()

        if not text or not text.strip():
            raise AIAnalysisError("Lab report text is empty", self.name)

        content = await self._call_with_timeout(
            LAB_REPORT_SYSTEM_PROMPT,
            create_analysis_prompt(text, options),
            self.max_tokens,
        )

        if not content or not content.strip():
            raise AIAnalysisError(f"Empty response from {self.display_name}", self.name)

        parsed = parse_analysis_response(content, self.name)
        processing_time = (datetime.now() - start_time).total_seconds()

        self.logger.info(
            f"{self.display_name} extracted {len(parsed.biomarkers)} biomarkers "
            f"in {processing_time:.2f}s ({self.model})"
        )

        return LabReportAnalysisResult(
            biomarkers=parsed.biomarkers,
            overall_confidence=parsed.average_confidence(),
            analyzed_text=text,
            lab_date=parsed.lab_date,
            lab_name=parsed.lab_name,
            patient_name=parsed.patient_name if options.extract_patient_info else None,
            warnings=parsed.warnings,
            model_used=self.model,
            processing_time=processing_time,
        )

    async def test_connection(self) -> bool:
        """Round-trip a trivial prompt. Never raises."""
        try:
            content = await self._call_with_timeout("", CONNECTION_TEST_PROMPT, 10)
            return content.strip().strip('"') == "OK"
        except AIAnalysisError as e:
            self.logger.warning(f"{self.display_name} connection test failed: {e}")
            return False

    def validate_configuration(self) -> bool:
        return True

    @abstractmethod
    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Send one chat exchange and return the assistant text."""
        pass

    # ========================================================================
    # HTTP
    # ========================================================================

    async def _call_with_timeout(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        try:
            return await asyncio.wait_for(
                self._complete(system_prompt, user_prompt, max_tokens),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.logger.error(f"{self.display_name} request timed out after {self.timeout:.0f}s")
            raise AIAnalysisError(
                f"{self.display_name} request timed out after {self.timeout:.0f} seconds",
                self.name,
                code="TIMEOUT",
            )
        except AIAnalysisError:
            raise
        except aiohttp.ClientConnectorError as e:
            raise AIAnalysisError(
                f"Cannot connect to {self.display_name} at {self.base_url}: {e}",
                self.name,
                code="CONNECTION_ERROR",
            )
        except (aiohttp.ClientError, KeyError, IndexError, TypeError, ValueError) as e:
            raise AIAnalysisError(f"{self.display_name} analysis failed: {e}", self.name)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed and self._session_loop is current_loop:
                await self._session.close()

            timeout = aiohttp.ClientTimeout(total=None, sock_connect=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        session = await self._get_session()
        self.logger.debug(f"POST {url} (model={payload.get('model')})")

        async with session.post(url, json=payload, headers=headers or {}) as response:
            if response.status != 200:
                message = await self._error_message(response)
                self.logger.error(f"{self.display_name} API error ({response.status}): {message}")
                raise AIAnalysisError(
                    f"{self.display_name} API error: {message}",
                    self.name,
                    code=str(response.status),
                )
            return await response.json(content_type=None)

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        text = await response.text()
        try:
            data = await response.json(content_type=None)
        except ValueError:
            return text or f"HTTP {response.status}"
        if isinstance(data, dict):
            error = data.get('error')
            if isinstance(error, dict) and error.get('message'):
                return str(error['message'])
            if isinstance(error, str):
                return error
        return text or f"HTTP {response.status}"

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

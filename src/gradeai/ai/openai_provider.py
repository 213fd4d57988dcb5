"""
OpenAI-compatible API provider.

Serves every provider exposing the chat completions API
(Mistral, DeepSeek, Groq).
"""

import time
from typing import Any, Dict, List

import httpx
from openai import APIConnectionError, APITimeoutError, InternalServerError, OpenAI, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gradeai.ai.base_provider import BaseProvider
from gradeai.config.constants import (
    ANALYSIS_MAX_TOKENS,
    ANALYSIS_TEMPERATURE,
    API_CONNECT_TIMEOUT,
    API_READ_TIMEOUT,
    MAX_RETRIES,
    VISION_MAX_TOKENS,
)
from gradeai.core.models import PageImage

RETRYABLE_EXCEPTIONS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)


class OpenAICompatibleProvider(BaseProvider):
    """
    Provider for OpenAI-compatible APIs.

    Configuration is handled by the factory using config/providers.py registry.
    """

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        model: str,
        base_url: str = None,
        display_name: str = "",
        default_confidence: float = 0.80,
        mock_mode: bool = False,
        **kwargs
    ):
        super().__init__(
            provider_id=provider_id,
            model=model,
            display_name=display_name,
            default_confidence=default_confidence,
            mock_mode=mock_mode,
        )
        self.api_key = api_key
        self.base_url = base_url

        if not mock_mode:
            self.client = self._create_client(kwargs)

    def _create_client(self, kwargs: Dict) -> OpenAI:
        """Create OpenAI client."""
        timeout = httpx.Timeout(
            connect=API_CONNECT_TIMEOUT,
            read=API_READ_TIMEOUT,
            write=API_CONNECT_TIMEOUT,
            pool=API_CONNECT_TIMEOUT
        )

        client_kwargs = {
            "api_key": self.api_key,
            "timeout": timeout,
            "max_retries": 0,  # tenacity handles retries
        }

        if self.base_url:
            client_kwargs["base_url"] = self.base_url

        client_kwargs.update(kwargs)
        return OpenAI(**client_kwargs)

    # ==================== IMAGE HANDLING ====================

    def _prepare_page(self, page: PageImage) -> Dict[str, Any]:
        """Convert page image to API format."""
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{page.mime_type};base64,{self._page_to_base64(page)}"}
        }

    # ==================== API CALLS ====================

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        reraise=True,
    )
    def call_text(
        self,
        prompt: str,
        system_prompt: str = None,
        response_format: str = "text"
    ) -> str:
        """Call chat completions with a text prompt."""
        start_time = time.time()
        messages = []

        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.model,
            "messages": messages,
            "max_tokens": ANALYSIS_MAX_TOKENS,
            "temperature": ANALYSIS_TEMPERATURE
        }

        if response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**kwargs)
        result = response.choices[0].message.content or ""

        self._log_call(
            prompt_type="text",
            prompt=prompt,
            response=result,
            duration_ms=(time.time() - start_time) * 1000,
            prompt_tokens=response.usage.prompt_tokens if response.usage else None,
            completion_tokens=response.usage.completion_tokens if response.usage else None,
        )

        return result

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        reraise=True,
    )
    def call_vision(
        self,
        prompt: str,
        pages: List[PageImage],
        system_prompt: str = None,
    ) -> str:
        """Call chat completions with page images."""
        start_time = time.time()

        content = [{"type": "text", "text": prompt}]
        content.extend(self._prepare_page(page) for page in pages)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=VISION_MAX_TOKENS,
            temperature=ANALYSIS_TEMPERATURE,
        )
        result = response.choices[0].message.content or ""

        self._log_call(
            prompt_type="vision",
            prompt=prompt,
            response=result,
            duration_ms=(time.time() - start_time) * 1000,
            prompt_tokens=response.usage.prompt_tokens if response.usage else None,
            completion_tokens=response.usage.completion_tokens if response.usage else None,
        )

        return result

"""
Anthropic Claude provider.
"""

import time
from typing import Any, Dict, List

import httpx
from anthropic import Anthropic, APIConnectionError, APITimeoutError, InternalServerError, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gradeai.ai.base_provider import BaseProvider
from gradeai.config.constants import (
    API_CONNECT_TIMEOUT,
    API_READ_TIMEOUT,
    CLAUDE_MAX_TOKENS,
    CLAUDE_TEMPERATURE,
    MAX_RETRIES,
    VISION_MAX_TOKENS,
)
from gradeai.core.models import PageImage

RETRYABLE_EXCEPTIONS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)


class ClaudeProvider(BaseProvider):
    """Provider for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        provider_id: str = "claude",
        display_name: str = "Claude",
        default_confidence: float = 0.85,
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

        if not mock_mode:
            self.client = Anthropic(
                api_key=api_key,
                timeout=httpx.Timeout(API_READ_TIMEOUT, connect=API_CONNECT_TIMEOUT),
                max_retries=0,  # tenacity handles retries
                **kwargs
            )

    def _prepare_page(self, page: PageImage) -> Dict[str, Any]:
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": page.mime_type, "data": self._page_to_base64(page)},
        }

    def _create_message(self, content, system_prompt: str, max_tokens: int) -> str:
        start_time = time.time()
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": CLAUDE_TEMPERATURE,
            "messages": [{"role": "user", "content": content}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        response = self.client.messages.create(**kwargs)
        result = "".join(getattr(block, "text", "") for block in response.content)

        usage = getattr(response, "usage", None)
        prompt = content if isinstance(content, str) else next(
            (c["text"] for c in content if c.get("type") == "text"), ""
        )
        self._log_call(
            prompt_type="text" if isinstance(content, str) else "vision",
            prompt=prompt,
            response=result,
            duration_ms=(time.time() - start_time) * 1000,
            prompt_tokens=getattr(usage, "input_tokens", None),
            completion_tokens=getattr(usage, "output_tokens", None),
        )
        return result

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
        """Call the Messages API with a text prompt (JSON is requested in the prompt)."""
        return self._create_message(prompt, system_prompt, CLAUDE_MAX_TOKENS)

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
        """Call the Messages API with page images followed by the prompt."""
        content = [self._prepare_page(page) for page in pages]
        content.append({"type": "text", "text": prompt})
        return self._create_message(content, system_prompt, VISION_MAX_TOKENS)

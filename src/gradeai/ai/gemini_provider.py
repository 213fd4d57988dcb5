"""
Google Gemini provider using the google-genai SDK.
"""

import time
from typing import List

import google.genai as genai
from google.api_core import exceptions as google_exceptions
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gradeai.ai.base_provider import BaseProvider
from gradeai.config.constants import ANALYSIS_MAX_TOKENS, ANALYSIS_TEMPERATURE, MAX_RETRIES, VISION_MAX_TOKENS
from gradeai.core.models import PageImage


# Define retryable exceptions for Google API
RETRYABLE_EXCEPTIONS = (
    genai_errors.ServerError,  # 5xx from the genai SDK
    google_exceptions.TooManyRequests,  # 429 rate limit
    google_exceptions.ServiceUnavailable,  # 503
    google_exceptions.DeadlineExceeded,  # timeout
    google_exceptions.InternalServerError,  # 500
    google_exceptions.GatewayTimeout,  # 504
    ConnectionError,
    TimeoutError,
)


class GeminiProvider(BaseProvider):
    """
    Provider for Google Gemini API interactions.

    Inherits from BaseProvider for shared functionality.
    Implements Gemini-specific API calls.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        provider_id: str = "gemini",
        display_name: str = "Gemini",
        default_confidence: float = 0.80,
        mock_mode: bool = False,
        **kwargs
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key
            model: Model used for text and vision calls
            mock_mode: If True, skip client creation for testing
        """
        super().__init__(
            provider_id=provider_id,
            model=model,
            display_name=display_name,
            default_confidence=default_confidence,
            mock_mode=mock_mode,
        )
        self.api_key = api_key

        if not mock_mode:
            self.client = genai.Client(api_key=self.api_key)

    def _generate(self, contents, system_prompt: str, max_tokens: int, json_output: bool, prompt_type: str, prompt: str) -> str:
        start_time = time.time()

        config = genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=ANALYSIS_TEMPERATURE,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_output else None,
        )
        response = self.client.models.generate_content(model=self.model, contents=contents, config=config)
        result = response.text or ""

        # Extract token usage
        prompt_tokens = None
        completion_tokens = None
        if getattr(response, 'usage_metadata', None):
            prompt_tokens = getattr(response.usage_metadata, 'prompt_token_count', None)
            completion_tokens = getattr(response.usage_metadata, 'candidates_token_count', None)

        self._log_call(
            prompt_type=prompt_type,
            prompt=prompt,
            response=result,
            duration_ms=(time.time() - start_time) * 1000,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
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
        """
        Call the text API.

        Args:
            prompt: User prompt
            system_prompt: System instruction (optional)
            response_format: "text" or "json"

        Returns:
            Model response text
        """
        return self._generate(
            [prompt], system_prompt, ANALYSIS_MAX_TOKENS,
            json_output=response_format == "json", prompt_type="text", prompt=prompt,
        )

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
        """Call the vision API with page images."""
        contents = [genai_types.Part.from_bytes(data=page.data, mime_type=page.mime_type) for page in pages]
        contents.append(prompt)
        return self._generate(
            contents, system_prompt, VISION_MAX_TOKENS,
            json_output=True, prompt_type="vision", prompt=prompt,
        )

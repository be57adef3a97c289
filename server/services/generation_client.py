"""
Generation service client

Thin wrapper over an OpenAI-compatible ``/chat/completions`` endpoint.
One call per request, time-bounded, no retries: callers decide what a
failure means for their response.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from core.config import GenerationConfig, get_config


class GenerationError(RuntimeError):
    """Base class for generation service failures"""


class GenerationUnavailableError(GenerationError):
    """Service not configured or not reachable"""


class GenerationRequestError(GenerationError):
    """The request reached the service but did not produce text"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GenerationResponse:
    text: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    usage_reported: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerationClient:
    """Chat-completions client used by the orchestrator and the logic assistant"""

    def __init__(self, config: Optional[GenerationConfig] = None, http_client: Optional[httpx.Client] = None):
        self.config = config or get_config().generation
        self._http = http_client

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def complete(self, system_prompt: str, user_prompt: str, max_tokens: Optional[int] = None) -> GenerationResponse:
        """Send one chat completion and return the assistant text"""
        if not self.is_configured:
            raise GenerationUnavailableError("Generation service is not configured (HEALTH_LLM_BASE_URL unset)")

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": self.config.temperature,
        }

        post = self._http.post if self._http is not None else httpx.post
        try:
            response = post(url, json=payload, headers=self._headers(), timeout=self.config.timeout_s)
        except httpx.ConnectError as e:
            logger.warning(f"[GenerationClient] Service unreachable at {self.config.base_url}: {e}")
            raise GenerationUnavailableError(f"Generation service unreachable: {e}") from e
        except httpx.TimeoutException as e:
            logger.warning(f"[GenerationClient] Request timed out after {self.config.timeout_s}s")
            raise GenerationRequestError(f"Generation request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"[GenerationClient] Request failed: {e}")
            raise GenerationRequestError(f"Generation request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"[GenerationClient] HTTP {response.status_code}: {response.text[:200]}")
            raise GenerationRequestError(
                f"Generation service returned HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            result = response.json()
        except ValueError as e:
            raise GenerationRequestError("Generation service returned a non-JSON body") from e

        return self._to_response(result)

    def _to_response(self, result: Any) -> GenerationResponse:
        if not isinstance(result, dict):
            raise GenerationRequestError("Generation service returned an unexpected body")
        choices = result.get("choices")
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise GenerationRequestError("No text response from generation service")

        usage = result.get("usage")
        try:
            input_tokens = int(usage.get("prompt_tokens") or 0)
            output_tokens = int(usage.get("completion_tokens") or 0)
            usage_reported = True
        except (AttributeError, TypeError, ValueError):
            # missing or malformed usage: caller falls back to its estimate
            input_tokens = output_tokens = 0
            usage_reported = False
        logger.debug(
            f"[GenerationClient] {len(content)} chars, tokens in={input_tokens} out={output_tokens}"
        )
        return GenerationResponse(
            text=content,
            model=str(result.get("model") or self.config.model),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            usage_reported=usage_reported and bool(usage),
        )

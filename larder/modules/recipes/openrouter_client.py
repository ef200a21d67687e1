"""
OpenRouter chat-completions client.

One instance is built at application startup from settings and handed to
RecipeService through a FastAPI dependency. Each call is a single POST with a
bounded timeout; there are no retries. Failures are raised as the typed
errors below so the API can render a distinct code per failure kind.
"""

import json
import logging
import re
import requests
from typing import Any, Dict, List, Optional

from larder.core.errors import AIGenerationError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)


class OpenRouterError(AIGenerationError):
    code = "AI_PROVIDER_ERROR"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class OpenRouterAuthError(OpenRouterError):
    code = "AI_AUTH_ERROR"
    default_message = "Invalid or missing OpenRouter API key"


class OpenRouterRateLimitError(OpenRouterError):
    code = "AI_RATE_LIMITED"
    default_message = "OpenRouter rate limit exceeded"

    def __init__(self, message: Optional[str] = None, reset_at: Optional[int] = None):
        super().__init__(message, status=429)
        self.reset_at = reset_at


class OpenRouterNetworkError(OpenRouterError):
    code = "AI_UNAVAILABLE"
    default_message = "Could not reach OpenRouter"


class OpenRouterServerError(OpenRouterError):
    code = "AI_PROVIDER_ERROR"
    default_message = "OpenRouter server error"


class OpenRouterClientError(OpenRouterError):
    code = "AI_REQUEST_REJECTED"
    default_message = "OpenRouter rejected the request"


class OpenRouterParseError(OpenRouterError):
    code = "AI_INVALID_RESPONSE"
    default_message = "Failed to parse OpenRouter response"

    def __init__(self, message: Optional[str] = None, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


def sanitize_content(content: str) -> str:
    """Strip markup and javascript: schemes from user-supplied prompt text."""
    return _JS_SCHEME_RE.sub("", _TAG_RE.sub("", content)).strip()


class OpenRouterClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        default_model: str = "openai/gpt-4o",
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key or not api_key.strip():
            raise ValueError("OpenRouter api_key is required")
        if not base_url.startswith("https://") and "localhost" not in base_url:
            raise ValueError("OpenRouter base_url must use HTTPS")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.default_params = {"temperature": temperature, "max_tokens": max_tokens}
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "OpenRouterClient":
        return cls(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            default_model=settings.openrouter_default_model,
            temperature=settings.openrouter_temperature,
            max_tokens=settings.openrouter_max_tokens,
            timeout=settings.openrouter_timeout_seconds,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _body(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str],
        response_format: Optional[Dict[str, Any]],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": model or self.default_model,
            "messages": [
                {**m, "content": sanitize_content(m["content"])} if m["role"] == "user" else m
                for m in messages
            ],
            **self.default_params,
            **params,
        }
        if response_format is not None:
            body["response_format"] = response_format
        return body

    def _error_for(self, response: requests.Response) -> OpenRouterError:
        status = response.status_code
        try:
            payload = response.json()
        except ValueError:
            payload = None
        detail = response.text
        if isinstance(payload, dict):
            error = payload.get("error")
            detail = error.get("message") if isinstance(error, dict) else (error or payload.get("message") or detail)
        logger.error(f"OpenRouter API error {status}: {detail}")

        if status == 401:
            return OpenRouterAuthError()
        if status == 429:
            reset = response.headers.get("X-Ratelimit-Reset")
            return OpenRouterRateLimitError(reset_at=int(reset) if reset and reset.isdigit() else None)
        if 400 <= status < 500:
            return OpenRouterClientError(detail or None, status=status)
        if status >= 500:
            return OpenRouterServerError(f"OpenRouter server error ({status})", status=status)
        return OpenRouterError(f"Unexpected OpenRouter status ({status})", status=status)

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None,
        **params: Any,
    ) -> Dict[str, Any]:
        """POST /chat/completions and return the decoded completion object."""
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=self._body(messages, model, response_format, params),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise OpenRouterNetworkError(f"OpenRouter request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise OpenRouterNetworkError(f"OpenRouter request failed: {e}") from e

        if not response.ok:
            raise self._error_for(response)

        try:
            completion = response.json()
        except ValueError as e:
            raise OpenRouterParseError("OpenRouter returned a non-JSON body", raw_response=response.text) from e
        if not isinstance(completion, dict) or not completion.get("choices"):
            raise OpenRouterParseError("OpenRouter response has no choices", raw_response=response.text)
        return completion

    def generate_json(
        self,
        messages: List[Dict[str, str]],
        response_format: Dict[str, Any],
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a schema-constrained completion and decode the message content as JSON."""
        completion = self.chat_completion(messages, model=model, response_format=response_format)
        choice = completion["choices"][0]
        if not isinstance(choice, dict) or not isinstance(choice.get("message"), dict):
            raise OpenRouterParseError("OpenRouter response has a malformed choice")
        content = choice["message"].get("content")
        if not content:
            raise OpenRouterParseError("OpenRouter response has empty content")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise OpenRouterParseError("Completion content is not valid JSON", raw_response=content) from e
        if not isinstance(data, dict):
            raise OpenRouterParseError("Completion content is not a JSON object", raw_response=content)
        return data

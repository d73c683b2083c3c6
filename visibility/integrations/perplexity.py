"""
Perplexity API Client

Answer engine backed by Perplexity's OpenAI-compatible chat completions
endpoint. Answers come with the web sources they cite, which is what the
visibility analysis scores.

API: https://docs.perplexity.ai/

One ``ask`` is exactly one HTTP call. Retrying is not done here; the
pipeline wraps calls in a RetryPolicy. Errors are classified so the policy
knows what is worth retrying:
- 408, 409, 429, 5xx, timeouts, transport errors, malformed bodies: retryable
- other 4xx (bad key, bad request): permanent
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from .base import AnswerEngine, AnswerEngineError, ConnectivityResult, RawAnswer

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (408, 409, 429)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions from people researching "
    "products and vendors. Answer naturally and cite the sources you rely on."
)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


class PerplexityClient(AnswerEngine):
    """
    Async client for Perplexity API.

    Usage:
        client = PerplexityClient(api_key="your_api_key")

        answer = await client.ask("What are the best CRM tools for startups?")
        # answer.text = "Popular options include..."
        # answer.citations = ["https://...", ...]

        await client.close()
    """

    name = "perplexity"
    BASE_URL = "https://api.perplexity.ai"

    def __init__(
        self,
        api_key: str,
        model: str = "sonar",
        timeout: float = 60.0,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Perplexity client.

        Args:
            api_key: Perplexity API key
            model: Model to use (sonar, sonar-pro, ...)
            timeout: Request timeout in seconds
            temperature: Response temperature (0-1)
            max_tokens: Maximum tokens in response
            system_prompt: System message sent with every question
            base_url: Override the API base URL
            transport: Custom httpx transport (tests)
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

        self._client = httpx.AsyncClient(
            base_url=base_url or self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    def _payload(self, question: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": question})

        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
            "return_citations": True,
        }

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._closed:
            raise AnswerEngineError("Client has been closed", retryable=False)

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise AnswerEngineError(f"Request timed out: {e}", retryable=True) from e
        except httpx.RequestError as e:
            raise AnswerEngineError(f"Request failed: {e}", retryable=True) from e

        if response.status_code >= 400:
            raise AnswerEngineError(
                f"API error: {self._error_message(response)}",
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AnswerEngineError(
                "Malformed response body", status_code=response.status_code, retryable=True
            ) from e

        if not isinstance(data, dict):
            raise AnswerEngineError(
                "Malformed response body", status_code=response.status_code, retryable=True
            )
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return str(response.status_code)
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return f"{response.status_code} {error['message']}"
        return str(response.status_code)

    @staticmethod
    def _extract_citations(data: Dict[str, Any]) -> List[str]:
        """Cited URLs from ``citations`` or, failing that, ``search_results``."""
        citations = data.get("citations") or []
        urls = [c for c in citations if isinstance(c, str) and c.strip()]
        if urls:
            return urls

        results = data.get("search_results") or []
        return [
            r["url"] for r in results
            if isinstance(r, dict) and isinstance(r.get("url"), str) and r["url"].strip()
        ]

    async def ask(self, question_text: str) -> RawAnswer:
        """
        Ask Perplexity one question.

        Args:
            question_text: The question to ask

        Returns:
            RawAnswer with answer text and cited URLs

        Raises:
            AnswerEngineError: On HTTP, transport or parsing failure
        """
        data = await self._post(self._payload(question_text))

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise AnswerEngineError("Response contained no choices", retryable=True)

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise AnswerEngineError("Response contained no answer text", retryable=True)

        usage = data.get("usage") or {}

        return RawAnswer(
            text=content,
            citations=self._extract_citations(data),
            model=data.get("model") or self.model,
            tokens_used=usage.get("total_tokens", 0) if isinstance(usage, dict) else 0,
        )

    async def test_connectivity(self) -> ConnectivityResult:
        """
        Send a minimal question to verify key and reachability.

        Never raises; failures are reported in the result.
        """
        if not self.api_key:
            return ConnectivityResult(success=False, errors=["Perplexity API key is not configured"])

        started = time.monotonic()
        try:
            data = await self._post(self._payload("Reply with the single word: ok", max_tokens=5))
        except AnswerEngineError as e:
            if e.status_code in (401, 403):
                errors = [f"Perplexity authentication failed ({e.status_code})"]
            else:
                errors = [f"Perplexity unreachable: {e}"]
            logger.warning(f"Perplexity connectivity test failed: {errors[0]}")
            return ConnectivityResult(success=False, errors=errors)

        latency_ms = round((time.monotonic() - started) * 1000, 1)
        if not data.get("choices"):
            return ConnectivityResult(
                success=False,
                errors=["Perplexity returned an empty response"],
                latency_ms=latency_ms,
            )

        logger.info(f"Perplexity connectivity OK ({latency_ms}ms)")
        return ConnectivityResult(success=True, latency_ms=latency_ms)

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

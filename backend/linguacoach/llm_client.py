from __future__ import annotations
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .errors import (
	AppError,
	ConfigError,
	EmptyResponseError,
	NetworkError,
	PaymentError,
	RateLimitError,
	UnknownError,
	UpstreamAuthError,
)
from .settings import settings

logger = logging.getLogger(__name__)

# Signature routes depend on; see get_content_generator
ContentGenerator = Callable[..., Awaitable[str]]

_NETWORK_STATUSES = (408, 502, 503, 504)


def classify_failure(status: Optional[int], body: str = "") -> AppError:
	"""Map an upstream failure to the error taxonomy.

	Checked in priority order: credits, rate limit, auth, network, unknown.
	"""
	text = (body or "").lower()
	detail = f"OpenRouter error {status}: {body[:300]}" if status else f"OpenRouter error: {body[:300]}"
	if status == 402 or "insufficient credits" in text or "insufficient_quota" in text:
		return PaymentError(detail)
	if status == 429 or "rate limit" in text or "rate-limit" in text or "too many requests" in text:
		return RateLimitError(detail)
	if status in (401, 403):
		return UpstreamAuthError(detail)
	if status in _NETWORK_STATUSES or "timed out" in text or "timeout" in text:
		return NetworkError(detail)
	return UnknownError(detail)


class OpenRouterClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		max_retries: Optional[int] = None,
		retry_base_seconds: Optional[float] = None,
		timeout: Optional[float] = None,
	) -> None:
		self.api_key = api_key or settings.llm_api_key
		if not self.api_key:
			raise ConfigError("OPENROUTER_API_KEY is not configured")
		self.model = model or settings.openrouter_model
		self.base_url = base_url or settings.openrouter_base_url
		self.max_retries = settings.ai_max_retries if max_retries is None else max_retries
		self.retry_base_seconds = settings.ai_retry_base_seconds if retry_base_seconds is None else retry_base_seconds
		self._headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Accept": "text/event-stream",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		self._client = httpx.AsyncClient(timeout=timeout or settings.ai_timeout_seconds)

	async def generate(self, prompt: str, json_mode: bool = False) -> str:
		payload: Dict[str, Any] = {
			"model": self.model,
			"messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
			"stream": True,
		}
		# Only valid for prompts that answer with a top-level object
		if json_mode:
			payload["response_format"] = {"type": "json_object"}

		attempt = 0
		while True:
			try:
				return await self._stream_once(payload)
			except AppError as err:
				if not err.retryable:
					logger.error("llm call failed (%s): %s", err.kind.value, err.detail)
					raise
				if attempt >= self.max_retries:
					logger.error("llm call failed after %d attempts (%s): %s", attempt + 1, err.kind.value, err.detail)
					raise err.fatal()
				delay = self.retry_base_seconds * (2 ** attempt)
				logger.warning("llm call attempt %d failed (%s); retrying in %.1fs", attempt + 1, err.kind.value, delay)
				await asyncio.sleep(delay)
				attempt += 1

	async def _stream_once(self, payload: Dict[str, Any]) -> str:
		parts: List[str] = []
		try:
			async with self._client.stream("POST", self.base_url, headers=self._headers, json=payload) as resp:
				if resp.status_code >= 400:
					raw = await resp.aread()
					raise classify_failure(resp.status_code, raw.decode(errors="replace"))
				async for line in resp.aiter_lines():
					token = _parse_sse_line(line)
					if token:
						parts.append(token)
		except AppError:
			raise
		except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as net_err:
			raise NetworkError(f"{type(net_err).__name__}: {net_err}") from net_err
		except httpx.HTTPError as http_err:
			raise UnknownError(f"{type(http_err).__name__}: {http_err}") from http_err
		text = "".join(parts)
		if not text:
			raise EmptyResponseError("stream completed without content")
		return text

	async def aclose(self) -> None:
		await self._client.aclose()

	async def __aenter__(self) -> "OpenRouterClient":
		return self

	async def __aexit__(self, exc_type, exc, tb) -> None:
		await self.aclose()


def _parse_sse_line(line: str) -> str:
	"""Return the text delta carried by one SSE line, or an empty string.

	Error objects sent mid-stream are classified and raised.
	"""
	if not line or line.startswith(":") or not line.startswith("data:"):
		return ""
	data = line[len("data:"):].strip()
	if not data or data == "[DONE]":
		return ""
	try:
		obj = json.loads(data)
	except ValueError:
		return ""
	if not isinstance(obj, dict):
		return ""
	error = obj.get("error")
	if error:
		if isinstance(error, dict):
			code = error.get("code")
			raise classify_failure(code if isinstance(code, int) else None, str(error.get("message") or error))
		raise classify_failure(None, str(error))
	choices = obj.get("choices") or []
	if not choices:
		return ""
	delta = choices[0].get("delta") or {}
	return delta.get("content") or choices[0].get("text") or ""


async def generate_content(prompt: str, json_mode: bool = False) -> str:
	async with OpenRouterClient() as client:
		return await client.generate(prompt, json_mode)


def get_content_generator() -> ContentGenerator:
	return generate_content

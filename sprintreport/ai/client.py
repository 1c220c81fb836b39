"""Text generation client for OpenAI-compatible chat completion APIs."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import httpx

from sprintreport.ai.prompts import SectionPrompt
from sprintreport.config import Settings
from sprintreport.exceptions import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

SERVICE = "generator"


class TextGenerator(Protocol):
    """Anything that turns a section prompt into a JSON reply string."""

    async def generate(self, prompt: SectionPrompt) -> str:
        ...


@dataclass
class GenerationResult:
    """Result from generation request."""
    text: str
    model: str
    usage: Dict[str, int]
    finish_reason: str


class OpenAIGenerator:
    """Async client for the OpenAI chat completions API in JSON mode."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not settings.is_openai_configured():
            raise ConfigurationError("OPENAI_API_KEY is required", missing=["OPENAI_API_KEY"])

        self.api_key = settings.openai_api_key
        self.base_url = settings.openai_api_base
        self.model = settings.openai_model
        self.temperature = settings.openai_temperature
        self.max_tokens = settings.openai_max_tokens
        self.timeout = settings.http_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def complete(self, system_prompt: str, prompt: str) -> GenerationResult:
        """
        Run one chat completion constrained to a JSON object reply.

        Raises:
            TransportError: on network failure or a non-2xx response
        """
        client = await self._get_client()

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        try:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"OpenAI error ({status}): {e.response.text[:200]}")
            raise TransportError(SERVICE, f"HTTP {status} from chat completions", status_code=status) from e
        except httpx.RequestError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise TransportError(SERVICE, f"Request failed: {e}") from e
        except ValueError as e:
            raise TransportError(SERVICE, "Invalid JSON envelope from chat completions") from e

        try:
            choice = data["choices"][0]
            text = choice["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise TransportError(SERVICE, "Chat completion response has no message content") from e

        return GenerationResult(
            text=text,
            model=data.get("model", self.model),
            usage=data.get("usage", {}),
            finish_reason=choice.get("finish_reason", "unknown"),
        )

    async def generate(self, prompt: SectionPrompt) -> str:
        logger.debug(f"Generating section '{prompt.section}' ({len(prompt.text)} chars)")
        result = await self.complete(prompt.system_prompt, prompt.text)
        if result.finish_reason == "length":
            logger.warning(f"Section '{prompt.section}' reply was truncated at max_tokens")
        return result.text

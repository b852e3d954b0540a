"""LLM access for the draft generator. OpenAI is asked first, Anthropic second."""

import json
import logging

import anthropic
from openai import AsyncOpenAI

from wayfare.config import settings

logger = logging.getLogger(__name__)


def parse_json_reply(raw: str) -> dict:
    """Decode a JSON object from a model reply, tolerating markdown code fences.

    Raises json.JSONDecodeError on anything that is not a JSON object.
    """
    text = raw.strip()
    if text.startswith("```"):
        text = "\n".join(line for line in text.split("\n") if not line.strip().startswith("```")).strip()
    data = json.loads(text)
    if not isinstance(data, dict):
        raise json.JSONDecodeError("Expected a JSON object", text, 0)
    return data


class LLMClient:
    def __init__(self, openai_client=None, anthropic_client=None):
        self._openai = openai_client
        self._anthropic = anthropic_client

        if self._openai is None and settings.openai_api_key:
            self._openai = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.llm_timeout_seconds)
        if self._anthropic is None and settings.anthropic_api_key:
            self._anthropic = anthropic.AsyncAnthropic(
                api_key=settings.anthropic_api_key, timeout=settings.llm_timeout_seconds
            )

    @property
    def available(self) -> bool:
        return self._openai is not None or self._anthropic is not None

    async def _ask_openai(self, system: str, user: str, max_tokens: int, temperature: float, json_mode: bool) -> str:
        request: dict = {
            "model": settings.openai_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        response = await self._openai.chat.completions.create(**request)
        return (response.choices[0].message.content or "").strip()

    async def _ask_anthropic(self, system: str, user: str, max_tokens: int, temperature: float) -> str:
        response = await self._anthropic.messages.create(
            model=settings.anthropic_model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return "".join(block.text for block in response.content if block.type == "text").strip()

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int = 2000,
        temperature: float = 0,
        json_mode: bool = False,
    ) -> str:
        """Return the first successful completion.

        Raises RuntimeError when no provider is configured or all of them fail.
        """
        failures: list[str] = []

        if self._openai is not None:
            try:
                return await self._ask_openai(system, user, max_tokens, temperature, json_mode)
            except Exception as e:
                failures.append(f"openai: {e}")
                logger.warning(f"OpenAI completion failed, falling back: {e}")

        if self._anthropic is not None:
            try:
                return await self._ask_anthropic(system, user, max_tokens, temperature)
            except Exception as e:
                failures.append(f"anthropic: {e}")
                logger.warning(f"Anthropic completion failed: {e}")

        raise RuntimeError("LLM unavailable: " + ("; ".join(failures) or "no provider configured"))


llm_client = LLMClient()

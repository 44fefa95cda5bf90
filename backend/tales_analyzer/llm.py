"""
Chat-completions client (OpenRouter or any OpenAI-compatible endpoint)
and JSON response parsing shared by the analysis stages.
"""

import json
import logging
import re

import httpx

from tales_analyzer.config import get_settings
from tales_analyzer.errors import LLMRequestError, LLMResponseError

logger = logging.getLogger(__name__)


def _strip_fences(text: str) -> str:
    """Remove markdown code fences from LLM output."""
    text = re.sub(r"^```(?:json)?\s*\n?", "", text.strip())
    text = re.sub(r"\n?```\s*$", "", text.strip())
    return text.strip()


def parse_json_response(text: str, lenient: bool = False) -> dict:
    """
    Parse a model reply as a JSON object. Code fences are always stripped.
    With lenient=True, fall back to the outermost {...} block when the
    reply has prose around the JSON.
    """
    if not text or not text.strip():
        raise LLMResponseError("Empty response from LLM")

    cleaned = _strip_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        if not lenient:
            raise LLMResponseError(f"Response is not valid JSON: {e}") from e
        match = re.search(r"\{[\s\S]*\}", cleaned)
        if not match:
            raise LLMResponseError("No JSON object found in response") from e
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e2:
            raise LLMResponseError("Could not extract valid JSON from response") from e2

    if not isinstance(data, dict):
        raise LLMResponseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _error_message(data) -> str:
    """Provider error text; "error" may be an object with a message or a bare string."""
    if not isinstance(data, dict):
        return ""
    err = data.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or "")
    return str(err) if err else ""


def _content_text(content) -> str:
    """Message content is a string, or a list of parts on some providers."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


class LLMClient:
    def __init__(self, settings=None, transport: httpx.AsyncBaseTransport | None = None, logger=logger):
        self.settings = settings or get_settings()
        self._transport = transport
        self.log = logger

    def _api_key(self) -> str:
        key = self.settings.llm_api_key
        if not key:
            raise LLMRequestError("LLM API key not found. Set LLM_API_KEY in .env")
        return key

    async def complete(
        self,
        prompt: str,
        image_urls: list[str] | None = None,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int = 4096,
    ) -> str:
        """Send one user turn (text + optional images), return the raw content string."""
        s = self.settings

        content = [{"type": "text", "text": prompt}]
        for url in image_urls or []:
            content.append({"type": "image_url", "image_url": {"url": url}})

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})

        headers = {
            "Authorization": f"Bearer {self._api_key()}",
            "Content-Type": "application/json",
            "X-Title": "Tales Analyzer",
        }
        body = {
            "model": s.llm_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": s.llm_temperature if temperature is None else temperature,
        }

        endpoint = s.llm_base_url.rstrip("/") + "/chat/completions"
        self.log.debug(f"LLM call to {s.llm_model} ({len(prompt)} chars, {len(image_urls or [])} images)")
        try:
            async with httpx.AsyncClient(timeout=s.llm_timeout, transport=self._transport) as client:
                resp = await client.post(endpoint, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise LLMRequestError(f"LLM request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            raise LLMRequestError(
                f"LLM non-JSON response (HTTP {resp.status_code}): {resp.text[:300]}"
            )

        if resp.status_code != 200:
            raise LLMRequestError(f"LLM API error ({resp.status_code}): {_error_message(data) or resp.text[:300]}")

        if not isinstance(data, dict):
            raise LLMRequestError(f"Unexpected LLM response shape: {resp.text[:300]}")
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise LLMRequestError("No choices in LLM response")

        message = choices[0].get("message")
        content = _content_text(message.get("content") if isinstance(message, dict) else None)
        if not content:
            raise LLMRequestError("No response content from LLM")
        return content

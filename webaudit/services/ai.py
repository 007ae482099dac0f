"""
WebAudit — External scoring model client.
Multi-provider: Anthropic (Claude) and OpenAI-compatible endpoints.

``generate`` makes exactly one request and reports token usage; retrying is
left to the caller (see ``webaudit.services.retry``).
"""

import json
import logging
import re
from dataclasses import dataclass

import aiohttp

from webaudit.config import settings

logger = logging.getLogger(__name__)

# Anthropic API version header
ANTHROPIC_VERSION = "2023-06-01"

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class AIRequestError(RuntimeError):
    """Model call failed. ``status`` is the HTTP status when one was received."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class AIResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


async def generate(
    prompt: str,
    max_tokens: int,
    temperature: float = 0.0,
    *,
    system: str | None = None,
) -> AIResponse:
    """Send one prompt to the configured provider.

    Raises ``AIRequestError`` on any non-200 response, so the retry wrapper can
    classify rate limits by status or message.
    """
    token = settings.ai_auth_token
    if not token:
        if settings.ai_provider == "anthropic":
            raise AIRequestError("ANTHROPIC_API_KEY not set — cannot call Claude API")
        raise AIRequestError("AI_TOKEN not set — cannot call AI API")

    messages: list[dict] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    model = settings.ai_effective_model
    if settings.ai_provider == "anthropic":
        return await _request_anthropic(messages, temperature, max_tokens, model, token)
    return await _request_openai(messages, temperature, max_tokens, model, token)


def _timeout() -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(total=settings.ai_timeout_secs)


async def _request_openai(
    messages: list[dict],
    temperature: float,
    max_tokens: int,
    model: str,
    token: str,
) -> AIResponse:
    """OpenAI-compatible chat completions endpoint."""
    payload = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    async with aiohttp.ClientSession(timeout=_timeout()) as session:
        async with session.post(
            settings.ai_effective_url, json=payload, headers=headers
        ) as resp:
            body = await resp.text()
            if resp.status != 200:
                raise AIRequestError(f"AI API HTTP {resp.status}: {body[:500]}", resp.status)
            data = json.loads(body)

    content = data.get("choices", [{}])[0].get("message", {}).get("content", "") or ""
    usage = data.get("usage") or {}
    return AIResponse(
        text=content,
        input_tokens=int(usage.get("prompt_tokens", 0) or 0),
        output_tokens=int(usage.get("completion_tokens", 0) or 0),
    )


async def _request_anthropic(
    messages: list[dict],
    temperature: float,
    max_tokens: int,
    model: str,
    token: str,
) -> AIResponse:
    """Anthropic Messages API (Claude).

    Differences from OpenAI format:
    - system prompt is a top-level field, not in messages
    - header uses x-api-key instead of Authorization Bearer
    - usage is reported as input_tokens / output_tokens
    """
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    user_messages = [m for m in messages if m.get("role") != "system"]

    payload: dict = {
        "model": model,
        "messages": user_messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if system_parts:
        payload["system"] = "\n\n".join(system_parts)

    headers = {
        "x-api-key": token,
        "anthropic-version": ANTHROPIC_VERSION,
        "Content-Type": "application/json",
    }

    async with aiohttp.ClientSession(timeout=_timeout()) as session:
        async with session.post(
            settings.ai_effective_url, json=payload, headers=headers
        ) as resp:
            body = await resp.text()
            if resp.status != 200:
                raise AIRequestError(
                    f"Anthropic API HTTP {resp.status}: {body[:500]}", resp.status
                )
            data = json.loads(body)

    # {"content": [{"type": "text", "text": "..."}], "usage": {...}}
    blocks = data.get("content", [])
    text = "\n".join(b["text"] for b in blocks if b.get("type") == "text")
    usage = data.get("usage") or {}
    return AIResponse(
        text=text,
        input_tokens=int(usage.get("input_tokens", 0) or 0),
        output_tokens=int(usage.get("output_tokens", 0) or 0),
    )


# ── Parsing helpers ─────────────────────────────────────────────


def strip_fences(text: str) -> str:
    """Return the body of the first fenced code block, or the text unchanged."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def find_json_object(text: str, start: int = 0) -> str | None:
    """Return the first balanced ``{...}`` substring at or after ``start``.

    Braces inside JSON string literals are ignored.
    """
    begin = text.find("{", start)
    while begin != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(begin, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[begin : i + 1]
        # Unbalanced from here on; nothing later can close either
        return None
    return None


def extract_json(text: str) -> dict:
    """Extract the first JSON object from a model response.

    Raises ``ValueError`` when no object parses.
    """
    cleaned = strip_fences(text)
    pos = 0
    while True:
        candidate = find_json_object(cleaned, pos)
        if candidate is None:
            break
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            pos = cleaned.find("{", pos) + 1
            continue
        if isinstance(value, dict):
            return value
        break

    raise ValueError(f"Could not extract JSON from AI response:\n{cleaned[:300]}…")

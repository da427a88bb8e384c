"""
Multi-provider AI client with round-robin model failover.

A call walks an ordered roster of provider/model pairs. Any error or
non-2xx response advances to the next entry; once every entry has failed
in the current streak the call raises AIUnavailableError. A success resets
the streak. The rotation position lives in an explicit RotationState owned
by the caller, not in module globals.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from openai import AsyncOpenAI
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from ..core.config import Settings, get_settings
from ..core.errors import AIUnavailableError, ConnectorError

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 8192
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass(frozen=True)
class ModelConfig:
    id: str
    provider: str  # anthropic | openai | google | openrouter
    display_name: str
    max_tokens: int = 4096

    @property
    def label(self) -> str:
        return f"{self.display_name} ({self.provider})"


# Order matters: the first entry is the primary model
DEFAULT_MODEL_ROSTER: Tuple[ModelConfig, ...] = (
    ModelConfig("claude-sonnet-4-5-20250929", "anthropic", "Sonnet 4.5", 8192),
    ModelConfig("gpt-4o", "openai", "GPT-4o", 4096),
    ModelConfig("gemini-2.0-flash", "google", "Gemini 2.0 Flash", 8192),
    ModelConfig("deepseek/deepseek-r1-0528:free", "openrouter", "DeepSeek R1", 8192),
    ModelConfig("meta-llama/llama-4-maverick:free", "openrouter", "Llama 4 Maverick", 4096),
    ModelConfig("qwen/qwen3-235b-a22b:free", "openrouter", "Qwen3 235B", 4096),
)


def load_roster(settings: Optional[Settings] = None) -> Tuple[ModelConfig, ...]:
    """
    Roster from AI_MODEL_ROSTER_JSON when set, else the default.

    The JSON is a list of {"id", "provider", "display_name", "max_tokens"}.
    """
    settings = settings or get_settings()
    raw = (settings.AI_MODEL_ROSTER_JSON or "").strip()
    if not raw:
        return DEFAULT_MODEL_ROSTER
    try:
        entries = json.loads(raw)
        roster = tuple(
            ModelConfig(
                id=e["id"],
                provider=e["provider"],
                display_name=e.get("display_name") or e["id"],
                max_tokens=int(e.get("max_tokens") or 4096),
            )
            for e in entries
        )
    except (ValueError, KeyError, TypeError):
        logger.warning("Invalid AI_MODEL_ROSTER_JSON; using default roster", extra={"operation": "load_roster"})
        return DEFAULT_MODEL_ROSTER
    return roster or DEFAULT_MODEL_ROSTER


# ---------------------------------------------------------------------------
# Rotation state
# ---------------------------------------------------------------------------


@dataclass
class RotationState:
    index: int = 0
    consecutive_failures: int = 0

    def current(self, roster: Sequence[ModelConfig]) -> ModelConfig:
        return roster[self.index % len(roster)]

    def rotate(self, roster: Sequence[ModelConfig]) -> ModelConfig:
        prev = self.current(roster)
        self.index = (self.index + 1) % len(roster)
        self.consecutive_failures += 1
        nxt = self.current(roster)
        logger.warning(
            "Rotated from %s to %s (failure #%d)",
            prev.display_name,
            nxt.display_name,
            self.consecutive_failures,
            extra={"provider": nxt.provider, "model": nxt.id},
        )
        return nxt

    def reset(self) -> None:
        self.consecutive_failures = 0

    def exhausted(self, roster: Sequence[ModelConfig]) -> bool:
        return self.consecutive_failures >= len(roster)


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------


def _chat_messages(prompt: str, system: Optional[str]) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


def build_request_body(
    model: ModelConfig,
    prompt: str,
    system: Optional[str] = None,
    temperature: float = 0.7,
) -> Dict[str, Any]:
    """Provider-specific request body; the `provider` field lets a proxy route it."""
    body: Dict[str, Any] = {
        "provider": model.provider,
        "model": model.id,
        "temperature": temperature,
        "max_tokens": min(model.max_tokens, MAX_OUTPUT_TOKENS),
    }

    if model.provider == "anthropic":
        body["messages"] = [{"role": "user", "content": prompt}]
        if system:
            body["system"] = system
    elif model.provider in ("openai", "openrouter"):
        body["messages"] = _chat_messages(prompt, system)
    elif model.provider == "google":
        contents: List[Dict[str, Any]] = []
        if system:
            contents.append({"role": "user", "parts": [{"text": system}]})
            contents.append({"role": "model", "parts": [{"text": "Understood."}]})
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        body["contents"] = contents
        body["messages"] = _chat_messages(prompt, system)
    return body


def extract_response_text(provider: str, data: Any) -> str:
    """
    Text out of a provider response. Normalised `content[type=text]` blocks
    first, then raw OpenAI-style choices, then raw Gemini candidates.
    """
    if not isinstance(data, dict):
        return ""

    content = data.get("content")
    if isinstance(content, list):
        blocks = [b for b in content if isinstance(b, dict) and b.get("type") == "text"]
        if blocks:
            return "\n".join(b.get("text") or "" for b in blocks)

    if provider in ("openai", "openrouter"):
        choices = data.get("choices") or []
        if choices:
            text = ((choices[0] or {}).get("message") or {}).get("content")
            if text:
                return text

    if provider == "google":
        candidates = data.get("candidates") or []
        if candidates:
            parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
            return "\n".join(p.get("text") or "" for p in parts if isinstance(p, dict))

    if provider == "anthropic" and isinstance(content, str):
        return content

    return ""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


@lru_cache(maxsize=4)
def get_llm_client(provider: str) -> AsyncOpenAI:
    """
    Shared OpenAI-compatible client per provider.

    - "openrouter" routes through OpenRouter with OPENROUTER_API_KEY.
    - "openai" uses the standard API with OPENAI_API_KEY.
    """
    settings = get_settings()

    if provider == "openrouter":
        if not settings.OPENROUTER_API_KEY:
            raise ConnectorError("openrouter", "OPENROUTER_API_KEY not configured")
        return AsyncOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=settings.OPENROUTER_API_KEY.strip(),
            timeout=settings.AI_TIMEOUT_SECONDS,
            default_headers={
                "HTTP-Referer": settings.FRONTEND_ORIGIN or "http://localhost:3000",
                "X-Title": "StableMap Intelligence",
            },
        )

    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            raise ConnectorError("openai", "OPENAI_API_KEY not configured")
        return AsyncOpenAI(api_key=settings.OPENAI_API_KEY.strip(), timeout=settings.AI_TIMEOUT_SECONDS)

    raise ConnectorError(provider, "no OpenAI-compatible client for provider")


ModelCaller = Callable[[ModelConfig, Dict[str, Any]], Awaitable[str]]


@retry(
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)
async def _post_json(provider: str, url: str, body: Dict[str, Any], headers: Dict[str, str], timeout: float) -> Any:
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(url, json=body, headers=headers)
    if resp.status_code >= 400:
        raise ConnectorError(provider, resp.text[:200], status_code=resp.status_code)
    return resp.json()


async def call_model(model: ModelConfig, body: Dict[str, Any]) -> str:
    """
    Send one request for `model`. AI_PROXY_URL, when set, receives every
    provider's body; otherwise each provider is called directly.
    """
    settings = get_settings()
    timeout = float(settings.AI_TIMEOUT_SECONDS)

    if settings.AI_PROXY_URL:
        data = await _post_json(model.provider, settings.AI_PROXY_URL, body, {}, timeout)
        return extract_response_text(model.provider, data)

    if model.provider in ("openai", "openrouter"):
        client = get_llm_client(model.provider)
        completion = await client.chat.completions.create(
            model=model.id,
            messages=body["messages"],
            temperature=body["temperature"],
            max_tokens=body["max_tokens"],
        )
        return completion.choices[0].message.content or ""

    if model.provider == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            raise ConnectorError("anthropic", "ANTHROPIC_API_KEY not configured")
        payload = {k: v for k, v in body.items() if k != "provider"}
        data = await _post_json(
            "anthropic",
            ANTHROPIC_URL,
            payload,
            {"x-api-key": settings.ANTHROPIC_API_KEY.strip(), "anthropic-version": ANTHROPIC_VERSION},
            timeout,
        )
        return extract_response_text("anthropic", data)

    if model.provider == "google":
        if not settings.GOOGLE_AI_API_KEY:
            raise ConnectorError("google", "GOOGLE_AI_API_KEY not configured")
        payload = {
            "contents": body["contents"],
            "generationConfig": {"temperature": body["temperature"], "maxOutputTokens": body["max_tokens"]},
        }
        data = await _post_json(
            "google",
            f"{settings.GOOGLE_AI_BASE_URL}/models/{model.id}:generateContent",
            payload,
            {"x-goog-api-key": settings.GOOGLE_AI_API_KEY.strip()},
            timeout,
        )
        return extract_response_text("google", data)

    raise ConnectorError(model.provider, "unknown provider")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AIClient:
    """
    Usage:

        client = AIClient()
        text = await client.complete(prompt, system=SYSTEM_PROMPT)

    `state` may be shared between clients to carry the rotation position
    across calls; `caller` is swappable for tests.
    """

    def __init__(
        self,
        roster: Optional[Sequence[ModelConfig]] = None,
        state: Optional[RotationState] = None,
        caller: Optional[ModelCaller] = None,
    ) -> None:
        self.roster: Tuple[ModelConfig, ...] = tuple(roster) if roster else load_roster()
        self.state = state if state is not None else RotationState()
        self._caller = caller or call_model

    @property
    def current_model(self) -> ModelConfig:
        return self.state.current(self.roster)

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.5,
    ) -> str:
        # A streak left exhausted by an earlier call starts over for this one
        if self.state.exhausted(self.roster):
            self.state.reset()

        last_error: Optional[BaseException] = None
        while True:
            model = self.state.current(self.roster)
            body = build_request_body(model, prompt, system, temperature)
            try:
                text = await self._caller(model, body)
                if not text or not text.strip():
                    raise ConnectorError(model.provider, "empty response")
            except Exception as e:  # any failure on one model moves on to the next
                last_error = e
                logger.warning(
                    "AI call failed on %s: %s",
                    model.label,
                    e,
                    extra={"provider": model.provider, "model": model.id},
                )
                self.state.rotate(self.roster)
                if self.state.exhausted(self.roster):
                    raise AIUnavailableError(
                        f"all {len(self.roster)} models failed; last error: {last_error}"
                    ) from last_error
                continue

            self.state.reset()
            return text

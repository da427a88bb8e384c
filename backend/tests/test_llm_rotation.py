"""
Tests for llm.py - roster loading, request bodies, response parsing and
round-robin failover.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from stablemap.core.errors import AIUnavailableError, ConnectorError
from stablemap.services.llm import (
    DEFAULT_MODEL_ROSTER,
    MAX_OUTPUT_TOKENS,
    AIClient,
    ModelConfig,
    RotationState,
    _post_json,
    build_request_body,
    extract_response_text,
    load_roster,
)


ROSTER = (
    ModelConfig("model-a", "anthropic", "A", 4096),
    ModelConfig("model-b", "openai", "B", 4096),
    ModelConfig("model-c", "google", "C", 16384),
)


class ScriptedCaller:
    """Replies per model id; an Exception value is raised instead of returned."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    async def __call__(self, model, body):
        self.calls.append(model.id)
        reply = self.replies.get(model.id, ConnectorError(model.provider, "down"))
        if isinstance(reply, Exception):
            raise reply
        return reply


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------

class TestLoadRoster:
    def test_default_when_unset(self):
        settings = MagicMock(AI_MODEL_ROSTER_JSON=None)
        assert load_roster(settings) == DEFAULT_MODEL_ROSTER

    def test_json_roster(self):
        settings = MagicMock(AI_MODEL_ROSTER_JSON='[{"id": "gpt-4o-mini", "provider": "openai"}]')
        roster = load_roster(settings)
        assert len(roster) == 1
        assert roster[0].display_name == "gpt-4o-mini"
        assert roster[0].max_tokens == 4096

    @pytest.mark.parametrize("raw", ["not json", '[{"provider": "openai"}]', "[]"])
    def test_invalid_or_empty_falls_back(self, raw):
        settings = MagicMock(AI_MODEL_ROSTER_JSON=raw)
        assert load_roster(settings) == DEFAULT_MODEL_ROSTER

    def test_primary_model_is_first(self):
        assert DEFAULT_MODEL_ROSTER[0].provider == "anthropic"


# ---------------------------------------------------------------------------
# Rotation state
# ---------------------------------------------------------------------------

class TestRotationState:
    def test_rotate_wraps_and_counts(self):
        state = RotationState()
        for _ in range(len(ROSTER)):
            state.rotate(ROSTER)
        assert state.index == 0
        assert state.consecutive_failures == 3
        assert state.exhausted(ROSTER)

    def test_reset_keeps_position(self):
        state = RotationState(index=2, consecutive_failures=2)
        state.reset()
        assert state.current(ROSTER).id == "model-c"
        assert not state.exhausted(ROSTER)


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------

class TestRequestBody:
    def test_anthropic_system_is_top_level(self):
        body = build_request_body(ROSTER[0], "hi", system="sys")
        assert body["provider"] == "anthropic"
        assert body["system"] == "sys"
        assert body["messages"] == [{"role": "user", "content": "hi"}]

    def test_openai_system_is_first_message(self):
        body = build_request_body(ROSTER[1], "hi", system="sys", temperature=0.2)
        assert body["messages"][0] == {"role": "system", "content": "sys"}
        assert body["temperature"] == 0.2

    def test_google_contents_and_token_cap(self):
        body = build_request_body(ROSTER[2], "hi", system="sys")
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["max_tokens"] == MAX_OUTPUT_TOKENS


class TestResponseText:
    def test_normalised_content_blocks(self):
        data = {"content": [{"type": "text", "text": "a"}, {"type": "tool_use"}, {"type": "text", "text": "b"}]}
        assert extract_response_text("openai", data) == "a\nb"

    def test_openai_choices(self):
        data = {"choices": [{"message": {"content": "hello"}}]}
        assert extract_response_text("openrouter", data) == "hello"

    def test_gemini_candidates(self):
        data = {"candidates": [{"content": {"parts": [{"text": "x"}, {"text": "y"}]}}]}
        assert extract_response_text("google", data) == "x\ny"

    @pytest.mark.parametrize("data", [None, "text", {}, {"choices": []}])
    def test_unrecognised_is_empty(self, data):
        assert extract_response_text("openai", data) == ""


# ---------------------------------------------------------------------------
# Failover
# ---------------------------------------------------------------------------

class TestAIClient:
    def test_first_model_answers(self):
        caller = ScriptedCaller({"model-a": "ok"})
        client = AIClient(roster=ROSTER, caller=caller)
        assert asyncio.run(client.complete("q")) == "ok"
        assert caller.calls == ["model-a"]

    def test_failover_and_position_persists(self):
        caller = ScriptedCaller({"model-b": "from b"})
        state = RotationState()
        client = AIClient(roster=ROSTER, state=state, caller=caller)

        assert asyncio.run(client.complete("q")) == "from b"
        assert caller.calls == ["model-a", "model-b"]
        assert state.index == 1
        assert state.consecutive_failures == 0

        # Next call starts at the model that last succeeded
        asyncio.run(client.complete("q2"))
        assert caller.calls[-1] == "model-b"

    def test_empty_reply_counts_as_failure(self):
        caller = ScriptedCaller({"model-a": "   ", "model-b": "real"})
        client = AIClient(roster=ROSTER, caller=caller)
        assert asyncio.run(client.complete("q")) == "real"

    def test_all_models_fail(self):
        caller = ScriptedCaller({})
        client = AIClient(roster=ROSTER, caller=caller)
        with pytest.raises(AIUnavailableError):
            asyncio.run(client.complete("q"))
        assert caller.calls == ["model-a", "model-b", "model-c"]

    def test_exhausted_streak_restarts_on_next_call(self):
        state = RotationState()
        failing = AIClient(roster=ROSTER, state=state, caller=ScriptedCaller({}))
        with pytest.raises(AIUnavailableError):
            asyncio.run(failing.complete("q"))

        caller = ScriptedCaller({"model-a": "back"})
        recovered = AIClient(roster=ROSTER, state=state, caller=caller)
        assert asyncio.run(recovered.complete("q")) == "back"
        assert state.consecutive_failures == 0

    @pytest.mark.parametrize("error", [IndexError("no choices"), TypeError("bad payload"), asyncio.TimeoutError()])
    def test_unexpected_error_rotates(self, error):
        caller = ScriptedCaller({"model-a": error, "model-b": "from b"})
        client = AIClient(roster=ROSTER, caller=caller)
        assert asyncio.run(client.complete("q")) == "from b"
        assert caller.calls == ["model-a", "model-b"]


class TestPostJson:
    def test_transport_errors_are_retried(self):
        post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        with patch.object(httpx.AsyncClient, "post", post):
            with pytest.raises(httpx.ConnectError):
                asyncio.run(_post_json("anthropic", "https://proxy.example/v1", {}, {}, 5.0))
        assert post.await_count == 3

    def test_error_status_is_not_retried(self):
        post = AsyncMock(return_value=MagicMock(status_code=401, text="bad key"))
        with patch.object(httpx.AsyncClient, "post", post):
            with pytest.raises(ConnectorError):
                asyncio.run(_post_json("anthropic", "https://proxy.example/v1", {}, {}, 5.0))
        assert post.await_count == 1

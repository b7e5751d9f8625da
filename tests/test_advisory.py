"""Tests for the Advisory Service and its backends."""

import asyncio
import json
from decimal import Decimal

import pytest

from helpers import FailingAdvisoryBackend, ScriptedAdvisoryBackend, make_commitment, make_lead
from leadstreak.advisory.backends import (
    AnthropicAdvisoryBackend,
    RuleBasedAdvisoryBackend,
    create_backend,
)
from leadstreak.advisory.service import (
    DEFAULT_COACHING,
    DEFAULT_RECOMMENDATION,
    AdvisoryService,
    extract_json,
)
from leadstreak.errors import AdvisoryUnavailableError
from leadstreak.models.advisory import AdviceKind, AdvisoryRequest
from leadstreak.models.lead import ResponseStatus


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_reply(self):
        text = 'Here you go:\n```json\n[{"name": "Ada"}]\n```'
        assert extract_json(text) == [{"name": "Ada"}]

    def test_floats_are_exact(self):
        assert extract_json('{"stake": 0.1}')["stake"] == Decimal("0.1")

    def test_no_json(self):
        with pytest.raises(ValueError):
            extract_json("nothing useful")


class TestRetries:
    def test_transient_failure_is_retried(self):
        backend = ScriptedAdvisoryBackend([ConnectionError("reset"), "Stay consistent."])
        service = AdvisoryService(backend=backend, max_retries=2)
        report = asyncio.run(service.coaching_report("Send DMs: 3 day streak", 1))
        assert report == "Stay consistent."
        assert len(backend.requests) == 2

    def test_budget_exhausted_raises_for_adjust_task(self):
        backend = FailingAdvisoryBackend()
        service = AdvisoryService(backend=backend, max_retries=1)
        with pytest.raises(AdvisoryUnavailableError) as exc:
            asyncio.run(service.adjust_task(make_commitment(), "Forgot"))
        assert exc.value.attempts == 2
        assert backend.calls == 2

    def test_timeout_counts_as_failure(self):
        class SlowBackend:
            async def complete(self, request):
                await asyncio.sleep(1)

        service = AdvisoryService(backend=SlowBackend(), timeout_seconds=0.01, max_retries=0)
        with pytest.raises(AdvisoryUnavailableError):
            asyncio.run(service.adjust_task(make_commitment(), "Other"))

    def test_other_operations_degrade_to_defaults(self):
        service = AdvisoryService(backend=FailingAdvisoryBackend(), max_retries=0)
        assert asyncio.run(service.coaching_report("x: 1 day streak", 0)) == DEFAULT_COACHING
        assert asyncio.run(service.structure_leads("raw")) == []
        assert asyncio.run(service.discover_leads("a", "b", "c")).text == ""


class TestAdjustTask:
    def test_parses_suggested_task(self):
        reply = json.dumps({
            "recommendation": "Smaller steps.",
            "suggestedTask": {"title": "Send 2 DMs", "description": "", "stakeAmount": 0.15},
        })
        service = AdvisoryService(backend=ScriptedAdvisoryBackend([reply]))
        advice = asyncio.run(service.adjust_task(make_commitment(), "Too busy"))
        assert advice.recommendation == "Smaller steps."
        assert advice.suggested_task.stake_amount == Decimal("0.15")

    def test_malformed_reply_falls_back(self):
        reply = json.dumps({"recommendation": "Missing the task"})
        service = AdvisoryService(backend=ScriptedAdvisoryBackend([reply]))
        task = make_commitment(title="Post daily", stake="0.4")
        advice = asyncio.run(service.adjust_task(task, "Other"))
        assert advice.recommendation == DEFAULT_RECOMMENDATION
        assert advice.suggested_task.title == "Post daily (Mini)"
        assert advice.suggested_task.stake_amount == Decimal("0.4")

    def test_request_carries_reason_and_model(self):
        backend = ScriptedAdvisoryBackend(["{}"])
        service = AdvisoryService(backend=backend, model="fast-model", deep_model="deep-model")
        asyncio.run(service.adjust_task(make_commitment(), "Forgot"))
        request = backend.requests[0]
        assert request.kind == AdviceKind.ADJUST_TASK
        assert request.expects_json
        assert request.model == "fast-model"
        assert 'Reason given: "Forgot"' in request.prompt

    def test_coaching_uses_deep_model(self):
        backend = ScriptedAdvisoryBackend(["ok"])
        service = AdvisoryService(backend=backend, model="fast-model", deep_model="deep-model")
        asyncio.run(service.coaching_report("a: 1 day streak", 2))
        assert backend.requests[0].model == "deep-model"
        assert "missed 2 commitments" in backend.requests[0].prompt


class TestScanInbox:
    def test_parses_status(self):
        reply = json.dumps({"status": "declined", "analysis": "Not now."})
        service = AdvisoryService(backend=ScriptedAdvisoryBackend([reply]))
        scan = asyncio.run(service.scan_inbox("Ada", "LinkedIn"))
        assert scan.status == ResponseStatus.DECLINED

    def test_unknown_status_falls_back_to_no_reply(self):
        reply = json.dumps({"status": "maybe", "analysis": "?"})
        service = AdvisoryService(backend=ScriptedAdvisoryBackend([reply]))
        scan = asyncio.run(service.scan_inbox("Ada", "LinkedIn"))
        assert scan.status == ResponseStatus.NO_REPLY


class TestRuleBasedBackend:
    def setup_method(self):
        self.backend = RuleBasedAdvisoryBackend()

    def _request(self, kind, **context):
        return AdvisoryRequest(kind=kind, prompt="", context=context)

    def test_adjust_halves_stake_with_floor(self):
        reply = asyncio.run(self.backend.complete(self._request(
            AdviceKind.ADJUST_TASK, title="Call", reason="Too busy", stake_amount="0.1"
        )))
        payload = json.loads(reply.text)
        assert payload["suggestedTask"]["stakeAmount"] == 0.1
        assert payload["suggestedTask"]["title"] == "Call (Mini)"

    def test_coaching_without_history(self):
        reply = asyncio.run(self.backend.complete(self._request(AdviceKind.COACHING)))
        assert reply.text == DEFAULT_COACHING

    def test_scan_is_deterministic(self):
        first = asyncio.run(self.backend.complete(self._request(AdviceKind.SCAN_INBOX, name="Ada")))
        second = asyncio.run(self.backend.complete(self._request(AdviceKind.SCAN_INBOX, name="Ada")))
        assert first.text == second.text

    def test_full_service_round_trip(self):
        service = AdvisoryService()
        lead = make_lead()
        message = asyncio.run(service.draft_message(lead, "We build funnels."))
        assert "We build funnels." in message


class TestAnthropicBackend:
    def test_missing_key_is_a_backend_failure(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        service = AdvisoryService(backend=AnthropicAdvisoryBackend(), max_retries=0)
        assert asyncio.run(service.coaching_report("a: 1 day streak", 0)) == DEFAULT_COACHING

    def test_complete_joins_text_chunks(self):
        client = _FakeAnthropicClient([
            _Chunk("Keep going."),
            _Chunk(None),
            _Chunk("Halve the target."),
        ])
        backend = AnthropicAdvisoryBackend(api_key="test-key", default_model="claude-small")
        backend._client = client

        reply = asyncio.run(backend.complete(AdvisoryRequest(
            kind=AdviceKind.COACHING, prompt="Coach me"
        )))
        assert reply.text == "Keep going.\nHalve the target."
        assert client.messages.calls[0]["model"] == "claude-small"
        assert client.messages.calls[0]["messages"] == [{"role": "user", "content": "Coach me"}]

    def test_request_model_and_json_hint(self):
        client = _FakeAnthropicClient([_Chunk('{"status": "responded", "analysis": "ok"}')])
        backend = AnthropicAdvisoryBackend(api_key="test-key")
        backend._client = client

        asyncio.run(backend.complete(AdvisoryRequest(
            kind=AdviceKind.SCAN_INBOX, prompt="Scan", expects_json=True, model="claude-deep"
        )))
        call = client.messages.calls[0]
        assert call["model"] == "claude-deep"
        assert call["messages"][0]["content"].endswith("Return only valid JSON.")

    def test_service_parses_backend_reply(self):
        client = _FakeAnthropicClient([_Chunk(json.dumps({
            "recommendation": "Go smaller.",
            "suggestedTask": {"title": "Send 1 DM", "description": "", "stakeAmount": 0.1},
        }))])
        backend = AnthropicAdvisoryBackend(api_key="test-key")
        backend._client = client
        service = AdvisoryService(backend=backend, model="claude-small")

        advice = asyncio.run(service.adjust_task(make_commitment(), "Forgot"))
        assert advice.suggested_task.stake_amount == Decimal("0.1")
        assert client.messages.calls[0]["model"] == "claude-small"


class TestCreateBackend:
    def test_rules_by_default(self):
        assert isinstance(create_backend(), RuleBasedAdvisoryBackend)

    def test_anthropic_uses_model(self):
        backend = create_backend("anthropic", model="claude-small")
        assert isinstance(backend, AnthropicAdvisoryBackend)
        assert backend.default_model == "claude-small"

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            create_backend("oracle")


class _Chunk:
    def __init__(self, text):
        self.text = text


class _FakeMessages:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return type("Response", (), {"content": self.content})()


class _FakeAnthropicClient:
    def __init__(self, content):
        self.messages = _FakeMessages(content)

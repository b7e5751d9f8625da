"""
Advisory backends — what actually answers an AdvisoryRequest.

RuleBasedAdvisoryBackend is deterministic and offline; it is the default and
what the test-suite runs against. AnthropicAdvisoryBackend sends the prompt to
Claude through the anthropic SDK.
"""

from __future__ import annotations

import hashlib
import json
import os
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel

from leadstreak.models.advisory import AdviceKind, AdvisoryRequest


class AdvisoryReply(BaseModel):
    """Raw backend output. `sources` carries grounding references when the backend has them."""

    text: str
    sources: List[dict] = []


class AdvisoryBackend(Protocol):
    """Protocol for advisory generation: pluggable backend."""

    async def complete(self, request: AdvisoryRequest) -> AdvisoryReply: ...


_REASON_GUIDANCE = {
    "Too busy": (
        "Your calendar beat your commitment. Shrink the task until it fits in "
        "the gaps you actually have, and block that time before the day starts."
    ),
    "Forgot": (
        "This was a visibility problem, not a willpower one. Keep the same task "
        "but anchor it to an existing routine and set an earlier reminder."
    ),
    "Technical issues": (
        "Tools failed you this time. Prepare a fallback channel in advance so a "
        "single outage cannot cost you the day."
    ),
    "Lack of motivation": (
        "Motivation follows action. Lower the bar to something you cannot say no "
        "to, and let the streak rebuild the drive."
    ),
    "Underestimated difficulty": (
        "The task was bigger than the stake suggested. Split it and commit only "
        "to the first concrete step."
    ),
}

_DEFAULT_GUIDANCE = (
    "Missing once is data, not failure. Recommit with a smaller, sharper task."
)

_LEAD_FIXTURES = [
    ("Jordan Blake", "Founder", "Northwind Labs", "LinkedIn"),
    ("Priya Raman", "Head of Growth", "Brightlane", "X"),
    ("Marco Silva", "Director of Marketing", "Cobalt Studio", "LinkedIn"),
    ("Hannah Osei", "CEO", "Fieldnote", "Facebook"),
    ("Ethan Cole", "Co-founder", "Parcelwise", "X"),
]

_MIN_RECOVERY_STAKE = Decimal("0.1")


class RuleBasedAdvisoryBackend:
    """
    Rule-based advisory backend.
    Produces the same shapes a language model is asked for, using fixed rules.
    """

    def __init__(self):
        self._rules: Dict[AdviceKind, Callable[[AdvisoryRequest], AdvisoryReply]] = {}
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        self._rules = {
            AdviceKind.ADJUST_TASK: self._rule_adjust_task,
            AdviceKind.COACHING: self._rule_coaching,
            AdviceKind.DISCOVER_LEADS: self._rule_discover_leads,
            AdviceKind.STRUCTURE_LEADS: self._rule_structure_leads,
            AdviceKind.DRAFT_MESSAGE: self._rule_draft_message,
            AdviceKind.SCAN_INBOX: self._rule_scan_inbox,
            AdviceKind.DRAFT_FOLLOW_UP: self._rule_draft_follow_up,
        }

    async def complete(self, request: AdvisoryRequest) -> AdvisoryReply:
        return self._rules[request.kind](request)

    def _rule_adjust_task(self, request: AdvisoryRequest) -> AdvisoryReply:
        ctx = request.context
        reason = ctx.get("reason", "Other")
        stake = Decimal(str(ctx.get("stake_amount", "0")))
        reduced = max(_MIN_RECOVERY_STAKE, (stake / 2).quantize(Decimal("0.01"), ROUND_HALF_UP))

        if reason == "Forgot":
            title = ctx.get("title", "Recovery task")
            description = f"{ctx.get('description', '')} Set a reminder a day ahead.".strip()
        else:
            title = f"{ctx.get('title', 'Recovery task')} (Mini)"
            description = (
                f"A smaller first step towards: {ctx.get('description') or ctx.get('title', '')}"
            )

        payload = {
            "recommendation": _REASON_GUIDANCE.get(reason, _DEFAULT_GUIDANCE),
            "suggestedTask": {
                "title": title,
                "description": description,
                "stakeAmount": float(reduced),
            },
        }
        return AdvisoryReply(text=json.dumps(payload))

    def _rule_coaching(self, request: AdvisoryRequest) -> AdvisoryReply:
        ctx = request.context
        missed = int(ctx.get("missed_count", 0))
        history = ctx.get("history", "")
        if not history:
            return AdvisoryReply(text="Keep pushing forward!")
        if missed == 0:
            verdict = "You have not missed a commitment recently. Raise the stakes gradually."
        elif missed <= 2:
            verdict = (
                f"You missed {missed} commitment(s). Review what those days had in "
                f"common and pre-commit to a smaller daily minimum."
            )
        else:
            verdict = (
                f"You missed {missed} commitments. Your pipeline is too ambitious for "
                f"your current schedule; halve the daily outreach target for a week."
            )
        return AdvisoryReply(text=f"Current streaks: {history}. {verdict}")

    def _rule_discover_leads(self, request: AdvisoryRequest) -> AdvisoryReply:
        ctx = request.context
        niche = ctx.get("niche", "")
        location = ctx.get("location", "")
        goal = ctx.get("goal", "")
        lines = []
        sources = []
        for name, title, company, platform in _LEAD_FIXTURES:
            handle = _handle_for(name, platform)
            lines.append(
                f"{name} | {title} | {company} | {platform} | {handle} | "
                f"{niche} leader in {location}, likely interested in {goal}"
            )
            sources.append({"web": {"uri": handle, "title": f"{name} on {platform}"}})
        return AdvisoryReply(text="\n".join(lines), sources=sources)

    def _rule_structure_leads(self, request: AdvisoryRequest) -> AdvisoryReply:
        records = []
        for line in request.context.get("raw_text", "").splitlines():
            parts = [p.strip() for p in line.split("|")]
            if len(parts) != 6:
                continue
            name, title, company, platform, contact, summary = parts
            records.append({
                "name": name,
                "title": title,
                "company": company,
                "email": None,
                "contactInfo": contact,
                "platform": platform,
                "summary": summary,
            })
        return AdvisoryReply(text=json.dumps(records))

    def _rule_draft_message(self, request: AdvisoryRequest) -> AdvisoryReply:
        ctx = request.context
        first_name = ctx.get("name", "there").split(" ")[0]
        opener = f"Hi {first_name}" if ctx.get("platform") != "X" else f"Hey {first_name}"
        return AdvisoryReply(text=(
            f"{opener}, I came across your work at {ctx.get('company', 'your company')}. "
            f"{ctx.get('value_prop', '')} Open to a quick chat this week?"
        ))

    def _rule_scan_inbox(self, request: AdvisoryRequest) -> AdvisoryReply:
        name = request.context.get("name", "")
        digest = int(hashlib.sha256(name.encode()).hexdigest(), 16)
        status = ["responded", "no-reply", "declined"][digest % 3]
        analysis = {
            "responded": f"{name} replied and asked for more details.",
            "no-reply": f"No incoming messages detected from {name}.",
            "declined": f"{name} replied that the timing is not right.",
        }[status]
        return AdvisoryReply(text=json.dumps({"status": status, "analysis": analysis}))

    def _rule_draft_follow_up(self, request: AdvisoryRequest) -> AdvisoryReply:
        ctx = request.context
        message = (
            ctx.get("template", "")
            .replace("[Name]", ctx.get("name", "").split(" ")[0])
            .replace("[Company]", ctx.get("company", ""))
            .replace("[Discussion Points]", ctx.get("analysis", "our last message"))
            .replace("[User]", "")
            .strip()
        )
        return AdvisoryReply(text=message)


def _handle_for(name: str, platform: str) -> str:
    slug = name.lower().replace(" ", "")
    if platform == "X":
        return f"@{slug}"
    if platform == "Facebook":
        return f"https://facebook.com/{slug}"
    return f"https://linkedin.com/in/{slug}"


class AnthropicAdvisoryBackend:
    """Sends advisory prompts to Claude. Requires ANTHROPIC_API_KEY."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "claude-3-5-haiku-latest",
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ):
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY", "")
        self.default_model = default_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("ANTHROPIC_API_KEY is not configured")
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(self, request: AdvisoryRequest) -> AdvisoryReply:
        client = self._get_client()
        prompt = request.prompt
        if request.expects_json:
            prompt += "\n\nReturn only valid JSON."
        response = await client.messages.create(
            model=request.model or self.default_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = []
        for chunk in getattr(response, "content", None) or []:
            if getattr(chunk, "text", None):
                parts.append(chunk.text)
        return AdvisoryReply(text="\n".join(parts).strip())


def create_backend(name: str = "rules", model: Optional[str] = None) -> AdvisoryBackend:
    """Build the advisory backend selected by name ("rules" or "anthropic")."""
    if name == "anthropic":
        return AnthropicAdvisoryBackend(default_model=model or "claude-3-5-haiku-latest")
    if name == "rules":
        return RuleBasedAdvisoryBackend()
    raise ValueError(f"Unknown advisory backend: {name}")

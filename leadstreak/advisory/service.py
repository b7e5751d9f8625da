"""
Advisory Service — the engine's client for the external advisory collaborator.

Every operation is one structured-advice request: render a prompt, send it to
the backend with a timeout and a retry budget, then parse the reply into a
typed result.

Behavioral Contract:
- Backend failures and timeouts are retried; once the budget is spent the
  request raises AdvisoryUnavailableError
- Malformed replies never propagate; they resolve to the operation's default
- Every operation except adjust_task also degrades to its default when the
  backend is unavailable. adjust_task lets the error through so the recovery
  workflow can ask for the reason again.
"""

import asyncio
import json
import logging
import re
from decimal import Decimal
from typing import Callable, List, Optional, TypeVar

from pydantic import ValidationError

from leadstreak.advisory import prompts
from leadstreak.advisory.backends import (
    AdvisoryBackend,
    AdvisoryReply,
    RuleBasedAdvisoryBackend,
)
from leadstreak.errors import AdvisoryUnavailableError
from leadstreak.models.advisory import (
    AdviceKind,
    AdvisoryRequest,
    InboxScan,
    LeadDiscovery,
    StructuredLead,
    TaskAdjustment,
)
from leadstreak.models.lead import Lead, ResponseStatus
from leadstreak.models.task import Commitment, SuggestedTask

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_COACHING = "Keep pushing forward!"
DEFAULT_RECOMMENDATION = "Try to break your tasks into smaller chunks."
DEFAULT_INBOX_ANALYSIS = "No incoming messages detected from this contact."


def extract_json(text: str):
    """Pull the first JSON object or array out of a model reply."""
    text = (text or "").strip()
    if not text:
        raise ValueError("empty reply")
    if text[0] in "[{":
        return json.loads(text, parse_float=Decimal)
    match = re.search(r"(\{.*\}|\[.*\])", text, re.DOTALL)
    if match:
        return json.loads(match.group(1), parse_float=Decimal)
    raise ValueError("no JSON found in reply")


class AdvisoryService:

    def __init__(
        self,
        backend: Optional[AdvisoryBackend] = None,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        model: Optional[str] = None,
        deep_model: Optional[str] = None,
    ):
        self.backend = backend or RuleBasedAdvisoryBackend()
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.model = model
        self.deep_model = deep_model or model

    # --- Request plumbing ---

    async def _call(self, request: AdvisoryRequest) -> AdvisoryReply:
        """Send a request, retrying transport failures up to the budget."""
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(
                    self.backend.complete(request), timeout=self.timeout_seconds
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "Advisory '%s' attempt %d/%d failed: %s",
                    request.kind.value, attempt, attempts, e,
                )
        raise AdvisoryUnavailableError(request.kind.value, attempts, last_error)

    async def _request(
        self,
        request: AdvisoryRequest,
        parse: Callable[[AdvisoryReply], T],
        fallback: Callable[[], T],
    ) -> T:
        """One structured-advice round trip. Malformed replies resolve to `fallback`."""
        reply = await self._call(request)
        try:
            return parse(reply)
        except (ValueError, TypeError, KeyError, ValidationError) as e:
            logger.warning(
                "Advisory '%s' returned a malformed reply, using default: %s",
                request.kind.value, e,
            )
            return fallback()

    async def _request_or_default(
        self,
        request: AdvisoryRequest,
        parse: Callable[[AdvisoryReply], T],
        fallback: Callable[[], T],
    ) -> T:
        try:
            return await self._request(request, parse, fallback)
        except AdvisoryUnavailableError as e:
            logger.warning("%s; using default", e)
            return fallback()

    # --- Operations ---

    async def adjust_task(self, task: Commitment, reason: str) -> TaskAdjustment:
        """
        Recommendation plus a replacement commitment for a missed task.

        Raises AdvisoryUnavailableError if the backend cannot be reached.
        """
        request = AdvisoryRequest(
            kind=AdviceKind.ADJUST_TASK,
            prompt=prompts.ADJUST_TASK_PROMPT.format(
                title=task.title,
                description=task.description,
                reason=reason,
                stake_amount=task.stake_amount,
            ),
            expects_json=True,
            model=self.model,
            context={
                "title": task.title,
                "description": task.description,
                "reason": reason,
                "stake_amount": str(task.stake_amount),
            },
        )

        def fallback() -> TaskAdjustment:
            return TaskAdjustment(
                recommendation=DEFAULT_RECOMMENDATION,
                suggested_task=SuggestedTask(
                    title=f"{task.title} (Mini)",
                    description=task.description,
                    stake_amount=task.stake_amount,
                ),
            )

        return await self._request(
            request,
            lambda reply: TaskAdjustment.model_validate(extract_json(reply.text)),
            fallback,
        )

    async def coaching_report(self, history_summary: str, missed_count: int) -> str:
        request = AdvisoryRequest(
            kind=AdviceKind.COACHING,
            prompt=prompts.COACHING_PROMPT.format(
                missed_count=missed_count, history=history_summary
            ),
            model=self.deep_model,
            context={"history": history_summary, "missed_count": missed_count},
        )
        return await self._request_or_default(
            request,
            lambda reply: reply.text.strip() or DEFAULT_COACHING,
            lambda: DEFAULT_COACHING,
        )

    async def discover_leads(self, niche: str, location: str, goal: str) -> LeadDiscovery:
        request = AdvisoryRequest(
            kind=AdviceKind.DISCOVER_LEADS,
            prompt=prompts.DISCOVER_LEADS_PROMPT.format(
                niche=niche, location=location, goal=goal
            ),
            model=self.model,
            context={"niche": niche, "location": location, "goal": goal},
        )
        return await self._request_or_default(
            request,
            lambda reply: LeadDiscovery(text=reply.text, sources=reply.sources),
            LeadDiscovery,
        )

    async def structure_leads(self, raw_text: str) -> List[StructuredLead]:
        request = AdvisoryRequest(
            kind=AdviceKind.STRUCTURE_LEADS,
            prompt=prompts.STRUCTURE_LEADS_PROMPT.format(raw_text=raw_text),
            expects_json=True,
            model=self.model,
            context={"raw_text": raw_text},
        )
        return await self._request_or_default(
            request, lambda reply: _parse_leads(reply.text), list
        )

    async def draft_message(self, lead: Lead, value_prop: str) -> str:
        request = AdvisoryRequest(
            kind=AdviceKind.DRAFT_MESSAGE,
            prompt=prompts.DRAFT_MESSAGE_PROMPT.format(
                platform=lead.platform.value,
                name=lead.name,
                company=lead.company,
                summary=lead.summary,
                value_prop=value_prop,
            ),
            model=self.model,
            context={
                "name": lead.name,
                "company": lead.company,
                "summary": lead.summary,
                "value_prop": value_prop,
                "platform": lead.platform.value,
            },
        )
        return await self._request_or_default(
            request, lambda reply: reply.text.strip(), str
        )

    async def scan_inbox(self, lead_name: str, platform: str) -> InboxScan:
        request = AdvisoryRequest(
            kind=AdviceKind.SCAN_INBOX,
            prompt=prompts.SCAN_INBOX_PROMPT.format(name=lead_name, platform=platform),
            expects_json=True,
            model=self.model,
            context={"name": lead_name, "platform": platform},
        )

        def fallback() -> InboxScan:
            return InboxScan(status=ResponseStatus.NO_REPLY, analysis=DEFAULT_INBOX_ANALYSIS)

        return await self._request_or_default(
            request,
            lambda reply: InboxScan.model_validate(extract_json(reply.text)),
            fallback,
        )

    async def draft_follow_up(
        self,
        lead: Lead,
        status: str,
        analysis: str,
        template: str,
    ) -> str:
        request = AdvisoryRequest(
            kind=AdviceKind.DRAFT_FOLLOW_UP,
            prompt=prompts.DRAFT_FOLLOW_UP_PROMPT.format(
                name=lead.name,
                company=lead.company,
                status=status,
                analysis=analysis,
                platform=lead.platform.value,
                template=template,
            ),
            model=self.model,
            context={
                "name": lead.name,
                "company": lead.company,
                "status": status,
                "analysis": analysis,
                "platform": lead.platform.value,
                "template": template,
            },
        )
        return await self._request_or_default(
            request, lambda reply: reply.text.strip(), str
        )


def _parse_leads(text: str) -> List[StructuredLead]:
    data = extract_json(text)
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of leads")
    leads = []
    for item in data:
        try:
            leads.append(StructuredLead.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping malformed lead record: %s", e)
    return leads

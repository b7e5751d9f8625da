"""
Lead Pipeline — discovery, personalization and the follow-up (nurture) cycle.

Discovery runs two advisory requests back to back: free-text prospecting, then
structuring that text into lead records. Follow-up scans the inbox for a lead
whose outreach commitment was completed and drafts the next message.
"""

import logging
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel

from leadstreak.advisory.service import AdvisoryService
from leadstreak.errors import InvalidInputError, LeadStateError
from leadstreak.leads.store import LeadStore
from leadstreak.models.advisory import InboxScan
from leadstreak.models.lead import Lead, LeadStatus
from leadstreak.models.task import TaskStatus
from leadstreak.tasks.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_VALUE_PROP = "Helping business owners automate growth with AI-driven systems."
DEFAULT_FOLLOW_UP_TEMPLATE = (
    "Hi [Name], just checking in regarding [Discussion Points]. Any thoughts on how "
    "[Company] could benefit from our adspace? Best, [User]"
)


class DiscoveryResult(BaseModel):
    leads: List[Lead]
    sources: List[dict] = []


class FollowUpResult(BaseModel):
    lead: Lead
    scan: InboxScan
    message: str


class LeadPipeline:

    def __init__(self, leads: LeadStore, advisory: AdvisoryService):
        self.leads = leads
        self.advisory = advisory

    async def discover(self, niche: str, location: str, goal: str) -> DiscoveryResult:
        if not (niche.strip() and location.strip() and goal.strip()):
            raise InvalidInputError("Please enter Niche, Location, and Outreach Goal.")

        discovery = await self.advisory.discover_leads(niche, location, goal)
        structured = await self.advisory.structure_leads(discovery.text) if discovery.text else []

        new_leads = [
            Lead(
                id=f"lead_{uuid4().hex[:12]}",
                name=s.name,
                title=s.title,
                company=s.company,
                email=s.email,
                summary=s.summary,
                personalized_message="",
                platform=s.platform,
                contact_info=s.contact_info,
                status=LeadStatus.PENDING,
                follow_up_count=0,
            )
            for s in structured
        ]
        self.leads.add_many(new_leads)
        logger.info("Discovered %d lead(s) for %s in %s", len(new_leads), niche, location)
        return DiscoveryResult(leads=new_leads, sources=discovery.sources)

    async def personalize(self, lead_id: str, value_prop: Optional[str] = None) -> str:
        """Draft an outreach message. The draft is not stored until the lead is approved."""
        lead = self.leads.require(lead_id)
        return await self.advisory.draft_message(lead, value_prop or DEFAULT_VALUE_PROP)

    def mark_sent(self, lead_id: str) -> Lead:
        lead = self.leads.require(lead_id)
        if lead.status != LeadStatus.APPROVED:
            raise LeadStateError(f"Lead {lead_id} must be approved before it is sent")
        return self.leads.set_status(lead_id, LeadStatus.SENT)

    def reject(self, lead_id: str) -> Lead:
        lead = self.leads.require(lead_id)
        if lead.status != LeadStatus.PENDING:
            raise LeadStateError(f"Only pending leads can be rejected; {lead_id} is {lead.status.value}")
        return self.leads.set_status(lead_id, LeadStatus.REJECTED)

    def follow_up_candidates(self, tasks: TaskStore) -> List[Lead]:
        """Leads whose outreach commitment has been completed."""
        completed_ids = {
            t.lead_id for t in tasks.list_by_status(TaskStatus.COMPLETED) if t.lead_id
        }
        return [lead for lead in self.leads.list_all() if lead.id in completed_ids]

    async def run_follow_up(
        self, lead_id: str, template: Optional[str] = None
    ) -> FollowUpResult:
        lead = self.leads.require(lead_id)
        scan = await self.advisory.scan_inbox(lead.name, lead.platform.value)
        message = await self.advisory.draft_follow_up(
            lead,
            scan.status.value,
            scan.analysis,
            template or DEFAULT_FOLLOW_UP_TEMPLATE,
        )
        lead = self.leads.record_follow_up(lead.id, scan.status)
        return FollowUpResult(lead=lead, scan=scan, message=message)

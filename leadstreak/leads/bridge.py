"""
Lead-to-Task Bridge — turns an approved outreach lead into a staked commitment.

Behavioral Contract:
- Fixed stake per conversion
- Runs the Stake Validator; on failure neither the lead nor the ledger changes
- On success: debit, new active commitment (24h deadline, 1h reminder) linked
  to the lead, lead flipped to approved
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from leadstreak.errors import LeadStateError
from leadstreak.leads.store import LeadStore
from leadstreak.models.lead import LeadStatus
from leadstreak.models.task import Commitment, ReminderPolicy, SourcePlatform, TaskCategory
from leadstreak.tasks.service import CommitmentService

logger = logging.getLogger(__name__)

# A lead can be converted while it has no live outreach commitment
_CONVERTIBLE = {LeadStatus.PENDING, LeadStatus.REJECTED}


class LeadToTaskBridge:

    def __init__(
        self,
        leads: LeadStore,
        commitments: CommitmentService,
        stake_amount: Decimal = Decimal("0.2"),
        deadline: timedelta = timedelta(hours=24),
    ):
        self.leads = leads
        self.commitments = commitments
        self.stake_amount = stake_amount
        self.deadline = deadline

    async def convert(
        self,
        lead_id: str,
        personalized_message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Commitment]:
        """
        Approve a lead and stake an outreach commitment for it.

        `personalized_message` is the approved draft; it replaces the lead's
        stored message only once the stake has gone through.
        """
        lead = self.leads.require(lead_id)
        if lead.status not in _CONVERTIBLE:
            raise LeadStateError(
                f"Lead {lead_id} is {lead.status.value} and cannot be converted again"
            )

        message = (
            personalized_message
            if personalized_message is not None
            else lead.personalized_message
        )
        task = self.commitments.build_commitment(
            title=f"Outreach: {lead.name}",
            description=f"Send approved message to {lead.name} at {lead.company}",
            stake_amount=self.stake_amount,
            category=TaskCategory.LEADS,
            deadline_in=self.deadline,
            reminder_policy=ReminderPolicy.HOUR_1,
            now=now,
            contact_details=lead.contact_info,
            outreach_message=message,
            source_platform=SourcePlatform(lead.platform.value),
            lead_id=lead.id,
        )

        created = await self.commitments.stake_and_create(
            task,
            guard=lambda: self.leads.get(lead.id) is lead and lead.status in _CONVERTIBLE,
        )
        if created is None:
            return None

        self.leads.set_message(lead.id, message)
        self.leads.set_status(lead.id, LeadStatus.APPROVED)
        logger.info("Lead %s converted into commitment %s", lead.id, created.id)
        return created

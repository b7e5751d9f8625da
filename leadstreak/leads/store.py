"""Lead Store: in-memory set of prospects surfaced by the advisory service."""

from threading import Lock
from typing import Dict, Iterable, List, Optional

from leadstreak.errors import LeadNotFoundError
from leadstreak.models.lead import Lead, LeadStatus, ResponseStatus


class LeadStore:

    def __init__(self):
        self._leads: Dict[str, Lead] = {}
        self._lock = Lock()

    def add(self, lead: Lead) -> Lead:
        with self._lock:
            self._leads[lead.id] = lead
        return lead

    def add_many(self, leads: Iterable[Lead]) -> List[Lead]:
        return [self.add(lead) for lead in leads]

    def get(self, lead_id: str) -> Optional[Lead]:
        return self._leads.get(lead_id)

    def require(self, lead_id: str) -> Lead:
        lead = self._leads.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    def remove(self, lead_id: str) -> bool:
        """Delete a lead. Commitments linked to it are not touched."""
        with self._lock:
            return self._leads.pop(lead_id, None) is not None

    def list_all(self) -> List[Lead]:
        return list(self._leads.values())

    def list_by_status(self, status: LeadStatus) -> List[Lead]:
        return [lead for lead in self._leads.values() if lead.status == status]

    def set_status(self, lead_id: str, status: LeadStatus) -> Lead:
        with self._lock:
            lead = self.require(lead_id)
            lead.status = status
            return lead

    def set_message(self, lead_id: str, message: str) -> Lead:
        with self._lock:
            lead = self.require(lead_id)
            lead.personalized_message = message
            return lead

    def record_follow_up(self, lead_id: str, response: ResponseStatus) -> Lead:
        """Nurture-cycle bookkeeping after an inbox scan."""
        with self._lock:
            lead = self.require(lead_id)
            lead.follow_up_count += 1
            lead.last_response_status = response
            return lead

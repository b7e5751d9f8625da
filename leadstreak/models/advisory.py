"""Advisory payloads: request envelope and the structured responses it yields."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from leadstreak.models.lead import LeadPlatform, ResponseStatus
from leadstreak.models.task import SuggestedTask


class AdviceKind(str, Enum):
    ADJUST_TASK = "adjust_task"
    COACHING = "coaching"
    DISCOVER_LEADS = "discover_leads"
    STRUCTURE_LEADS = "structure_leads"
    DRAFT_MESSAGE = "draft_message"
    SCAN_INBOX = "scan_inbox"
    DRAFT_FOLLOW_UP = "draft_follow_up"


class AdvisoryRequest(BaseModel):
    """What a backend receives. `context` carries the raw inputs for rule-based backends."""

    kind: AdviceKind
    prompt: str
    expects_json: bool = False
    model: Optional[str] = None
    context: dict = {}


class TaskAdjustment(BaseModel):
    recommendation: str
    suggested_task: SuggestedTask = Field(alias="suggestedTask")

    model_config = {"populate_by_name": True}


class LeadDiscovery(BaseModel):
    text: str = ""
    sources: List[dict] = []


class StructuredLead(BaseModel):
    name: str
    title: str = ""
    company: str = ""
    email: Optional[str] = None
    contact_info: str = Field(default="", alias="contactInfo")
    platform: LeadPlatform
    summary: str = ""

    model_config = {"populate_by_name": True}


class InboxScan(BaseModel):
    status: ResponseStatus
    analysis: str = ""

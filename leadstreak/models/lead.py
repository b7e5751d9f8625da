"""Lead: a prospective contact, convertible into a commitment."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LeadPlatform(str, Enum):
    LINKEDIN = "LinkedIn"
    X = "X"
    FACEBOOK = "Facebook"


class LeadStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    SENT = "sent"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ResponseStatus(str, Enum):
    RESPONDED = "responded"
    NO_REPLY = "no-reply"
    DECLINED = "declined"
    PENDING = "pending"


class Lead(BaseModel):
    id: str
    name: str
    title: str = ""
    company: str = ""
    email: Optional[str] = None
    summary: str = ""
    personalized_message: str = ""
    platform: LeadPlatform = LeadPlatform.LINKEDIN
    contact_info: str = ""
    status: LeadStatus = LeadStatus.PENDING
    follow_up_count: int = Field(ge=0, default=0)
    last_response_status: Optional[ResponseStatus] = None

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LeadStatus(str, Enum):
    """Pipeline status of a lead, ordered by buying intent."""
    NEW = "new"
    RESEARCHING = "researching"
    QUALIFIED = "qualified"
    CONTACTED = "contacted"
    ENGAGED = "engaged"
    NURTURING = "nurturing"
    WON = "won"
    LOST = "lost"


class LeadSource(str, Enum):
    MANUAL = "manual"
    AGENT_DISCOVERY = "agent_discovery"
    INBOUND = "inbound"
    REFERRAL = "referral"
    IMPORT = "import"


class ActivityType(str, Enum):
    EMAIL_SENT = "email_sent"
    EMAIL_RECEIVED = "email_received"
    CALL = "call"
    MEETING = "meeting"
    NOTE = "note"
    STATUS_CHANGE = "status_change"
    AGENT_ACTION = "agent_action"


class Lead(BaseModel):
    """Row of the `leads` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: LeadStatus = LeadStatus.NEW
    score: int = Field(0, ge=0, le=100)

    # Contact info
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    title: Optional[str] = None

    # Company
    company_id: Optional[str] = None
    company_name: Optional[str] = None

    source: LeadSource = LeadSource.MANUAL
    source_details: Optional[str] = None

    # Enrichment
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    location: Optional[str] = None
    timezone: Optional[str] = None

    # Intelligence
    research_summary: Optional[str] = None
    pain_points: List[str] = Field(default_factory=list)
    buying_signals: List[str] = Field(default_factory=list)
    personal_notes: Optional[str] = None

    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @field_validator("pain_points", "buying_signals", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("score", mode="before")
    @classmethod
    def _null_score(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def is_blank(self, field: str) -> bool:
        """True when the field is unset or only whitespace."""
        value = getattr(self, field)
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        return False


class ActivityCreate(BaseModel):
    """Insert payload for the `activities` table."""
    lead_id: str
    type: ActivityType = ActivityType.AGENT_ACTION
    subject: Optional[str] = None
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    agent_id: Optional[str] = None
    user_id: Optional[str] = None


class Activity(ActivityCreate):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: Optional[str] = None
    created_at: Optional[datetime] = None

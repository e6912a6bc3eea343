import operator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from pydantic import BaseModel, ConfigDict

from graph.models import Lead


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowState(str, Enum):
    """Stages of the lead processing workflow plus the two terminal states."""
    DISCOVERY = "discovery"
    PROFILE_SCRAPER = "profile_scraper"
    CONTACT_FINDER = "contact_finder"
    ENRICHMENT = "enrichment"
    SCORING = "scoring"
    STATUS_UPDATE = "status_update"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.COMPLETED, WorkflowState.FAILED)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowStep(BaseModel):
    """Audit record of one stage execution.

    Steps are frozen: finishing a running step produces a new finalized
    step instead of mutating the running one.
    """

    model_config = ConfigDict(frozen=True)

    state: WorkflowState
    status: StepStatus = StepStatus.PENDING
    started_at: datetime
    completed_at: Optional[datetime] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def begin(cls, state: WorkflowState) -> "WorkflowStep":
        return cls(state=state, status=StepStatus.RUNNING, started_at=utcnow())

    def finish(self, output: Optional[Dict[str, Any]] = None) -> "WorkflowStep":
        return self.model_copy(update={
            "status": StepStatus.COMPLETED,
            "completed_at": utcnow(),
            "output": output or {},
        })

    def fail(self, error: str, output: Optional[Dict[str, Any]] = None) -> "WorkflowStep":
        return self.model_copy(update={
            "status": StepStatus.FAILED,
            "completed_at": utcnow(),
            "output": output,
            "error": error,
        })

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


class WorkflowContext(TypedDict, total=False):
    """State shape for the lead processing workflow."""
    lead_id: str
    current_state: WorkflowState
    lead: Lead                            # snapshot as the stages observe/modify it
    enrichment_data: Dict[str, Any]       # researchSummary, painPoints, buyingSignals...
    score: int
    score_reasoning: str
    new_status: str
    error: str                            # terminal error, only set on FAILED
    started_at: datetime
    completed_at: datetime
    steps: Annotated[List[WorkflowStep], operator.add]


@dataclass
class StageResult:
    """What a stage body hands back to the orchestrator.

    `updates` are merged into the context. A non-empty `error` marks the
    step as failed while still keeping the updates (partial results).
    """
    output: Dict[str, Any] = field(default_factory=dict)
    updates: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class WorkflowDeps:
    """Capabilities injected into every stage."""
    store: Any          # tools.supabase_store.LeadStore
    research: Any       # tools.research.ResearchClient
    llm: Any            # tools.llm.LLMClient


def initialize_workflow(lead_id: str) -> WorkflowContext:
    return {
        "lead_id": lead_id,
        "current_state": WorkflowState.DISCOVERY,
        "started_at": utcnow(),
        "steps": [],
    }

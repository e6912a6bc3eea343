from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from graph.models import ActivityCreate, ActivityType, LeadStatus
from graph.state import StageResult, WorkflowContext, WorkflowDeps

# (minimum score, status), checked top-down
STATUS_THRESHOLDS = [
    (80, LeadStatus.QUALIFIED),
    (60, LeadStatus.RESEARCHING),
    (40, LeadStatus.NURTURING),
]


def status_for_score(score: Optional[float]) -> LeadStatus:
    """Map a lead score to the status the workflow assigns."""
    score = score or 0
    for minimum, status in STATUS_THRESHOLDS:
        if score >= minimum:
            return status
    return LeadStatus.NEW


async def status_update(context: WorkflowContext, deps: WorkflowDeps) -> StageResult:
    """Update lead status based on score and log workflow completion."""
    lead_id = context["lead_id"]
    score = context.get("score") or 0
    new_status = status_for_score(score)
    now = datetime.now(timezone.utc)

    lead = await deps.store.update_lead(lead_id, {"status": new_status, "updated_at": now})
    logger.info(f"Lead {lead_id} status -> {new_status.value} (score {score})")

    await deps.store.insert_activity(ActivityCreate(
        lead_id=lead_id,
        type=ActivityType.AGENT_ACTION,
        subject="Lead Processing Workflow Completed",
        content=f"Automated workflow processed lead. Score: {score}, Status: {new_status.value}",
        metadata={
            "workflow": "lead-processing",
            "score": score,
            "newStatus": new_status.value,
            "timestamp": now.isoformat(),
        },
    ))

    return StageResult(
        output={"newStatus": new_status.value, "score": score},
        updates={"lead": lead, "new_status": new_status.value},
    )

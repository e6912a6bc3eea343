from datetime import datetime, timezone

from loguru import logger

from agents.contact_finder import find_contact_info
from graph.models import ActivityCreate, ActivityType
from graph.state import StageResult, WorkflowContext, WorkflowDeps


async def contact_finder(context: WorkflowContext, deps: WorkflowDeps) -> StageResult:
    """Search for a missing email / LinkedIn URL and fill only empty fields."""
    lead = context["lead"]
    if not lead.is_blank("email") and not lead.is_blank("linkedin_url"):
        logger.info(f"Lead {lead.id} already has email and LinkedIn, skipping contact finding")
        return StageResult(output={"skipped": True, "reason": "Contact information complete"})

    info = await find_contact_info(lead, deps.research, deps.llm)

    updates = {}
    if info.email and lead.is_blank("email"):
        updates["email"] = info.email.lower()
    if info.linkedin_url and lead.is_blank("linkedin_url"):
        updates["linkedin_url"] = info.linkedin_url

    if updates:
        updates["updated_at"] = datetime.now(timezone.utc)
        lead = await deps.store.update_lead(lead.id, updates)

    fields_updated = sorted(k for k in updates if k != "updated_at")
    await deps.store.insert_activity(ActivityCreate(
        lead_id=lead.id,
        type=ActivityType.AGENT_ACTION,
        subject="Contact Search Completed",
        content=(
            f"Contact finder searched for missing contact details. "
            f"Found: {', '.join(fields_updated) or 'nothing new'}. Confidence: {info.confidence}"
        ),
        metadata={
            "agent": "contact-finder",
            "confidence": info.confidence,
            "fieldsUpdated": fields_updated,
            "searchSummary": info.search_summary,
            "alternativeEmails": info.alternative_emails,
            "notes": info.notes,
            "queries": info.queries,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    ))

    return StageResult(
        output={
            "emailFound": "email" in updates,
            "linkedinFound": "linkedin_url" in updates,
            "confidence": info.confidence,
            "searchSummary": info.search_summary,
            "fieldsUpdated": fields_updated,
        },
        updates={"lead": lead},
    )

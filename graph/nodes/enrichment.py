from datetime import datetime, timezone

from agents.enrichment import enrich_lead, enrichment_updates
from graph.models import ActivityCreate, ActivityType
from graph.state import StageResult, WorkflowContext, WorkflowDeps


async def enrichment(context: WorkflowContext, deps: WorkflowDeps) -> StageResult:
    """Enrich lead data with web research and AI insights."""
    lead = context["lead"]

    data = await enrich_lead(lead, deps.research, deps.llm)

    updates = enrichment_updates(lead, data)
    updates["updated_at"] = datetime.now(timezone.utc)
    lead = await deps.store.update_lead(lead.id, updates)

    await deps.store.insert_activity(ActivityCreate(
        lead_id=lead.id,
        type=ActivityType.AGENT_ACTION,
        subject="Lead Enrichment Completed",
        content="AI agent enriched lead profile with research summary and insights.",
        metadata={
            "agent": "lead-enrichment",
            "painPointsCount": len(data["painPoints"]),
            "buyingSignalsCount": len(data["buyingSignals"]),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    ))

    return StageResult(
        output={
            "enriched": True,
            "painPointsCount": len(data["painPoints"]),
            "buyingSignalsCount": len(data["buyingSignals"]),
        },
        updates={"lead": lead, "enrichment_data": data},
    )

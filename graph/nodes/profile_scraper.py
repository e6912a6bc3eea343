from datetime import datetime, timezone
from typing import Any, Dict

from loguru import logger

from agents.contact_finder import is_valid_email
from agents.profile_scraper import scrape_profile
from graph.models import ActivityCreate, ActivityType, Lead
from graph.nodes.discovery import has_profiles_to_scrape
from graph.state import StageResult, WorkflowContext, WorkflowDeps

NOTES_SEPARATOR = "\n\n"

# scraped field -> lead column, filled only when the lead has no value
FILLABLE_FIELDS = {
    "title": "title",
    "companyName": "company_name",
    "location": "location",
    "email": "email",
}


def profile_updates(lead: Lead, data: Dict[str, Any]) -> Dict[str, Any]:
    """Lead fields to persist from merged profile data, never overwriting user data."""
    updates: Dict[str, Any] = {}
    for source_field, column in FILLABLE_FIELDS.items():
        value = data.get(source_field)
        if not isinstance(value, str) or not value.strip() or not lead.is_blank(column):
            continue
        # "Not listed" etc. would stop contact finding from running
        if column == "email" and not is_valid_email(value):
            logger.warning(f"Discarding malformed email from profile: {value!r}")
            continue
        updates[column] = value.strip()

    bio = data.get("bio")
    if isinstance(bio, str) and bio.strip():
        bio = bio.strip()
        notes = lead.personal_notes or ""
        if bio not in notes:
            updates["personal_notes"] = f"{notes}{NOTES_SEPARATOR}{bio}" if notes.strip() else bio
    return updates


async def profile_scraper(context: WorkflowContext, deps: WorkflowDeps) -> StageResult:
    """Scrape LinkedIn / X profiles and fill empty lead fields from them."""
    lead = context["lead"]
    if not has_profiles_to_scrape(lead):
        logger.info(f"No profile URLs for lead {lead.id}, skipping profile scraping")
        return StageResult(output={"skipped": True, "reason": "No profile URLs"})

    scrape = await scrape_profile(lead, deps.research, deps.llm)
    updates = profile_updates(lead, scrape.data)

    if updates:
        updates["updated_at"] = datetime.now(timezone.utc)
        lead = await deps.store.update_lead(lead.id, updates)

    fields_updated = sorted(k for k in updates if k != "updated_at")
    await deps.store.insert_activity(ActivityCreate(
        lead_id=lead.id,
        type=ActivityType.AGENT_ACTION,
        subject="Profile Scraped",
        content=(
            f"Profile scraper processed {scrape.profile_type} profile. "
            f"Updated: {', '.join(fields_updated) or 'nothing'}. Confidence: {scrape.confidence}"
        ),
        metadata={
            "agent": "profile-scraper",
            "profileType": scrape.profile_type,
            "confidence": scrape.confidence,
            "fieldsUpdated": fields_updated,
            "skills": scrape.data.get("skills", []),
            "experience": scrape.data.get("experience", []),
            "education": scrape.data.get("education", []),
            "website": scrape.data.get("website"),
            "sources": scrape.sources,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    ))

    output = {
        "profileType": scrape.profile_type,
        "confidence": scrape.confidence,
        "fieldsUpdated": fields_updated,
        "extractionSummary": scrape.extraction_summary,
        "sources": scrape.sources,
    }
    return StageResult(
        output=output,
        updates={"lead": lead},
        error="; ".join(scrape.errors) or None,
    )

from loguru import logger

from graph.errors import LeadNotFoundError, LeadValidationError
from graph.models import Lead
from graph.state import StageResult, WorkflowContext, WorkflowDeps

REQUIRED_FIELDS = ["first_name", "last_name"]


def has_profiles_to_scrape(lead: Lead) -> bool:
    return not lead.is_blank("linkedin_url") or not lead.is_blank("twitter_url")


def needs_contact_finding(lead: Lead) -> bool:
    return lead.is_blank("email") or lead.is_blank("linkedin_url")


async def discovery(context: WorkflowContext, deps: WorkflowDeps) -> StageResult:
    """Fetch the lead and check it has the identity fields the workflow needs."""
    lead_id = context["lead_id"]
    lead = await deps.store.get_lead(lead_id)
    if lead is None:
        raise LeadNotFoundError(lead_id)

    # email is optional: contact finding fills it later
    missing_fields = [f for f in REQUIRED_FIELDS if lead.is_blank(f)]
    if missing_fields:
        raise LeadValidationError(f"Lead is missing required fields: {missing_fields}")

    profiles = has_profiles_to_scrape(lead)
    contact = needs_contact_finding(lead)
    logger.info(f"Discovered lead {lead_id}: profiles_to_scrape={profiles}, needs_contact_finding={contact}")

    return StageResult(
        output={
            "leadFound": True,
            "hasProfilesToScrape": profiles,
            "needsContactFinding": contact,
        },
        updates={"lead": lead},
    )

"""
Lead enrichment agent.

Searches the web for the lead, then asks the model for a research summary,
pain points and buying signals.
"""
from typing import Any, Dict, List

from loguru import logger

from agents.prompts import ENRICHMENT_INSTRUCTIONS, ENRICHMENT_SCHEMA, person_block
from graph.models import Lead

MAX_SEARCH_CHARS = 3000
MAX_INSIGHTS = 5


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if item is not None]
    return [item for item in items if item][:MAX_INSIGHTS]


def _optional_str(value: Any):
    if isinstance(value, str) and value.strip() and value.strip().lower() != "null":
        return value.strip()
    return None


async def enrich_lead(lead: Lead, research, llm) -> Dict[str, Any]:
    """
    Research a lead and derive sales insights.

    Args:
        lead: Lead to enrich
        research: Research capability (search)
        llm: Extraction capability

    Returns:
        Dict with researchSummary, painPoints, buyingSignals and, when
        found, linkedin_url, twitter_url, location, additionalInsights
    """
    logger.info(f"Starting enrichment for {lead.full_name}")

    query = " ".join(p for p in (lead.full_name, lead.title, lead.company_name) if p).strip()
    search_results = await research.search(query, max_results=5)
    logger.info("Search completed, analyzing data...")

    person = person_block(
        name=lead.full_name,
        title=lead.title,
        company=lead.company_name,
        email=lead.email,
    )
    extraction = await llm.extract(
        f"Lead Information:\n{person}\n\nSearch Results:\n{search_results[:MAX_SEARCH_CHARS] or 'None'}",
        ENRICHMENT_SCHEMA,
        instructions=ENRICHMENT_INSTRUCTIONS,
        temperature=0.7,
    )

    if not extraction.parsed:
        logger.warning("Enrichment analysis not parseable, keeping raw summary")
        return {
            "researchSummary": extraction.raw[:500] or "No summary available",
            "painPoints": [],
            "buyingSignals": [],
        }

    data = extraction.data
    enrichment = {
        "researchSummary": _optional_str(data.get("researchSummary")) or "No summary available",
        "painPoints": _string_list(data.get("painPoints")),
        "buyingSignals": _string_list(data.get("buyingSignals")),
    }
    for key in ("linkedin_url", "twitter_url", "location", "additionalInsights"):
        value = _optional_str(data.get(key))
        if value:
            enrichment[key] = value

    logger.info("Enrichment completed")
    return enrichment


def enrichment_updates(lead: Lead, enrichment: Dict[str, Any]) -> Dict[str, Any]:
    """
    Lead fields to persist for an enrichment result.

    Summary, pain points and buying signals are always replaced; profile
    URLs and location only fill empty fields.
    """
    updates: Dict[str, Any] = {
        "research_summary": enrichment.get("researchSummary"),
        "pain_points": enrichment.get("painPoints") or [],
        "buying_signals": enrichment.get("buyingSignals") or [],
    }
    for field in ("linkedin_url", "twitter_url", "location"):
        if enrichment.get(field) and lead.is_blank(field):
            updates[field] = enrichment[field]
    return updates

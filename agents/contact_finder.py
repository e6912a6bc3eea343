"""
Contact finder agent.

Finds a missing email and/or LinkedIn URL for a lead from web search
results. Only concrete evidence found in the results is kept.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from agents.prompts import CONTACT_INSTRUCTIONS, CONTACT_SCHEMA, person_block
from graph.models import Lead

MAX_SEARCH_CHARS = 6000
SEARCH_SEPARATOR = "\n\n---\n\n"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class ContactInfo:
    email: Optional[str] = None
    linkedin_url: Optional[str] = None
    confidence: str = "low"
    search_summary: str = ""
    alternative_emails: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    queries: List[str] = field(default_factory=list)


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value.strip()))


def is_linkedin_profile_url(value: Optional[str]) -> bool:
    return bool(value) and "linkedin.com/in/" in value.lower()


def build_contact_queries(lead: Lead) -> List[str]:
    """Search queries for the contact fields the lead is missing."""
    name = lead.full_name
    company = lead.company_name or ""
    queries = []

    if lead.is_blank("linkedin_url"):
        queries.append(" ".join(p for p in (name, lead.title or "", company, "site:linkedin.com/in") if p))
    if lead.is_blank("email"):
        queries.append(" ".join(p for p in (name, company, "email contact") if p))
    if company:
        queries.append(f"{name} {company} team directory")
    return queries


async def find_contact_info(lead: Lead, research, llm) -> ContactInfo:
    """
    Search for and extract missing contact information.

    Args:
        lead: Lead possibly missing email and/or linkedin_url
        research: Research capability (search)
        llm: Extraction capability

    Returns:
        ContactInfo; fields that could not be verified are None
    """
    needs_email = lead.is_blank("email")
    needs_linkedin = lead.is_blank("linkedin_url")

    if not needs_email and not needs_linkedin:
        return ContactInfo(
            email=lead.email,
            linkedin_url=lead.linkedin_url,
            confidence="high",
            search_summary="All contact information already provided",
        )

    queries = build_contact_queries(lead)
    results = []
    for query in queries:
        text = await research.search(query, max_results=10)
        if text:
            results.append(text)
    search_results = SEARCH_SEPARATOR.join(results)
    logger.info(f"Contact search completed ({len(queries)} queries), extracting contact info...")

    if not search_results:
        return ContactInfo(
            search_summary="No search results available",
            queries=queries,
        )

    person = person_block(
        name=lead.full_name,
        company=lead.company_name,
        title=lead.title,
        location=lead.location,
        existing_email=lead.email or "Not provided",
        existing_linkedin=lead.linkedin_url or "Not provided",
    )
    extraction = await llm.extract(
        f"Person Information:\n{person}\n\nSearch Results:\n{search_results[:MAX_SEARCH_CHARS]}",
        CONTACT_SCHEMA,
        instructions=CONTACT_INSTRUCTIONS,
        temperature=0.3,
    )

    if not extraction.parsed:
        return ContactInfo(search_summary="Failed to parse AI response", queries=queries)

    data = extraction.data
    email = data.get("email")
    if email and not is_valid_email(email):
        logger.warning(f"Discarding malformed email from extraction: {email!r}")
        email = None

    linkedin_url = data.get("linkedinUrl")
    if linkedin_url and not is_linkedin_profile_url(linkedin_url):
        logger.warning(f"Discarding non-profile LinkedIn URL from extraction: {linkedin_url!r}")
        linkedin_url = None

    alternatives = data.get("alternativeEmails") or []
    if not isinstance(alternatives, list):
        alternatives = []

    return ContactInfo(
        email=email.strip() if email else None,
        linkedin_url=linkedin_url.strip() if linkedin_url else None,
        confidence=extraction.confidence,
        search_summary=data.get("searchSummary") or "Analysis completed",
        alternative_emails=[e for e in alternatives if isinstance(e, str) and is_valid_email(e)],
        notes=data.get("notes") or None,
        queries=queries,
    )

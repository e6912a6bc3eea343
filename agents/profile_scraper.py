"""
Profile scraper agent.

Scrapes the lead's LinkedIn and X/Twitter profiles and extracts structured
profile data (title, company, location, bio, ...) from the page content.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from agents.prompts import PROFILE_INSTRUCTIONS, PROFILE_SCHEMA
from graph.models import Lead

MAX_PROFILE_CHARS = 8000

SCALAR_FIELDS = ("title", "companyName", "location", "bio", "email", "website")
LIST_FIELDS = ("skills", "experience", "education")

SOURCE_LABELS = {"linkedin": "LinkedIn", "twitter": "X/Twitter"}


@dataclass
class ProfileScrape:
    profile_type: str                              # "linkedin" | "twitter" | "both"
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: str = "low"
    extraction_summary: str = ""
    notes: str = ""
    sources: Dict[str, str] = field(default_factory=dict)   # source -> extracted | empty | unavailable | error
    errors: List[str] = field(default_factory=list)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def merge_profile_data(
    linkedin: Optional[Dict[str, Any]],
    twitter: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Merge per-source extractions field by field.

    LinkedIn is checked first on every field; Twitter only fills what
    LinkedIn left empty.
    """
    ordered = [d for d in (linkedin, twitter) if d]
    merged: Dict[str, Any] = {}

    for name in SCALAR_FIELDS + LIST_FIELDS:
        for source in ordered:
            if _present(source.get(name)):
                merged[name] = source[name]
                break

    merged["confidence"] = next((s["confidence"] for s in ordered if s.get("confidence")), "low")
    merged["extractionSummary"] = " | ".join(s["extractionSummary"] for s in ordered if s.get("extractionSummary"))
    merged["notes"] = " | ".join(s["notes"] for s in ordered if s.get("notes"))
    return merged


async def extract_profile_info(content: str, source: str, lead: Lead, llm) -> Dict[str, Any]:
    """Extract structured profile fields from scraped page content."""
    existing = {
        "firstName": lead.first_name,
        "lastName": lead.last_name,
        "email": lead.email,
        "title": lead.title,
        "companyName": lead.company_name,
        "location": lead.location,
    }
    text = (
        f"Profile Type: {source}\n\n"
        f"Existing Lead Data:\n{json.dumps(existing, indent=2)}\n\n"
        f"Profile Content:\n{content[:MAX_PROFILE_CHARS]}"
    )
    extraction = await llm.extract(
        text,
        PROFILE_SCHEMA,
        instructions=PROFILE_INSTRUCTIONS.format(profile_label=SOURCE_LABELS[source]),
        temperature=0.2,
    )

    if not extraction.parsed:
        return {"confidence": "low", "extractionSummary": "Failed to parse AI response"}

    data = {k: v for k, v in extraction.data.items() if k in SCALAR_FIELDS + LIST_FIELDS and _present(v)}
    data["confidence"] = extraction.confidence
    data["extractionSummary"] = extraction.data.get("extractionSummary") or "Extraction completed"
    if extraction.data.get("notes"):
        data["notes"] = extraction.data["notes"]
    return data


async def scrape_profile(lead: Lead, research, llm) -> ProfileScrape:
    """
    Scrape and extract the lead's LinkedIn and/or X/Twitter profile.

    Sources are processed one after the other. A source that cannot be
    scraped is skipped; an exception in one source is recorded in
    `errors` and does not stop the other source.

    Args:
        lead: Lead with at least one of linkedin_url / twitter_url
        research: Research capability (scrape_page)
        llm: Extraction capability

    Returns:
        ProfileScrape with merged data (LinkedIn takes precedence)
    """
    urls = {"linkedin": lead.linkedin_url, "twitter": lead.twitter_url}
    urls = {source: url for source, url in urls.items() if _present(url)}
    if not urls:
        raise ValueError("No profile URLs provided")

    profile_type = "both" if len(urls) == 2 else next(iter(urls))
    result = ProfileScrape(profile_type=profile_type)
    extracted: Dict[str, Dict[str, Any]] = {}

    for source, url in urls.items():
        label = SOURCE_LABELS[source]
        logger.info(f"Scraping {label} profile: {url}")
        try:
            page = await research.scrape_page(url)
            if not page.success or not page.markdown:
                logger.warning(f"{label} scraping unavailable, skipping profile extraction")
                result.sources[source] = "unavailable"
                continue

            data = await extract_profile_info(page.markdown, source, lead, llm)
            extracted[source] = data
            has_fields = any(name in data for name in SCALAR_FIELDS + LIST_FIELDS)
            result.sources[source] = "extracted" if has_fields else "empty"
        except Exception as e:
            logger.error(f"{label} profile scrape failed: {e}")
            result.sources[source] = "error"
            result.errors.append(f"{label}: {e}")

    if not extracted:
        result.extraction_summary = "Profile scraping unavailable. Enrichment will collect data via web search."
        return result

    merged = merge_profile_data(extracted.get("linkedin"), extracted.get("twitter"))
    result.confidence = merged.pop("confidence")
    result.extraction_summary = merged.pop("extractionSummary")
    result.notes = merged.pop("notes")
    result.data = merged
    return result

"""Prompt templates and JSON schemas for the lead agents."""

PROFILE_INSTRUCTIONS = """You are a profile information extraction expert. Extract structured data from {profile_label} profile content.
For LinkedIn focus on current role, company, location and experience.
For X/Twitter focus on bio, location and any current role/company mentioned.
Prioritize current/recent information."""

PROFILE_SCHEMA = """{
  "title": "Current job title" or null,
  "companyName": "Current company name" or null,
  "location": "City, State/Country" or null,
  "bio": "Professional summary/bio (2-3 sentences)" or null,
  "skills": ["skill1", "skill2"],
  "experience": [{"title": "Job title", "company": "Company name", "duration": "2020-2023"}],
  "education": ["School/Degree"],
  "email": "email@domain.com" or null,
  "website": "https://website.com" or null,
  "confidence": "high" | "medium" | "low",
  "extractionSummary": "Brief summary of what was extracted",
  "notes": "Any caveats or important context"
}"""

CONTACT_INSTRUCTIONS = """You are a contact information extraction expert. Find and verify professional contact details from web search results.
For emails: the address must be explicitly shown in the results.
For LinkedIn: it must be a full linkedin.com/in/<username> URL.
If you cannot find reliable information, return null fields with confidence "low"."""

CONTACT_SCHEMA = """{
  "email": "email@company.com" or null,
  "linkedinUrl": "https://linkedin.com/in/username" or null,
  "confidence": "high" | "medium" | "low",
  "searchSummary": "Brief explanation of what was found",
  "alternativeEmails": ["other@email.com"],
  "notes": "Any important caveats or additional context"
}"""

ENRICHMENT_INSTRUCTIONS = """You are a B2B sales research expert. Analyze the provided information about a lead and extract insights for sales outreach:
1. A concise research summary (2-3 sentences)
2. 3-5 pain points they might have
3. 3-5 buying signals or opportunities
4. Any LinkedIn/Twitter URLs and location info
Be specific and actionable."""

ENRICHMENT_SCHEMA = """{
  "researchSummary": "Brief summary here",
  "painPoints": ["pain point 1", "pain point 2"],
  "buyingSignals": ["signal 1", "signal 2"],
  "linkedin_url": "url" or null,
  "twitter_url": "url" or null,
  "location": "location" or null,
  "additionalInsights": "any other relevant info",
  "confidence": "high" | "medium" | "low"
}"""

SCORING_SYSTEM = """You are a lead scoring expert. Analyze the lead data and assign a score from 0-100.

Consider:
- Company fit (industry, size, revenue)
- Contact information quality
- Pain points (more = higher score)
- Buying signals (more = higher score)
- Engagement indicators

Return ONLY a JSON object:
{"score": 75, "reasoning": "Brief explanation of the score"}"""

SCORING_USER = """Lead Data:
Name: {first_name} {last_name}
Title: {title}
Company: {company_name}
Email: {email}
Pain Points: {pain_points}
Buying Signals: {buying_signals}
Research Summary: {research_summary}

Calculate a lead quality score (0-100)."""


def person_block(**fields) -> str:
    """Render known facts about a person as a bullet list."""
    lines = []
    for label, value in fields.items():
        lines.append(f"- {label.replace('_', ' ').title()}: {value or 'Unknown'}")
    return "\n".join(lines)

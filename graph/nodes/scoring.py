import math
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from loguru import logger

from agents.prompts import SCORING_SYSTEM, SCORING_USER
from graph.state import StageResult, WorkflowContext, WorkflowDeps
from tools.parsing import parse_json_object

DEFAULT_SCORE = 50
DEFAULT_REASONING = "Default score assigned"


def coerce_score(value: Any) -> int:
    """Turn whatever the model returned into an int in [0, 100].

    Non-numeric values fall back to DEFAULT_SCORE.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_SCORE
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return DEFAULT_SCORE
    else:
        return DEFAULT_SCORE

    if math.isnan(number):
        return DEFAULT_SCORE
    return int(round(max(0.0, min(100.0, number))))


def parse_score_response(content: str) -> Tuple[int, str]:
    """Parse the scoring model response into (score, reasoning)."""
    result = parse_json_object(content)
    if not result.ok:
        logger.warning(f"Could not parse scoring response, using default: {result.error}")
        return DEFAULT_SCORE, DEFAULT_REASONING

    score = coerce_score(result.get("score"))
    reasoning = result.get("reasoning") or DEFAULT_REASONING
    return score, str(reasoning)


def build_scoring_prompt(context: WorkflowContext) -> str:
    lead = context.get("lead")
    enrichment = context.get("enrichment_data") or {}
    return SCORING_USER.format(
        first_name=(lead.first_name if lead else None) or "Unknown",
        last_name=(lead.last_name if lead else None) or "",
        title=(lead.title if lead else None) or "Unknown",
        company_name=(lead.company_name if lead else None) or "Unknown",
        email=(lead.email if lead else None) or "",
        pain_points=", ".join(enrichment.get("painPoints") or []) or "Not analyzed",
        buying_signals=", ".join(enrichment.get("buyingSignals") or []) or "Not analyzed",
        research_summary=enrichment.get("researchSummary") or "Not available",
    )


async def scoring(context: WorkflowContext, deps: WorkflowDeps) -> StageResult:
    """Score lead quality (0-100) with the language model."""
    error: Optional[str] = None
    try:
        content = await deps.llm.complete(SCORING_SYSTEM, build_scoring_prompt(context), temperature=0.3, max_tokens=500)
        score, reasoning = parse_score_response(content)
    except Exception as e:
        logger.error(f"LLM scoring failed: {e}")
        error = f"LLM scoring failed: {e}"
        score, reasoning = DEFAULT_SCORE, DEFAULT_REASONING

    logger.info(f"Final score: {score} for {context['lead_id']}")

    lead = await deps.store.update_lead(context["lead_id"], {
        "score": score,
        "updated_at": datetime.now(timezone.utc),
    })

    return StageResult(
        output={"score": score, "reasoning": reasoning},
        updates={"lead": lead, "score": score, "score_reasoning": reasoning},
        error=error,
    )

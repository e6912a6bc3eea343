"""
Lead processing workflow.

Stages run strictly one after another:

    discovery -> [profile_scraper] -> [contact_finder] -> enrichment
              -> scoring -> status_update -> completed

Profile scraping and contact finding are skipped when the lead's data
does not call for them. Only discovery and status_update can fail the
run; every other stage degrades to a default result and the run goes on.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph
from loguru import logger

from graph.errors import WorkflowAlreadyRunningError
from graph.nodes.contact_finder import contact_finder
from graph.nodes.discovery import discovery, has_profiles_to_scrape, needs_contact_finding
from graph.nodes.enrichment import enrichment
from graph.nodes.profile_scraper import profile_scraper
from graph.nodes.scoring import DEFAULT_REASONING, DEFAULT_SCORE, scoring
from graph.nodes.status_update import status_update
from graph.state import (
    StageResult,
    WorkflowContext,
    WorkflowDeps,
    WorkflowState,
    WorkflowStep,
    initialize_workflow,
    utcnow,
)

StageFn = Callable[[WorkflowContext, WorkflowDeps], Awaitable[StageResult]]


@dataclass(frozen=True)
class Stage:
    state: WorkflowState
    run: StageFn
    fatal: bool = False
    # context updates applied when a non-fatal stage raises
    fallback: Optional[Callable[[WorkflowContext], Dict[str, Any]]] = None


def route_after_discovery(context: WorkflowContext) -> WorkflowState:
    lead = context["lead"]
    if has_profiles_to_scrape(lead):
        return WorkflowState.PROFILE_SCRAPER
    if needs_contact_finding(lead):
        return WorkflowState.CONTACT_FINDER
    return WorkflowState.ENRICHMENT


def route_after_profile_scraper(context: WorkflowContext) -> WorkflowState:
    # re-evaluated against the lead as updated by the scraper
    lead = context.get("lead")
    if lead is not None and needs_contact_finding(lead):
        return WorkflowState.CONTACT_FINDER
    return WorkflowState.ENRICHMENT


TRANSITIONS: Dict[WorkflowState, Union[WorkflowState, Callable[[WorkflowContext], WorkflowState]]] = {
    WorkflowState.DISCOVERY: route_after_discovery,
    WorkflowState.PROFILE_SCRAPER: route_after_profile_scraper,
    WorkflowState.CONTACT_FINDER: WorkflowState.ENRICHMENT,
    WorkflowState.ENRICHMENT: WorkflowState.SCORING,
    WorkflowState.SCORING: WorkflowState.STATUS_UPDATE,
    WorkflowState.STATUS_UPDATE: WorkflowState.COMPLETED,
}

STAGES: Dict[WorkflowState, Stage] = {
    WorkflowState.DISCOVERY: Stage(WorkflowState.DISCOVERY, discovery, fatal=True),
    WorkflowState.PROFILE_SCRAPER: Stage(WorkflowState.PROFILE_SCRAPER, profile_scraper),
    WorkflowState.CONTACT_FINDER: Stage(WorkflowState.CONTACT_FINDER, contact_finder),
    WorkflowState.ENRICHMENT: Stage(WorkflowState.ENRICHMENT, enrichment),
    WorkflowState.SCORING: Stage(
        WorkflowState.SCORING,
        scoring,
        fallback=lambda context: {"score": DEFAULT_SCORE, "score_reasoning": DEFAULT_REASONING},
    ),
    WorkflowState.STATUS_UPDATE: Stage(WorkflowState.STATUS_UPDATE, status_update, fatal=True),
}


def next_state(state: WorkflowState, context: WorkflowContext) -> WorkflowState:
    """Look up the state that follows `state` in the transition table."""
    target = TRANSITIONS[state]
    return target(context) if callable(target) else target


async def run_stage(stage: Stage, context: WorkflowContext, deps: WorkflowDeps) -> Dict[str, Any]:
    """
    Run one stage and turn its outcome into a context update.

    The stage's step is recorded whatever happens. Exceptions from a
    fatal stage move the run to FAILED; exceptions from any other stage
    are recorded on the step and the run moves on to the next state.

    Returns:
        Partial context (LangGraph update) including the finalized step
        and the new current_state
    """
    lead_id = context["lead_id"]
    step = WorkflowStep.begin(stage.state)
    logger.info(f"[{lead_id}] Starting {stage.state.value}")

    try:
        result = await stage.run(context, deps)
    except Exception as e:
        error = str(e) or e.__class__.__name__
        failed = step.fail(error)

        if stage.fatal:
            logger.error(f"[{lead_id}] {stage.state.value} failed, stopping workflow: {error}")
            return {
                "current_state": WorkflowState.FAILED,
                "error": error,
                "completed_at": utcnow(),
                "steps": [failed],
            }

        logger.error(f"[{lead_id}] {stage.state.value} failed, continuing: {error}")
        update = dict(stage.fallback(context)) if stage.fallback else {}
        update["steps"] = [failed]
        update["current_state"] = next_state(stage.state, {**context, **update})
        return update

    update = dict(result.updates)
    if result.error:
        logger.warning(f"[{lead_id}] {stage.state.value} finished with errors: {result.error}")
        update["steps"] = [step.fail(result.error, output=result.output)]
    else:
        logger.info(f"[{lead_id}] {stage.state.value} completed")
        update["steps"] = [step.finish(result.output)]

    update["current_state"] = next_state(stage.state, {**context, **update})
    if update["current_state"] is WorkflowState.COMPLETED:
        update["completed_at"] = utcnow()
    return update


def _as_node(stage: Stage):
    async def node(state: WorkflowContext, config: RunnableConfig) -> Dict[str, Any]:
        deps = config["configurable"]["deps"]
        return await run_stage(stage, state, deps)

    node.__name__ = stage.state.value
    return node


def _route(state: WorkflowContext) -> str:
    return WorkflowState(state["current_state"]).value


def build_workflow():
    """Build the lead processing workflow graph."""
    workflow = StateGraph(WorkflowContext)

    for state, stage in STAGES.items():
        workflow.add_node(state.value, _as_node(stage))

    workflow.add_edge(START, WorkflowState.DISCOVERY.value)

    path_map = {state.value: state.value for state in STAGES}
    path_map[WorkflowState.COMPLETED.value] = END
    path_map[WorkflowState.FAILED.value] = END
    for state in STAGES:
        workflow.add_conditional_edges(state.value, _route, path_map)

    return workflow.compile()


lead_workflow = build_workflow()


async def execute_lead_processing_workflow(lead_id: str, deps: WorkflowDeps, lock=None) -> WorkflowContext:
    """
    Run the complete workflow for one lead.

    Args:
        lead_id: Lead identifier
        deps: Record store, research and extraction capabilities
        lock: Optional LeadLock; a second concurrent run for the same lead
            raises WorkflowAlreadyRunningError

    Returns:
        Final workflow context (current_state is COMPLETED or FAILED)
    """
    if not isinstance(lead_id, str):
        raise TypeError(f"leadId must be a string, got {type(lead_id).__name__}")

    logger.info(f"Starting lead processing workflow for lead: {lead_id}")

    # an empty id can't be locked; discovery fails it with "Lead not found"
    token = None
    if lock is not None and lead_id:
        token = await lock.acquire(lead_id)
        if token is None:
            raise WorkflowAlreadyRunningError(lead_id)

    try:
        context = await lead_workflow.ainvoke(
            initialize_workflow(lead_id),
            config={"configurable": {"deps": deps}},
        )
    finally:
        if token is not None:
            await lock.release(lead_id, token)

    logger.info(f"Workflow completed in {WorkflowState(context['current_state']).value} state")
    return context


async def process_leads(lead_ids: Iterable[str], deps: WorkflowDeps, lock=None) -> Dict[str, Any]:
    """Run the workflow for several leads, one after the other."""
    results: List[Dict[str, Any]] = []

    for lead_id in lead_ids:
        try:
            context = await execute_lead_processing_workflow(lead_id, deps, lock=lock)
            results.append({
                "leadId": lead_id,
                "success": context["current_state"] is WorkflowState.COMPLETED,
                "status": WorkflowState(context["current_state"]).value,
                "score": context.get("score"),
                "newStatus": context.get("new_status"),
                "error": context.get("error"),
            })
        except Exception as e:
            logger.error(f"Workflow for lead {lead_id} failed: {e}")
            results.append({"leadId": lead_id, "success": False, "error": str(e)})

    return {"success": True, "processed": len(results), "results": results}


def get_workflow_summary(context: WorkflowContext, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Read-only view of a workflow run for display and logging."""
    end = context.get("completed_at") or now or utcnow()
    steps = []
    for step in context.get("steps", []):
        duration = step.duration_seconds
        steps.append({
            "name": step.state.value,
            "status": step.status.value,
            "duration": round(duration) if duration is not None else None,
            "output": step.output,
            "error": step.error,
        })

    return {
        "leadId": context["lead_id"],
        "status": WorkflowState(context["current_state"]).value,
        "duration": round((end - context["started_at"]).total_seconds()),
        "steps": steps,
        "finalScore": context.get("score"),
        "finalStatus": context.get("new_status"),
        "error": context.get("error"),
    }

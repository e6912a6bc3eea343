import asyncio
import os
import time
from functools import lru_cache
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from graph.errors import WorkflowAlreadyRunningError
from graph.nodes.enrichment import enrichment
from graph.state import WorkflowDeps, WorkflowState
from graph.workflow import execute_lead_processing_workflow, get_workflow_summary, process_leads
from tools.lead_lock import LeadLock
from tools.llm import LLMClient
from tools.research import ResearchClient
from tools.supabase_store import create_store

# Load environment variables
load_dotenv()

# Configure logging
logger.add("logs/app.log", rotation="1 day", retention="7 days", level=os.getenv("LOG_LEVEL", "INFO"))

app = FastAPI(
    title="CRM Lead Processing Workflow",
    description="AI-powered lead research, enrichment and scoring",
    version="1.0.0"
)


@lru_cache
def get_deps() -> WorkflowDeps:
    """Record store, research and extraction capabilities shared by all requests."""
    return WorkflowDeps(store=create_store(), research=ResearchClient(), llm=LLMClient())


@lru_cache
def get_lock() -> LeadLock:
    return LeadLock()


def workflow_timeout() -> float:
    return float(os.getenv("WORKFLOW_TIMEOUT_SECONDS", "120"))


def _error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def _json_body(req: Request) -> Dict[str, Any]:
    try:
        payload = await req.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@app.post("/workflows/lead-processing")
async def run_lead_workflow(
    req: Request,
    deps: WorkflowDeps = Depends(get_deps),
    lock: LeadLock = Depends(get_lock),
):
    """
    Run the full lead processing workflow for one lead.

    Expected payload:
    {
        "leadId": "6f1c..."
    }
    """
    payload = await _json_body(req)
    lead_id = payload.get("leadId")
    # a non-string id is rejected by the workflow itself (500)
    if lead_id is None or lead_id == "":
        return _error(400, "leadId is required")

    try:
        context = await asyncio.wait_for(
            execute_lead_processing_workflow(lead_id, deps, lock=lock),
            timeout=workflow_timeout(),
        )
    except WorkflowAlreadyRunningError as e:
        logger.warning(str(e))
        return _error(409, "Workflow already running for this lead", str(e))
    except asyncio.TimeoutError:
        logger.error(f"Workflow for lead {lead_id} timed out after {workflow_timeout()}s")
        return _error(504, "Workflow timed out", f"No result after {workflow_timeout()} seconds")
    except Exception as e:
        logger.error(f"Workflow execution failed for lead {lead_id}: {e}")
        return _error(500, "Failed to execute workflow", str(e))

    summary = get_workflow_summary(context)
    return JSONResponse(
        status_code=200,
        content=jsonable_encoder({
            "success": context["current_state"] is WorkflowState.COMPLETED,
            "summary": summary,
            "context": context,
        }),
    )


@app.post("/workflows/lead-processing/batch")
async def run_lead_workflow_batch(
    req: Request,
    deps: WorkflowDeps = Depends(get_deps),
    lock: LeadLock = Depends(get_lock),
):
    """Process several leads one after the other."""
    payload = await _json_body(req)
    lead_ids = payload.get("leadIds")
    if not isinstance(lead_ids, list) or not lead_ids:
        return _error(400, "leadIds must be a non-empty list")

    result = await process_leads(lead_ids, deps, lock=lock)
    return JSONResponse(status_code=200, content=jsonable_encoder(result))


@app.post("/leads/{lead_id}/enrich")
async def enrich_single_lead(lead_id: str, deps: WorkflowDeps = Depends(get_deps)):
    """Enrich one lead without running the rest of the workflow."""
    lead = await deps.store.get_lead(lead_id)
    if lead is None:
        return _error(404, "Lead not found")

    try:
        result = await enrichment({"lead_id": lead_id, "lead": lead}, deps)
    except Exception as e:
        logger.error(f"Enrichment failed for lead {lead_id}: {e}")
        return _error(500, "Failed to enrich lead", str(e))

    return JSONResponse(
        status_code=200,
        content=jsonable_encoder({
            "success": True,
            "lead": result.updates["lead"],
            "enrichment": result.updates["enrichment_data"],
        }),
    )


@app.get("/leads/{lead_id}")
async def get_lead_status(lead_id: str, deps: WorkflowDeps = Depends(get_deps)):
    """Lead record plus its most recent activities."""
    lead = await deps.store.get_lead(lead_id)
    if lead is None:
        return _error(404, "Lead not found")

    activities = await deps.store.list_activities(lead_id, limit=5)
    return JSONResponse(
        status_code=200,
        content=jsonable_encoder({"success": True, "lead": lead, "recentActivities": activities}),
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": "1.0.0",
        "services": {
            "supabase": "configured" if os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_ROLE_KEY") else "mock",
            "openai": "configured" if os.getenv("OPENAI_API_KEY") else "mock",
            "tavily": "configured" if os.getenv("TAVILY_API_KEY") else "mock",
            "firecrawl": "configured" if os.getenv("FIRECRAWL_API_KEY") else "disabled",
            "workflow": "ready"
        }
    }


# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    # Create logs directory if it doesn't exist
    os.makedirs("logs", exist_ok=True)

    logger.info("Starting CRM Lead Processing Workflow")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

import httpx
from loguru import logger

from graph.errors import LeadNotFoundError
from graph.models import Activity, ActivityCreate, Lead


class LeadStore(Protocol):
    """Record store used by the workflow (leads + activities)."""

    async def get_lead(self, lead_id: str) -> Optional[Lead]: ...

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> Lead: ...

    async def insert_activity(self, activity: ActivityCreate) -> Activity: ...

    async def list_activities(self, lead_id: str, limit: int = 5) -> List[Activity]: ...


class SupabaseStore:
    """Supabase (PostgREST) backed record store."""

    def __init__(self, url: Optional[str] = None, service_key: Optional[str] = None, timeout: float = 20):
        self.url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.service_key = service_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        self.timeout = timeout

        if not self.url or not self.service_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _request(self, method: str, table: str, params: Dict[str, str], json: Any = None) -> List[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.request(
                method,
                f"{self.url}/rest/v1/{table}",
                params=params,
                json=json,
                headers=self._get_headers(),
            )
            response.raise_for_status()
            return response.json()

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        try:
            rows = await self._request("GET", "leads", {"id": f"eq.{lead_id}", "select": "*"})
        except httpx.HTTPStatusError as e:
            # PostgREST rejects ids that aren't valid UUIDs with a 400
            if 400 <= e.response.status_code < 500:
                logger.warning(f"Lead lookup for {lead_id} rejected ({e.response.status_code}): {e.response.text}")
                return None
            raise
        return Lead.model_validate(rows[0]) if rows else None

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> Lead:
        rows = await self._request("PATCH", "leads", {"id": f"eq.{lead_id}"}, json=_serialize(fields))
        if not rows:
            raise LeadNotFoundError(lead_id)
        logger.info(f"Updated lead {lead_id}: {sorted(fields)}")
        return Lead.model_validate(rows[0])

    async def insert_activity(self, activity: ActivityCreate) -> Activity:
        rows = await self._request("POST", "activities", {}, json=activity.model_dump(mode="json"))
        return Activity.model_validate(rows[0])

    async def list_activities(self, lead_id: str, limit: int = 5) -> List[Activity]:
        rows = await self._request("GET", "activities", {
            "lead_id": f"eq.{lead_id}",
            "order": "created_at.desc",
            "limit": str(limit),
        })
        return [Activity.model_validate(row) for row in rows]


class InMemoryStore:
    """Process-local record store for development and tests."""

    def __init__(self, leads: Optional[List[Lead]] = None):
        self.leads: Dict[str, Lead] = {lead.id: lead for lead in leads or []}
        self.activities: List[Activity] = []

    def add_lead(self, lead: Lead) -> Lead:
        self.leads[lead.id] = lead
        return lead

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        return self.leads.get(lead_id)

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> Lead:
        lead = self.leads.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        # validate through the model so score bounds etc. still hold
        updated = Lead.model_validate({**lead.model_dump(), **fields})
        self.leads[lead_id] = updated
        return updated

    async def insert_activity(self, activity: ActivityCreate) -> Activity:
        row = Activity(
            **activity.model_dump(),
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
        )
        self.activities.append(row)
        return row

    async def list_activities(self, lead_id: str, limit: int = 5) -> List[Activity]:
        rows = [a for a in self.activities if a.lead_id == lead_id]
        return list(reversed(rows))[:limit]


def _serialize(fields: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        out[key] = value
    return out


def create_store() -> LeadStore:
    """Supabase store when configured, otherwise an in-memory store."""
    if os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
        return SupabaseStore()
    logger.warning("Supabase not configured, using in-memory lead store (mock mode)")
    return InMemoryStore()

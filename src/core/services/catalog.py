"""Plan catalog: listing plans and plan families, creating plans."""

from __future__ import annotations

from core.domain.models import Page, Plan, PlanDraft, PlanFamily
from core.interfaces.api import OutsetaApi

PLANS_PATH = "/api/v1/billing/plans"
PLAN_FAMILIES_PATH = "/api/v1/billing/planfamilies"


class CatalogService:
    def __init__(self, client: OutsetaApi) -> None:
        self._client = client

    async def list_plans(self) -> list[Plan]:
        page = await self._client.request_model(Page[Plan], "GET", PLANS_PATH)
        return page.items

    async def list_plan_families(self) -> list[PlanFamily]:
        page = await self._client.request_model(Page[PlanFamily], "GET", PLAN_FAMILIES_PATH)
        return page.items

    async def create_plan(self, draft: PlanDraft) -> Plan:
        return await self._client.request_model(Plan, "POST", PLANS_PATH, json=draft.to_payload())

"""Admin AI usage: GET /api/admin/ai-usage.

Calls, tokens and estimated cost per call type. Admin-only outside
development.
"""

from __future__ import annotations

from fastapi import APIRouter

from sportsmockery.ai.usage import PRICING, summarize_usage
from sportsmockery.api.deps import RepoDep
from sportsmockery.auth.deps import AdminUser

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/ai-usage")
async def ai_usage(repo: RepoDep, _admin: AdminUser) -> dict:
    summary = await summarize_usage(repo.session)
    return {**summary, "pricing": PRICING}

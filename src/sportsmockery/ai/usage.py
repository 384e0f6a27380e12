"""AI usage tracking: record token counts and costs for every Anthropic call.

``record_ai_usage()`` inserts an ``AIUsageLogRow``. The bot generator calls it
after each Messages API response; ``summarize_usage()`` feeds the admin
cost dashboard.

Pricing constants live here and should be updated when Anthropic changes
its rates.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sportsmockery.db.models import AIUsageLogRow

logger = logging.getLogger(__name__)

# Pricing per million tokens (USD).
PRICING: dict[str, dict[str, float]] = {
    "claude-sonnet-4-20250514": {
        "input_per_mtok": 3.00,
        "output_per_mtok": 15.00,
        "cache_read_per_mtok": 0.30,
        "cache_write_per_mtok": 3.75,
    },
    "claude-sonnet-4-5-20250929": {
        "input_per_mtok": 3.00,
        "output_per_mtok": 15.00,
        "cache_read_per_mtok": 0.30,
        "cache_write_per_mtok": 3.75,
    },
    "claude-haiku-4-5-20251001": {
        "input_per_mtok": 0.80,
        "output_per_mtok": 4.00,
        "cache_read_per_mtok": 0.08,
        "cache_write_per_mtok": 1.00,
    },
}

_DEFAULT_PRICING = {
    "input_per_mtok": 3.00,
    "output_per_mtok": 15.00,
    "cache_read_per_mtok": 0.30,
    "cache_write_per_mtok": 3.75,
}


def compute_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int = 0,
    cache_creation_tokens: int = 0,
) -> float:
    """Estimated cost in USD for a single API call."""
    rates = PRICING.get(model, _DEFAULT_PRICING)
    cost = (
        input_tokens * rates["input_per_mtok"]
        + output_tokens * rates["output_per_mtok"]
        + cache_read_tokens * rates["cache_read_per_mtok"]
        + cache_creation_tokens * rates["cache_write_per_mtok"]
    ) / 1_000_000
    return round(cost, 8)


async def record_ai_usage(
    *,
    session: AsyncSession,
    call_type: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int = 0,
    cache_creation_tokens: int = 0,
    latency_ms: float = 0.0,
    team_slug: str = "",
) -> AIUsageLogRow:
    """Record an AI API call to the usage log.

    Parameters
    ----------
    session : AsyncSession
        The SQLAlchemy async session to use for the insert.
    call_type : str
        Identifier for the call site, e.g. "bot.reply", "bot.analyze".
    model : str
        The model name, e.g. "claude-sonnet-4-20250514".
    input_tokens, output_tokens, cache_read_tokens, cache_creation_tokens : int
        Token counts from the API response.
    latency_ms : float
        Wall-clock time of the API call in milliseconds.
    team_slug : str
        Team the call was made for (empty string if not team-specific).

    Returns
    -------
    AIUsageLogRow
        The inserted row.
    """
    cost = compute_cost(
        model, input_tokens, output_tokens, cache_read_tokens, cache_creation_tokens
    )
    row = AIUsageLogRow(
        call_type=call_type,
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read_tokens,
        cache_creation_tokens=cache_creation_tokens,
        latency_ms=latency_ms,
        cost_usd=cost,
        team_slug=team_slug,
    )
    session.add(row)
    try:
        await session.flush()
    except Exception:
        # Usage logging should never break the caller.
        logger.warning("ai_usage_flush_failed call_type=%s", call_type, exc_info=True)
    return row


@asynccontextmanager
async def track_latency() -> AsyncGenerator[dict[str, float], None]:
    """Context manager that yields a dict; after exit, 'latency_ms' is set.

    Usage::

        async with track_latency() as timing:
            response = await client.messages.create(...)
        latency = timing["latency_ms"]
    """
    timing: dict[str, float] = {"latency_ms": 0.0}
    start = time.monotonic()
    try:
        yield timing
    finally:
        timing["latency_ms"] = (time.monotonic() - start) * 1000


def extract_usage(response: object) -> tuple[int, int, int, int]:
    """Extract token counts from an Anthropic ``Message``.

    Returns (input_tokens, output_tokens, cache_read_tokens,
    cache_creation_tokens).
    """
    usage = getattr(response, "usage", None)
    if usage is None:
        return (0, 0, 0, 0)
    input_tokens = getattr(usage, "input_tokens", 0) or 0
    output_tokens = getattr(usage, "output_tokens", 0) or 0
    cache_read = getattr(usage, "cache_read_input_tokens", 0) or 0
    cache_creation = getattr(usage, "cache_creation_input_tokens", 0) or 0
    return (input_tokens, output_tokens, cache_read, cache_creation)


async def summarize_usage(session: AsyncSession) -> dict[str, object]:
    """Aggregate calls, tokens and cost per call type, plus overall totals."""
    stmt = (
        select(
            AIUsageLogRow.call_type,
            func.count(AIUsageLogRow.id),
            func.coalesce(func.sum(AIUsageLogRow.input_tokens), 0),
            func.coalesce(func.sum(AIUsageLogRow.output_tokens), 0),
            func.coalesce(func.sum(AIUsageLogRow.cost_usd), 0.0),
            func.coalesce(func.avg(AIUsageLogRow.latency_ms), 0.0),
        )
        .group_by(AIUsageLogRow.call_type)
        .order_by(AIUsageLogRow.call_type)
    )
    result = await session.execute(stmt)

    by_call_type = []
    for call_type, calls, input_tokens, output_tokens, cost, avg_latency in result.all():
        by_call_type.append(
            {
                "call_type": call_type,
                "calls": calls,
                "input_tokens": int(input_tokens),
                "output_tokens": int(output_tokens),
                "cost_usd": round(float(cost), 6),
                "avg_latency_ms": round(float(avg_latency), 1),
            }
        )

    return {
        "total_calls": sum(item["calls"] for item in by_call_type),
        "total_input_tokens": sum(item["input_tokens"] for item in by_call_type),
        "total_output_tokens": sum(item["output_tokens"] for item in by_call_type),
        "total_cost_usd": round(sum(item["cost_usd"] for item in by_call_type), 6),
        "by_call_type": by_call_type,
    }


def cacheable_system(text: str) -> list[dict[str, object]]:
    """Wrap a system prompt string as a cacheable content block.

    Prompts below the minimum cacheable size are simply not cached.
    """
    return [{"type": "text", "text": text, "cache_control": {"type": "ephemeral"}}]

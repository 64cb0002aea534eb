from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from ...auth import optional_subject
from ...errors import ConfigurationMissing, InvalidInput, RateLimited
from ...models import Option
from ...planner import Planner, build_planner
from ...rate_limit import RateLimiter, rate_limiter
from ...schemas import PlanInfo, PlanRequest, PlanResponse, SwapRequest, SwapResponse
from ...selection import substitute
from ...utils import account_identity, guest_identity

router = APIRouter(tags=["plan"])

_planner: Planner | None = None


def get_planner() -> Planner:
    global _planner
    if _planner is None:
        _planner = build_planner()
    return _planner


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise InvalidInput("Invalid JSON body.") from exc


@router.get("/plan", response_model=PlanInfo)
async def plan_info() -> PlanInfo:
    return PlanInfo(message="Use POST to generate a plan.")


@router.post("/plan", response_model=PlanResponse)
async def create_plan(
    request: Request,
    subject: str | None = Depends(optional_subject),
    planner: Planner = Depends(get_planner),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> PlanResponse:
    if subject:
        identity, mode = account_identity(subject), "authenticated"
    else:
        host = request.client.host if request.client else None
        identity, mode = guest_identity(request.headers, host), "guest"

    decision = await limiter.admit(identity, mode)
    if not decision.allowed:
        if decision.status == 429:
            raise RateLimited(decision.message or "Too many requests.", decision.retry_after)
        raise ConfigurationMissing(decision.message or "Server not configured.")

    body = await _read_json(request)
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object.")
    try:
        intent = PlanRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidInput("Invalid plan request.") from exc

    result = await planner.plan(intent)
    return result.to_response()


@router.post("/plan/swap", response_model=SwapResponse)
async def swap_option(request: Request) -> SwapResponse:
    """Replace one shortlist option from the pool the client already holds."""
    body = await _read_json(request)
    try:
        swap = SwapRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidInput("Invalid swap request.") from exc

    shortlist = [Option.from_public(o) for o in swap.options]
    pool = [Option.from_public(o) for o in swap.pool]
    updated, replacement = substitute(shortlist, swap.removed_id, pool, swap.banned_keys)
    return SwapResponse(
        options=[o.to_public() for o in updated],
        replacement=replacement.to_public(),
    )

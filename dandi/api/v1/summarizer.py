"""GitHub summarizer endpoints.

- POST /github-summarizer: metered, requires ``x-api-key``
- GET /github-summarizer: credential probe, never metered
- POST /github-summarizer/demo: unauthenticated, limited per client address

Per request the order is admit, summarize, meter. A request that fails or
whose client disconnects before the summary completes is not metered.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dandi.api.dependencies import (
    AccessGateDep,
    ClientAddressDep,
    DemoRateLimiterDep,
    SummarizationServiceDep,
    UsageMeterDep,
)
from dandi.concurrency.cancellation import run_until_disconnected
from dandi.errors import DandiError
from dandi.services.metering import run_metered

logger = structlog.get_logger()

router = APIRouter()

DEMO_RATE_LIMITED_MESSAGE = (
    "Rate limit exceeded. Please try again tomorrow or sign up for an API key."
)


class SummarizeRequest(BaseModel):
    githubUrl: str | None = None


class DemoRateLimitedError(DandiError):
    code = "rate_limited"
    message = DEMO_RATE_LIMITED_MESSAGE
    status_code = 429


def _rate_limit_headers(limit: int, remaining: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(max(remaining, 0)),
    }


@router.get("")
async def probe(
    gate: AccessGateDep,
    x_api_key: str | None = Header(None, alias="x-api-key"),
) -> dict[str, Any]:
    """Check that a key is accepted. Does not consume quota."""
    admission = await gate.admit(x_api_key)
    admission.raise_for_status()
    return {"message": "GitHub Summarizer API", "status": "authenticated"}


@router.post("")
async def summarize(
    body: SummarizeRequest,
    http_request: Request,
    gate: AccessGateDep,
    meter: UsageMeterDep,
    summarization: SummarizationServiceDep,
    x_api_key: str | None = Header(None, alias="x-api-key"),
) -> JSONResponse:
    """Summarize a repository and meter one request against the key."""
    admission = await gate.admit(x_api_key)
    admission.raise_for_status()

    result, recorded = await run_metered(
        meter,
        admission.key_id,
        lambda: run_until_disconnected(http_request, summarization.summarize(body.githubUrl)),
    )
    usage = admission.usage + (1 if recorded else 0)
    remaining = max(admission.limit - usage, 0)

    return JSONResponse(
        content={
            "repository": result.repository,
            "analysis": result.analysis.model_dump(by_alias=True),
            "status": "completed",
            "quota": {
                "usage": usage,
                "limit": admission.limit,
                "remaining": remaining,
            },
            "usage_recorded": recorded,
        },
        headers=_rate_limit_headers(admission.limit, remaining),
    )


@router.post("/demo")
async def summarize_demo(
    body: SummarizeRequest,
    http_request: Request,
    limiter: DemoRateLimiterDep,
    summarization: SummarizationServiceDep,
    client: ClientAddressDep,
) -> JSONResponse:
    """Try the summarizer without a key, a few times per day per address."""
    decision = await limiter.hit(client)
    if not decision.allowed:
        logger.info("demo.rate_limited", limit=decision.limit)
        error = DemoRateLimitedError()
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_dict(getattr(http_request.state, "request_id", None)),
            headers=_rate_limit_headers(decision.limit, 0),
        )

    result = await run_until_disconnected(
        http_request,
        summarization.summarize_demo(body.githubUrl),
    )

    return JSONResponse(
        content={
            "repository": result.repository,
            "analysis": result.analysis.model_dump(by_alias=True),
            "status": "completed",
            "demo": True,
            "aiPowered": result.ai_powered,
            "rateLimit": {
                "remaining": decision.remaining,
                "limit": decision.limit,
            },
        },
        headers=_rate_limit_headers(decision.limit, decision.remaining),
    )

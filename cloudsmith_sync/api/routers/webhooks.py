"""Webhook router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from cloudsmith_sync.api.deps import get_orchestrator
from cloudsmith_sync.pipeline import PipelineOrchestrator

router = APIRouter()


@router.post("/github")
async def github_webhook(
    request: Request,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> Response:
    body = await request.body()
    outcome = await orchestrator.handle(request.headers, body)
    if outcome.status_code == 204:
        return Response(status_code=204)
    return PlainTextResponse(outcome.body, status_code=outcome.status_code)

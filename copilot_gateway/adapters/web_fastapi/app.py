"""FastAPI adapter — thin translation layer, no business logic."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from copilot_gateway import create_gateway
from copilot_gateway.audit.logger import DEFAULT_PAGE_SIZE
from copilot_gateway.audit.models import AuditCategory, AuditLogPage
from copilot_gateway.engine.gateway import CopilotGateway
from copilot_gateway.engine.models import ChatReply, ChatRequest, Conversation, PlanSummary
from copilot_gateway.exceptions import ConversationNotFoundError, RateLimitExceededError
from copilot_gateway.tools.interface import ToolMetadata

logger = logging.getLogger(__name__)


class PlanDecision(BaseModel):
    user_id: str
    plan_id: str | None = None


class ConversationOwner(BaseModel):
    user_id: str


def create_app(gateway: CopilotGateway | None = None) -> FastAPI:
    gateway = gateway or create_gateway()
    app = FastAPI(title="Copilot Gateway API", version="0.1.0")

    @app.exception_handler(RateLimitExceededError)
    async def rate_limited(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        return JSONResponse(status_code=429, content={"detail": str(exc), "reason": exc.reason})

    @app.exception_handler(ConversationNotFoundError)
    async def not_found(request: Request, exc: ConversationNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.post("/chat")
    async def chat(body: ChatRequest, request: Request) -> ChatReply:
        if body.ip_address is None and request.client is not None:
            body = body.model_copy(update={"ip_address": request.client.host})
        if body.user_agent is None:
            body = body.model_copy(update={"user_agent": request.headers.get("user-agent")})
        return await gateway.handle_message(body)

    @app.post("/conversations/{conversation_id}/confirm")
    async def confirm(conversation_id: str, body: PlanDecision) -> ChatReply:
        return await gateway.confirm_plan(body.user_id, conversation_id, body.plan_id)

    @app.post("/conversations/{conversation_id}/reject")
    async def reject(conversation_id: str, body: PlanDecision) -> ChatReply:
        return await gateway.reject_plan(body.user_id, conversation_id, body.plan_id)

    @app.post("/conversations/{conversation_id}/close")
    async def close(conversation_id: str, body: ConversationOwner) -> Conversation:
        return await gateway.close_conversation(body.user_id, conversation_id)

    @app.get("/conversations/{conversation_id}")
    async def conversation(conversation_id: str, user_id: str) -> Conversation:
        return await gateway.get_conversation(user_id, conversation_id)

    @app.get("/plans")
    async def pending_plans(user_id: str) -> list[PlanSummary]:
        return await gateway.list_pending_plans(user_id)

    @app.get("/tools")
    async def tools(user_id: str) -> list[ToolMetadata]:
        return await gateway.list_available_tools(user_id)

    @app.get("/audit")
    async def audit(
        user_id: str,
        category: AuditCategory | None = None,
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ) -> AuditLogPage:
        return await gateway.get_audit_logs(user_id, category=category, limit=limit, offset=offset)

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app


# Module-level instance for ``uvicorn copilot_gateway.adapters.web_fastapi.app:app``
app = create_app()


def serve() -> None:
    """Entry-point for ``copilot-web`` console script."""
    import uvicorn

    uvicorn.run(
        "copilot_gateway.adapters.web_fastapi.app:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )

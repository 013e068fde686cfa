"""Plan / confirmation workflow.

A plan moves COLLECTING → AWAITING_CONFIRMATION → EXECUTING, or ends
REJECTED / EXPIRED. READ actions skip confirmation. Payment actions get a
preview first; the charge is then executed against the preview id only.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

from copilot_gateway.audit.logger import AuditLogger
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry
from copilot_gateway.engine.models import (
    Conversation,
    ConversationState,
    PlanAction,
    PlanSummary,
)
from copilot_gateway.engine.prompts import ACTION_LABELS
from copilot_gateway.exceptions import PlanExpiredError
from copilot_gateway.tools.interface import ActionType, ToolContext, ToolErrorCode, ToolResult
from copilot_gateway.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_CONFIRMATION = re.compile(
    r"^(?:sim|s|yes|confirmo|confirma|confirmar|sim,?\s*confirmo|ok|okay|pode(?:\s+\w+)?|"
    r"isso|exato|correto|fechado|manda(?:\s+ver)?|positivo|claro)[.!]*$",
    re.IGNORECASE,
)
_REJECTION = re.compile(
    r"^(?:n[aã]o|n|no|cancelar|cancela|cancele|deixa(?:\s+pra\s+l[aá])?|esquece|para|pare|"
    r"desisto|negativo)[.!]*$",
    re.IGNORECASE,
)
_MODIFICATION = re.compile(
    r"\b(?:alterar|altera|mudar|muda|editar|edita|corrigir|corrige|trocar|troca)\b",
    re.IGNORECASE,
)


def is_confirmation(message: str) -> bool:
    return bool(_CONFIRMATION.match(message.strip()))


def is_rejection(message: str) -> bool:
    return bool(_REJECTION.match(message.strip()))


def is_modification_request(message: str) -> bool:
    return bool(_MODIFICATION.search(message))


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class PlanWorkflow:
    """Builds, advances and executes pending plans; audits every transition."""

    def __init__(self, registry: ToolRegistry, audit: AuditLogger, plan_ttl: float = 300.0) -> None:
        self._registry = registry
        self._audit = audit
        self._plan_ttl = plan_ttl

    # -- lifecycle ----------------------------------------------------------

    def _state_for(self, plan: PlanSummary) -> ConversationState:
        if plan.missing_fields:
            return ConversationState.COLLECTING
        if all(a.action_type == ActionType.READ for a in plan.actions):
            return ConversationState.EXECUTING
        return ConversationState.AWAITING_CONFIRMATION

    def _action_type(self, tool_name: str) -> ActionType:
        tool = self._registry.get_tool(tool_name)
        # Unknown tools are never treated as reads.
        return tool.metadata.action_type if tool else ActionType.CREATE

    async def propose(
        self,
        conversation: Conversation,
        tool: str,
        params: dict[str, Any],
        missing: list[str],
        context: ToolContext,
    ) -> PlanSummary:
        params = {k: v for k, v in params.items() if not _blank(v)}
        action = PlanAction(
            tool=tool,
            params=params,
            missing_fields=[f for f in missing if f not in params],
            description=ACTION_LABELS.get(tool, tool),
            action_type=self._action_type(tool),
        )
        plan = PlanSummary(
            conversation_id=conversation.conversation_id,
            user_id=conversation.user_id,
            actions=[action],
            has_payment_actions=self._registry.requires_payment_preview(tool),
            expires_at=time.time() + self._plan_ttl,
        )
        plan.state = self._state_for(plan)
        logger.info("plan=%s tool=%s state=%s", plan.id, tool, plan.state.value)
        await self._log(plan, context, AuditCategory.PLAN_CREATED, "plan_created", True)
        return plan

    def merge_fields(self, plan: PlanSummary, collected: dict[str, Any]) -> PlanSummary:
        """Merge *collected* into the first incomplete action; drop satisfied fields.

        With nothing missing (a modification round) the first action is updated.
        """
        values = {k: v for k, v in collected.items() if not _blank(v)}
        action = next((a for a in plan.actions if a.missing_fields), plan.actions[0] if plan.actions else None)
        if action is not None and values:
            action.params.update(values)
            action.missing_fields = [f for f in action.missing_fields if f not in values]
        plan.state = self._state_for(plan)
        return plan

    def reopen(self, plan: PlanSummary) -> PlanSummary:
        """Send a plan back to COLLECTING so the user can change it.

        Previewed payment actions get their raw fields back from the snapshot;
        a fresh preview is taken once the plan is complete again.
        """
        for action in plan.actions:
            if action.payment_preview:
                snapshot = action.payment_preview
                action.params = {
                    k: snapshot[k]
                    for k in ("customerId", "billingType", "value", "dueDate", "description")
                    if snapshot.get(k) is not None
                }
                action.payment_preview = None
        plan.state = ConversationState.COLLECTING
        return plan

    def is_expired(self, plan: PlanSummary, now: float | None = None) -> bool:
        return (now if now is not None else time.time()) >= plan.expires_at

    async def expire(self, plan: PlanSummary, context: ToolContext) -> None:
        plan.state = ConversationState.EXPIRED
        logger.info("plan=%s expired", plan.id)
        await self._log(plan, context, AuditCategory.PLAN_REJECTED, "plan_expired", True)

    async def reject(self, plan: PlanSummary, context: ToolContext) -> None:
        plan.state = ConversationState.REJECTED
        logger.info("plan=%s rejected", plan.id)
        await self._log(plan, context, AuditCategory.PLAN_REJECTED, "plan_rejected", True)

    async def confirm(self, plan: PlanSummary, context: ToolContext) -> None:
        if self.is_expired(plan):
            raise PlanExpiredError(f"Plan {plan.id} expired before confirmation")
        if plan.missing_fields:
            raise ValueError(f"Plan {plan.id} still has missing fields: {plan.missing_fields}")
        plan.state = ConversationState.EXECUTING
        await self._log(plan, context, AuditCategory.PLAN_CONFIRMED, "plan_confirmed", True)

    # -- payment preview ----------------------------------------------------

    async def prepare_payment_preview(self, plan: PlanSummary, context: ToolContext) -> ToolResult | None:
        """Run the preview tool for every complete payment action.

        The action's parameters become ``{"previewId": ...}`` and the preview
        snapshot is embedded. Returns the first failing preview result, or
        ``None`` when all previews succeeded.
        """
        for action in plan.actions:
            tool = self._registry.get_tool(action.tool)
            if tool is None or not tool.metadata.requires_payment_preview:
                continue
            if action.missing_fields or "previewId" in action.params:
                continue
            preview_tool = tool.metadata.preview_tool
            if not preview_tool:
                return ToolResult.fail(
                    ToolErrorCode.PREVIEW_REQUIRED, f"No preview tool declared for '{action.tool}'",
                )
            result = await self._registry.execute_tool(
                preview_tool, dict(action.params), context.model_copy(update={"plan_id": plan.id}),
            )
            if not result.success:
                return result
            data = result.data or {}
            if not data.get("valid", True):
                errors = "; ".join(data.get("errors") or []) or "invalid preview"
                return ToolResult.fail(ToolErrorCode.VALIDATION_ERROR, errors)
            action.params = {"previewId": data["previewId"]}
            action.payment_preview = {
                **(data.get("preview") or {}),
                "previewId": data["previewId"],
                "expiresAt": data.get("expiresAt"),
                "warnings": data.get("warnings") or [],
            }
            plan.has_payment_actions = True
        return None

    # -- execution ----------------------------------------------------------

    async def execute(
        self, plan: PlanSummary, context: ToolContext,
    ) -> list[tuple[PlanAction, ToolResult]]:
        """Dispatch each action through the registry; stops at the first failure."""
        plan.state = ConversationState.EXECUTING
        outcomes: list[tuple[PlanAction, ToolResult]] = []
        for action in plan.actions:
            action_context = context.model_copy(update={
                "plan_id": plan.id,
                "idempotency_key": f"{plan.id}_{action.id}",
            })
            result = await self._registry.execute_tool(action.tool, dict(action.params), action_context)
            outcomes.append((action, result))
            if not result.success:
                break
        success = bool(outcomes) and all(r.success for _, r in outcomes)
        await self._log(
            plan, context, AuditCategory.PLAN_EXECUTED, "plan_executed", success,
            output={"results": [
                {"tool": a.tool, "success": r.success, "error": r.error} for a, r in outcomes
            ]},
        )
        return outcomes

    async def _log(
        self,
        plan: PlanSummary,
        context: ToolContext,
        category: AuditCategory,
        action: str,
        success: bool,
        output: dict[str, Any] | None = None,
    ) -> None:
        first = plan.actions[0] if plan.actions else None
        await self._audit.log(AuditLogEntry(
            user_id=plan.user_id,
            conversation_id=plan.conversation_id,
            plan_id=plan.id,
            category=category,
            tool=first.tool if first else None,
            action=action,
            success=success,
            input_payload=dict(first.params) if first else None,
            output_payload=output,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        ))

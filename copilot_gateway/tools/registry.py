"""Tool registry: permission gate, validation, execution with timeout, and audit."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from copilot_gateway.audit.logger import AuditLogger
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry
from copilot_gateway.tools.idempotency import IdempotencyStore
from copilot_gateway.tools.interface import (
    ActionType,
    Tool,
    ToolContext,
    ToolDefinition,
    ToolErrorCode,
    ToolMetadata,
    ToolResult,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Central tool store.

    Registering a name twice replaces the earlier tool (last write wins);
    no duplicate error is raised.
    """

    def __init__(self, audit: AuditLogger, idempotency: IdempotencyStore | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._audit = audit
        self._idempotency = idempotency

    # -- registration -------------------------------------------------------

    def register_tool(self, tool: Tool) -> None:
        name = tool.metadata.name
        if name in self._tools:
            logger.info("Replacing tool %s", name)
        self._tools[name] = tool
        logger.info("Registered tool %s (%s)", name, tool.metadata.action_type.value)

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_all_tool_metadata(self) -> list[ToolMetadata]:
        return [t.metadata for t in self._tools.values()]

    async def get_available_tools(self, context: ToolContext) -> list[ToolMetadata]:
        return [
            t.metadata for t in self._tools.values()
            if await t.check_permission(context)
        ]

    # -- classification -----------------------------------------------------

    def requires_confirmation(self, name: str) -> bool:
        """Every non-READ tool needs confirmation; so does an unknown name."""
        tool = self._tools.get(name)
        if tool is None:
            return True
        return tool.metadata.action_type != ActionType.READ

    def requires_payment_preview(self, name: str) -> bool:
        tool = self._tools.get(name)
        return bool(tool and tool.metadata.requires_payment_preview)

    # -- provider-agnostic tool schemas -------------------------------------

    async def tool_definitions(self, context: ToolContext) -> list[ToolDefinition]:
        return [
            ToolDefinition(name=m.name, description=m.description, parameters=m.parameters_schema)
            for m in await self.get_available_tools(context)
        ]

    # -- execution ----------------------------------------------------------

    async def execute_tool(
        self,
        name: str,
        params: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        t0 = time.time()
        tool = self._tools.get(name)

        if tool is None:
            await self._log(context, AuditCategory.SECURITY_BLOCK, name, "tool_not_found",
                            False, params, error=f"Tool '{name}' not found")
            return ToolResult.fail(ToolErrorCode.TOOL_NOT_FOUND, f"Tool '{name}' not found")

        if not await tool.check_permission(context):
            message = f"Permission denied for tool '{name}'"
            await self._log(context, AuditCategory.SECURITY_BLOCK, name, "permission_denied",
                            False, params, error=message)
            return ToolResult.fail(ToolErrorCode.PERMISSION_DENIED, message)

        validation = await tool.validate(params)
        if validation is not True:
            reason = validation if isinstance(validation, str) else "Invalid parameters"
            await self._log(context, AuditCategory.TOOL_CALL, name, "validation_failed",
                            False, params, error=reason)
            return ToolResult.fail(ToolErrorCode.VALIDATION_ERROR, reason)

        use_idempotency = (
            self._idempotency is not None
            and context.idempotency_key is not None
            and tool.metadata.action_type != ActionType.READ
        )
        if use_idempotency:
            cached = await self._idempotency.check(
                context.user_id, name, context.idempotency_key, params,
            )
            if cached is not None:
                await self._log(context, AuditCategory.TOOL_CALL, name, "idempotent_replay",
                                cached.success, params, error=cached.error)
                return cached

        try:
            result = await asyncio.wait_for(
                tool.execute(params, context),
                timeout=tool.metadata.timeout,
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("tool=%s error=%s", name, message)
            await self._log(context, AuditCategory.ACTION_FAILED, name, "execute_error",
                            False, params, error=message, t0=t0)
            return ToolResult.fail(ToolErrorCode.INTERNAL_ERROR, message)

        latency = time.time() - t0
        logger.info("tool=%s latency=%.3fs success=%s", name, latency, result.success)
        if result.success:
            await self._log(context, AuditCategory.ACTION_SUCCESS, name, "execute",
                            True, params, output=result.data, t0=t0)
            if use_idempotency:
                await self._idempotency.record(
                    context.user_id, name, context.idempotency_key, params, result,
                )
        else:
            await self._log(context, AuditCategory.ACTION_FAILED, name, "tool_error",
                            False, params, error=result.error, t0=t0)
        return result

    async def _log(
        self,
        context: ToolContext,
        category: AuditCategory,
        tool: str,
        action: str,
        success: bool,
        params: dict[str, Any],
        *,
        output: Any = None,
        error: str | None = None,
        t0: float | None = None,
    ) -> None:
        await self._audit.log(AuditLogEntry(
            user_id=context.user_id,
            conversation_id=context.conversation_id or None,
            plan_id=context.plan_id,
            category=category,
            tool=tool,
            action=action,
            success=success,
            input_payload=dict(params),
            output_payload=output if isinstance(output, dict) else (
                {"result": output} if output is not None else None
            ),
            error_message=error,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            duration_ms=round((time.time() - t0) * 1000, 2) if t0 is not None else None,
        ))

"""CopilotGateway — one chat turn in, one structured reply out."""

from __future__ import annotations

import logging
import re
import time
from typing import Any

from copilot_gateway.audit.logger import DEFAULT_PAGE_SIZE, AuditLogger
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry, AuditLogPage
from copilot_gateway.config import GatewaySettings
from copilot_gateway.engine import parser, prompts
from copilot_gateway.engine.llm import LLMProvider
from copilot_gateway.engine.models import (
    AskUserResponse,
    CallToolResponse,
    ChatReply,
    ChatRequest,
    Conversation,
    ConversationState,
    ConversationStatus,
    ExecutedTool,
    InformativeResponse,
    LLMMessage,
    LLMRequest,
    LLMResult,
    PlanResponse,
    PlanSummary,
    Role,
    TokenUsage,
)
from copilot_gateway.engine.plans import (
    PlanWorkflow,
    is_confirmation,
    is_modification_request,
    is_rejection,
)
from copilot_gateway.engine.session import ConversationStore
from copilot_gateway.exceptions import (
    ConversationNotFoundError,
    PlanExpiredError,
    RateLimitExceededError,
)
from copilot_gateway.knowledge.interface import KnowledgeBase
from copilot_gateway.tools.interface import ActionType, ToolContext, ToolMetadata
from copilot_gateway.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_SUPPORT_QUESTION = re.compile(
    r"^(?:como|onde|qual|quais|quando|porque|por que|o que|posso|consigo|d[uú]vida)\b|\?\s*$",
    re.IGNORECASE,
)

_IDLE_STATE_LABEL = "IDLE - Nova requisição"


def is_support_question(message: str) -> bool:
    return bool(_SUPPORT_QUESTION.search(message.strip()))


class CopilotGateway:
    """Public API: ``reply = await gateway.handle_message(ChatRequest(...))``"""

    REQUEST_WINDOW_SECONDS: float = 60.0
    FAILURE_WINDOW_SECONDS: float = 3600.0
    EXTRACTION_TEMPERATURE: float = 0.3
    EXTRACTION_MAX_TOKENS: int = 1024

    def __init__(
        self,
        conversations: ConversationStore,
        registry: ToolRegistry,
        workflow: PlanWorkflow,
        llm: LLMProvider,
        audit: AuditLogger,
        settings: GatewaySettings,
        knowledge: KnowledgeBase | None = None,
    ) -> None:
        self._conversations = conversations
        self._tools = registry
        self._workflow = workflow
        self._llm = llm
        self._audit = audit
        self._settings = settings
        self._knowledge = knowledge

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle_message(self, request: ChatRequest) -> ChatReply:
        context = ToolContext(
            user_id=request.user_id,
            ip_address=request.ip_address,
            user_agent=request.user_agent,
        )

        # 1. Rate limit ------------------------------------------------
        await self._check_rate_limit(context)

        # 2. Conversation ----------------------------------------------
        conversation = await self._load_or_create(request.user_id, request.conversation_id)
        context = context.model_copy(update={"conversation_id": conversation.conversation_id})
        history = self._history(conversation)
        conversation.add_message(Role.USER, request.message)

        async def turn() -> ChatReply:
            # 3. Plan expiry sweep -------------------------------------
            expired = await self._sweep_expired(conversation, context)
            if expired is not None:
                return expired
            # 4. Dispatch on state -------------------------------------
            return await self._dispatch(conversation, request.message, history, context)

        return await self._run_turn(conversation, context, turn)

    async def confirm_plan(
        self, user_id: str, conversation_id: str, plan_id: str | None = None,
    ) -> ChatReply:
        conversation = await self._load(user_id, conversation_id)
        context = ToolContext(user_id=user_id, conversation_id=conversation_id)

        async def turn() -> ChatReply:
            plan = conversation.pending_plan
            if plan is None or (plan_id is not None and plan.id != plan_id):
                return self._reply(conversation, prompts.NO_PENDING_OPERATION)
            if plan.state == ConversationState.COLLECTING:
                return self._reply(
                    conversation, prompts.format_still_missing(plan.missing_fields),
                    state=ConversationState.COLLECTING, plan=plan, missing=plan.missing_fields,
                )
            return await self._execute_confirmed(conversation, plan, context)

        return await self._run_turn(conversation, context, turn)

    async def reject_plan(
        self, user_id: str, conversation_id: str, plan_id: str | None = None,
    ) -> ChatReply:
        conversation = await self._load(user_id, conversation_id)
        context = ToolContext(user_id=user_id, conversation_id=conversation_id)

        async def turn() -> ChatReply:
            plan = conversation.pending_plan
            if plan is None or (plan_id is not None and plan.id != plan_id):
                return self._reply(conversation, prompts.NO_PENDING_OPERATION)
            return await self._cancel(conversation, plan, context)

        return await self._run_turn(conversation, context, turn)

    async def close_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        """Mark the conversation completed. A pending plan is rejected first."""
        conversation = await self._load(user_id, conversation_id)
        plan = conversation.pending_plan
        if plan is not None:
            context = ToolContext(user_id=user_id, conversation_id=conversation_id)
            await self._workflow.reject(plan, context)
            self._clear_plan(conversation)
        conversation.status = ConversationStatus.COMPLETED
        await self._conversations.save(conversation)
        logger.info("conversation=%s closed user=%s", conversation_id, user_id)
        return conversation

    async def get_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        return await self._load(user_id, conversation_id)

    async def list_conversations(self, user_id: str, limit: int = 20) -> list[Conversation]:
        return await self._conversations.list_for_user(user_id, limit=limit)

    async def list_pending_plans(self, user_id: str) -> list[PlanSummary]:
        """Unexpired plans awaiting confirmation across the user's conversations, newest first."""
        now = time.time()
        plans = [
            c.pending_plan
            for c in await self._conversations.list_for_user(user_id, limit=None)
            if c.pending_plan is not None
            and c.pending_plan.state == ConversationState.AWAITING_CONFIRMATION
            and not self._workflow.is_expired(c.pending_plan, now)
        ]
        plans.sort(key=lambda p: p.created_at, reverse=True)
        return plans

    async def list_available_tools(self, user_id: str) -> list[ToolMetadata]:
        return await self._tools.get_available_tools(ToolContext(user_id=user_id))

    async def get_audit_logs(
        self,
        user_id: str,
        *,
        category: AuditCategory | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> AuditLogPage:
        return await self._audit.get_logs_for_user(
            user_id, category=category, limit=limit, offset=offset,
        )

    # ------------------------------------------------------------------
    # Turn plumbing
    # ------------------------------------------------------------------

    async def _run_turn(self, conversation: Conversation, context: ToolContext, turn: Any) -> ChatReply:
        try:
            reply = await turn()
        except Exception as exc:
            logger.exception("turn failed conversation=%s", conversation.conversation_id)
            await self._audit.log(AuditLogEntry(
                user_id=context.user_id,
                conversation_id=conversation.conversation_id,
                plan_id=conversation.pending_plan.id if conversation.pending_plan else None,
                category=AuditCategory.ACTION_FAILED,
                action="orchestration_error",
                success=False,
                error_message=str(exc),
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            ))
            self._clear_plan(conversation)
            await self._conversations.save(conversation)
            raise
        conversation.add_message(Role.ASSISTANT, reply.message)
        await self._conversations.save(conversation)
        return reply

    async def _check_rate_limit(self, context: ToolContext) -> None:
        now = time.time()
        recent = await self._conversations.count_user_messages_since(
            context.user_id, now - self.REQUEST_WINDOW_SECONDS,
        )
        reason = None
        if recent >= self._settings.max_requests_per_minute:
            reason = "requests"
        else:
            failed = await self._audit.count_failed_operations(
                context.user_id, self.FAILURE_WINDOW_SECONDS,
            )
            if failed >= self._settings.max_failed_operations_per_hour:
                reason = "failures"
        if reason is None:
            return

        logger.warning("rate limit hit user=%s reason=%s", context.user_id, reason)
        await self._audit.log(AuditLogEntry(
            user_id=context.user_id,
            category=AuditCategory.RATE_LIMIT,
            action=f"too_many_{reason}",
            success=False,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        ))
        raise RateLimitExceededError(
            "Too many requests" if reason == "requests" else "Too many failed operations",
            reason=reason,
        )

    async def _load(self, user_id: str, conversation_id: str) -> Conversation:
        conversation = await self._conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def _load_or_create(self, user_id: str, conversation_id: str | None) -> Conversation:
        if conversation_id:
            conversation = await self._load(user_id, conversation_id)
            if conversation.status != ConversationStatus.ACTIVE:
                # Expired and closed conversations resume from a clean state.
                conversation.status = ConversationStatus.ACTIVE
                self._clear_plan(conversation)
            return conversation
        conversation = Conversation(user_id=user_id)
        logger.info("new conversation=%s user=%s", conversation.conversation_id, user_id)
        return conversation

    def _history(self, conversation: Conversation) -> list[LLMMessage]:
        limit = self._settings.history_limit
        recent = conversation.messages[-limit:] if limit > 0 else []
        return [LLMMessage(role=m.role, content=m.content) for m in recent]

    async def _sweep_expired(self, conversation: Conversation, context: ToolContext) -> ChatReply | None:
        plan = conversation.pending_plan
        if plan is None or not self._workflow.is_expired(plan):
            return None
        await self._workflow.expire(plan, context)
        self._clear_plan(conversation)
        return self._reply(conversation, prompts.PLAN_EXPIRED, state=ConversationState.EXPIRED)

    @staticmethod
    def _clear_plan(conversation: Conversation) -> None:
        conversation.pending_plan = None
        conversation.state = ConversationState.IDLE

    @staticmethod
    def _reply(
        conversation: Conversation,
        message: str,
        *,
        state: ConversationState = ConversationState.IDLE,
        plan: PlanSummary | None = None,
        missing: list[str] | None = None,
        options: list[str] | None = None,
        data: Any = None,
        executed: list[ExecutedTool] | None = None,
        usage: TokenUsage | None = None,
    ) -> ChatReply:
        return ChatReply(
            conversation_id=conversation.conversation_id,
            message=message,
            state=state,
            plan=plan,
            missing_fields=missing or [],
            options=options or [],
            data=data,
            executed_tools=executed or [],
            token_usage=usage,
        )

    # ------------------------------------------------------------------
    # State dispatch
    # ------------------------------------------------------------------

    async def _dispatch(
        self,
        conversation: Conversation,
        message: str,
        history: list[LLMMessage],
        context: ToolContext,
    ) -> ChatReply:
        plan = conversation.pending_plan
        if plan is not None and plan.state == ConversationState.COLLECTING:
            return await self._handle_collecting(conversation, plan, message, context)
        if plan is not None and plan.state == ConversationState.AWAITING_CONFIRMATION:
            return await self._handle_awaiting(conversation, plan, message, context)
        if plan is not None:
            # Stale plan in a terminal state; start over.
            self._clear_plan(conversation)
        return await self._handle_idle(conversation, message, history, context)

    async def _handle_idle(
        self,
        conversation: Conversation,
        message: str,
        history: list[LLMMessage],
        context: ToolContext,
    ) -> ChatReply:
        if is_confirmation(message):
            return self._reply(conversation, prompts.NO_PENDING_OPERATION)

        tools = await self._tools.get_available_tools(context)
        system = prompts.build_system_prompt(tools, _IDLE_STATE_LABEL)
        if self._knowledge is not None and is_support_question(message):
            chunks = await self._knowledge.search(message, k=3, min_score=0.5)
            if chunks:
                logger.info("kb context chunks=%d", len(chunks))
                system += prompts.format_kb_context(chunks)

        result = await self._llm.complete(LLMRequest(
            messages=[
                LLMMessage(role=Role.SYSTEM, content=system),
                *history,
                LLMMessage(role=Role.USER, content=message),
            ],
            tools=await self._tools.tool_definitions(context) or None,
            temperature=self._settings.llm_temperature,
            max_tokens=self._settings.llm_max_tokens,
        ))

        if result.tool_calls:
            call = result.tool_calls[0]
            response: Any = CallToolResponse(tool=call.name, params=call.arguments)
        else:
            parsed = parser.parse(result.content)
            if not parsed.success or parsed.response is None:
                logger.warning("unparseable LLM response: %s", parsed.error)
                return self._reply(
                    conversation, result.content or prompts.NOT_UNDERSTOOD, usage=result.usage,
                )
            response = parsed.response
        return await self._handle_response(conversation, response, result, context)

    async def _handle_response(
        self,
        conversation: Conversation,
        response: Any,
        result: LLMResult,
        context: ToolContext,
    ) -> ChatReply:
        usage = result.usage
        if isinstance(response, PlanResponse):
            plan = await self._workflow.propose(
                conversation, response.action, response.collected_fields,
                response.missing_fields, context,
            )
            return await self._present_plan(conversation, plan, context, usage, response.message)

        if isinstance(response, CallToolResponse):
            if self._tools.requires_confirmation(response.tool):
                plan = await self._workflow.propose(
                    conversation, response.tool, response.params, [], context,
                )
                return await self._present_plan(conversation, plan, context, usage)
            return await self._run_read(conversation, response.tool, response.params, context, usage)

        if isinstance(response, AskUserResponse):
            return self._reply(
                conversation, response.question, options=response.options, usage=usage,
            )

        if isinstance(response, InformativeResponse):
            return self._reply(conversation, response.message, data=response.data, usage=usage)
        return self._reply(conversation, prompts.NOT_UNDERSTOOD, usage=usage)

    async def _handle_collecting(
        self,
        conversation: Conversation,
        plan: PlanSummary,
        message: str,
        context: ToolContext,
    ) -> ChatReply:
        if is_rejection(message):
            return await self._cancel(conversation, plan, context)

        action = next((a for a in plan.actions if a.missing_fields), plan.actions[0])
        result = await self._llm.complete(LLMRequest(
            messages=[LLMMessage(
                role=Role.USER,
                content=prompts.format_extraction_prompt(
                    action.tool, action.params, action.missing_fields, message,
                ),
            )],
            temperature=self.EXTRACTION_TEMPERATURE,
            max_tokens=self.EXTRACTION_MAX_TOKENS,
        ))
        parsed = parser.parse(result.content)
        if not parsed.success or not isinstance(parsed.response, PlanResponse):
            return self._reply(
                conversation, prompts.format_please_provide(plan.missing_fields),
                state=ConversationState.COLLECTING, plan=plan,
                missing=plan.missing_fields, usage=result.usage,
            )

        extracted = parsed.response
        self._workflow.merge_fields(plan, extracted.collected_fields)
        # A field the extraction still reports as missing stays missing.
        for field in extracted.missing_fields:
            if field not in action.missing_fields and field not in extracted.collected_fields:
                action.missing_fields.append(field)
        if action.missing_fields:
            plan.state = ConversationState.COLLECTING
            return self._reply(
                conversation, prompts.format_still_missing(plan.missing_fields),
                state=ConversationState.COLLECTING, plan=plan,
                missing=plan.missing_fields, usage=result.usage,
            )
        return await self._present_plan(conversation, plan, context, result.usage)

    async def _handle_awaiting(
        self,
        conversation: Conversation,
        plan: PlanSummary,
        message: str,
        context: ToolContext,
    ) -> ChatReply:
        if is_rejection(message):
            return await self._cancel(conversation, plan, context)

        if is_modification_request(message):
            self._workflow.reopen(plan)
            conversation.state = ConversationState.COLLECTING
            return self._reply(
                conversation, prompts.ASK_MODIFICATION,
                state=ConversationState.COLLECTING, plan=plan,
            )

        if is_confirmation(message):
            return await self._execute_confirmed(conversation, plan, context)

        return self._reply(
            conversation, prompts.CONFIRM_OR_CANCEL,
            state=ConversationState.AWAITING_CONFIRMATION, plan=plan,
        )

    # ------------------------------------------------------------------
    # Plan presentation / execution
    # ------------------------------------------------------------------

    async def _present_plan(
        self,
        conversation: Conversation,
        plan: PlanSummary,
        context: ToolContext,
        usage: TokenUsage | None,
        message: str | None = None,
    ) -> ChatReply:
        conversation.pending_plan = plan

        if plan.state == ConversationState.COLLECTING:
            conversation.state = ConversationState.COLLECTING
            text = message or prompts.format_missing_fields(plan.actions[0].tool, plan.missing_fields)
            return self._reply(
                conversation, text, state=ConversationState.COLLECTING,
                plan=plan, missing=plan.missing_fields, usage=usage,
            )

        if plan.state == ConversationState.EXECUTING:
            return await self._execute(conversation, plan, context, usage)

        failure = await self._workflow.prepare_payment_preview(plan, context)
        if failure is not None:
            logger.info("preview failed plan=%s error=%s", plan.id, failure.error)
            self._clear_plan(conversation)
            return self._reply(
                conversation, prompts.format_execution_error(failure.error),
                executed=[ExecutedTool(tool=plan.actions[0].tool, success=False, error=failure.error)],
                usage=usage,
            )

        conversation.state = ConversationState.AWAITING_CONFIRMATION
        action = plan.actions[0]
        summary = prompts.format_plan_summary(action.tool, action.params)
        if action.payment_preview:
            summary = prompts.format_plan_summary(action.tool, {}) + prompts.format_preview(
                action.payment_preview,
            )
        return self._reply(
            conversation,
            prompts.format_confirmation_request(summary, payment=plan.has_payment_actions),
            state=ConversationState.AWAITING_CONFIRMATION, plan=plan, usage=usage,
        )

    async def _execute_confirmed(
        self, conversation: Conversation, plan: PlanSummary, context: ToolContext,
    ) -> ChatReply:
        try:
            await self._workflow.confirm(plan, context)
        except PlanExpiredError:
            await self._workflow.expire(plan, context)
            self._clear_plan(conversation)
            return self._reply(conversation, prompts.PLAN_EXPIRED, state=ConversationState.EXPIRED)
        return await self._execute(conversation, plan, context)

    async def _execute(
        self,
        conversation: Conversation,
        plan: PlanSummary,
        context: ToolContext,
        usage: TokenUsage | None = None,
    ) -> ChatReply:
        outcomes = await self._workflow.execute(plan, context)
        self._clear_plan(conversation)

        executed = [
            ExecutedTool(tool=a.tool, success=r.success, data=r.data, error=r.error)
            for a, r in outcomes
        ]
        action, result = outcomes[-1]
        if not result.success:
            return self._reply(
                conversation, prompts.format_execution_error(result.error),
                state=ConversationState.EXECUTING, executed=executed, usage=usage,
            )
        text = (
            prompts.format_read_result(result.data)
            if all(a.action_type == ActionType.READ for a, _ in outcomes)
            else prompts.format_success(action.tool)
        )
        return self._reply(
            conversation, text, state=ConversationState.EXECUTING,
            data=result.data, executed=executed, usage=usage,
        )

    async def _run_read(
        self,
        conversation: Conversation,
        tool: str,
        params: dict[str, Any],
        context: ToolContext,
        usage: TokenUsage | None,
    ) -> ChatReply:
        result = await self._tools.execute_tool(tool, params, context)
        executed = [ExecutedTool(tool=tool, success=result.success, data=result.data, error=result.error)]
        if not result.success:
            return self._reply(
                conversation, prompts.format_read_error(result.error),
                executed=executed, usage=usage,
            )
        return self._reply(
            conversation, prompts.format_read_result(result.data),
            data=result.data, executed=executed, usage=usage,
        )

    async def _cancel(
        self, conversation: Conversation, plan: PlanSummary, context: ToolContext,
    ) -> ChatReply:
        await self._workflow.reject(plan, context)
        self._clear_plan(conversation)
        return self._reply(conversation, prompts.OPERATION_CANCELLED, state=ConversationState.REJECTED)

"""Built-in business tools: customers, quotes, work orders, billing, kb."""

from __future__ import annotations

import logging
import time
from abc import abstractmethod
from datetime import date, timedelta
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from copilot_gateway.knowledge.interface import KnowledgeBase
from copilot_gateway.tools.business import (
    BillingType,
    ChargeRecord,
    CustomerRecord,
    InMemoryBusinessStore,
    LineItem,
    QuoteRecord,
    WorkOrderRecord,
)
from copilot_gateway.tools.interface import (
    ActionType,
    AffectedEntity,
    Tool,
    ToolContext,
    ToolErrorCode,
    ToolMetadata,
    ToolResult,
)
from copilot_gateway.tools.permissions import Permission, PermissionService

logger = logging.getLogger(__name__)


class _Params(BaseModel):
    """Tool parameters arrive camelCase from the LLM; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def format_validation_error(exc: ValidationError) -> str:
    parts = [
        f"{'.'.join(str(p) for p in e['loc']) or 'params'}: {e['msg']}"
        for e in exc.errors()
    ]
    return "Invalid parameters: " + "; ".join(parts)


class BusinessTool(Tool):
    """Base for the built-ins: pydantic input validation + tier permission check."""

    input_model: type[BaseModel]

    def __init__(self, store: InMemoryBusinessStore, permissions: PermissionService) -> None:
        self._store = store
        self._permissions = permissions

    async def check_permission(self, context: ToolContext) -> bool:
        return await self._permissions.has_permissions(
            context.user_id, self.metadata.required_permissions,
        )

    async def validate(self, params: dict[str, Any]) -> bool | str:
        try:
            self.input_model.model_validate(params)
        except ValidationError as exc:
            return format_validation_error(exc)
        return True

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        return await self.run(self.input_model.model_validate(params), context)

    @abstractmethod
    async def run(self, args: Any, context: ToolContext) -> ToolResult: ...

    def _customer(self, context: ToolContext, args: Any) -> CustomerRecord | None:
        return self._store.resolve_customer(
            context.user_id,
            customer_id=getattr(args, "customer_id", None),
            name=getattr(args, "customer_name", None),
        )


def _items_from_text(value: Any) -> Any:
    # A free-text answer ("Manutenção de ar condicionado") becomes one item.
    if isinstance(value, str):
        return [{"name": part.strip()} for part in value.split(",") if part.strip()]
    return value


class _CustomerRef(_Params):
    customer_id: str | None = None
    customer_name: str | None = None

    @model_validator(mode="after")
    def _require_customer(self) -> _CustomerRef:
        if not self.customer_id and not self.customer_name:
            raise ValueError("customerId or customerName is required")
        return self


# ---------------------------------------------------------------------------
# Summaries shared by the create, get and search tools
# ---------------------------------------------------------------------------

class _PageInput(_Params):
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


class _GetInput(_Params):
    id: str = Field(min_length=1)


def _page(items: list[dict[str, Any]], total: int, args: _PageInput, **extra: Any) -> dict[str, Any]:
    return {
        "items": items,
        "total": total,
        "hasMore": args.offset + len(items) < total,
        "limit": args.limit,
        "offset": args.offset,
        **extra,
    }


def _customer_name(store: InMemoryBusinessStore, customer_id: str) -> str | None:
    customer = store.customers.get(customer_id)
    return customer.name if customer else None


def _items_out(items: list[LineItem]) -> list[dict[str, Any]]:
    return [
        {
            "name": i.name,
            "description": i.description,
            "quantity": i.quantity,
            "unitPrice": i.unit_price,
            "type": i.type,
            "total": i.total,
        }
        for i in items
    ]


def _quote_summary(store: InMemoryBusinessStore, quote: QuoteRecord) -> dict[str, Any]:
    return {
        "id": quote.id,
        "title": f"Orçamento #{quote.id[:8]}",
        "status": quote.status,
        "totalValue": quote.total_value,
        "customerName": _customer_name(store, quote.customer_id),
        "validUntil": quote.valid_until.isoformat() if quote.valid_until else None,
    }


def _work_order_summary(store: InMemoryBusinessStore, order: WorkOrderRecord) -> dict[str, Any]:
    return {
        "id": order.id,
        "title": order.title,
        "status": order.status,
        "totalValue": order.total_value,
        "customerName": _customer_name(store, order.customer_id),
        "scheduledDate": order.scheduled_date.isoformat() if order.scheduled_date else None,
    }


def _charge_summary(store: InMemoryBusinessStore, charge: ChargeRecord) -> dict[str, Any]:
    return {
        "id": charge.id,
        "status": charge.status,
        "billingType": charge.billing_type,
        "value": charge.value,
        "dueDate": charge.due_date.isoformat(),
        "customerName": _customer_name(store, charge.customer_id),
        "isOverdue": charge.is_overdue,
    }


# ---------------------------------------------------------------------------
# customers.search / customers.get
# ---------------------------------------------------------------------------

class CustomersSearchInput(_PageInput):
    query: str = ""


class CustomerOut(_Params):
    id: str
    name: str
    phone: str | None = None
    email: str | None = None
    city: str | None = None


class CustomerDetailOut(CustomerOut):
    tax_id: str | None = None
    address: str | None = None
    notes: str | None = None


class CustomersSearchTool(BusinessTool):
    input_model = CustomersSearchInput
    metadata = ToolMetadata(
        name="customers.search",
        description="Busca clientes por nome, e-mail ou telefone.",
        action_type=ActionType.READ,
        parameters_schema=CustomersSearchInput.model_json_schema(),
        required_permissions=(Permission.CUSTOMERS_READ.value,),
    )

    async def run(self, args: CustomersSearchInput, context: ToolContext) -> ToolResult:
        hits, total = self._store.search_customers(
            context.user_id, args.query, args.limit, args.offset,
        )
        items = [CustomerOut.model_validate(c.model_dump()).model_dump(by_alias=True) for c in hits]
        return ToolResult.ok(
            _page(items, total, args),
            [AffectedEntity(type="customer", id=c.id, action="read") for c in hits],
        )


class CustomersGetInput(_GetInput):
    include_quotes: bool = False
    include_work_orders: bool = False
    include_payments: bool = False


class CustomersGetTool(BusinessTool):
    """One customer, optionally with their ten most recent quotes, work orders and charges.

    Charges are only attached when the caller may also read billing.
    """

    input_model = CustomersGetInput
    metadata = ToolMetadata(
        name="customers.get",
        description="Mostra os dados de um cliente pelo id.",
        action_type=ActionType.READ,
        parameters_schema=CustomersGetInput.model_json_schema(),
        required_permissions=(Permission.CUSTOMERS_READ.value,),
    )

    async def run(self, args: CustomersGetInput, context: ToolContext) -> ToolResult:
        customer = self._store.get_customer(context.user_id, args.id)
        if customer is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Customer not found")

        data = CustomerDetailOut.model_validate(customer.model_dump()).model_dump(by_alias=True)
        if args.include_quotes:
            quotes, _ = self._store.search_quotes(context.user_id, customer_id=customer.id, limit=10)
            data["quotes"] = [_quote_summary(self._store, q) for q in quotes]
        if args.include_work_orders:
            orders, _ = self._store.search_work_orders(context.user_id, customer_id=customer.id, limit=10)
            data["workOrders"] = [_work_order_summary(self._store, o) for o in orders]
        if args.include_payments and await self._permissions.has_permissions(
            context.user_id, (Permission.BILLING_READ.value,),
        ):
            charges, _, _ = self._store.search_charges(context.user_id, customer_id=customer.id, limit=10)
            data["payments"] = [_charge_summary(self._store, c) for c in charges]
        return ToolResult.ok(data, [AffectedEntity(type="customer", id=customer.id, action="read")])


# ---------------------------------------------------------------------------
# customers.create
# ---------------------------------------------------------------------------

class CustomersCreateInput(_Params):
    name: str = Field(min_length=2, max_length=200)
    phone: str | None = None
    email: str | None = None
    tax_id: str | None = None
    address: str | None = None
    city: str | None = None
    notes: str | None = None


class CustomersCreateTool(BusinessTool):
    input_model = CustomersCreateInput
    metadata = ToolMetadata(
        name="customers.create",
        description="Cadastra um novo cliente.",
        action_type=ActionType.CREATE,
        parameters_schema=CustomersCreateInput.model_json_schema(),
        required_permissions=(Permission.CUSTOMERS_WRITE.value,),
    )

    async def run(self, args: CustomersCreateInput, context: ToolContext) -> ToolResult:
        fields = args.model_dump(exclude={"name"}, exclude_none=True)
        record = self._store.add_customer(context.user_id, args.name, **fields)
        logger.info("customer created id=%s user=%s", record.id, context.user_id)
        return ToolResult.ok(
            CustomerOut.model_validate(record.model_dump()).model_dump(by_alias=True),
            [AffectedEntity(type="customer", id=record.id, action="created")],
        )


# ---------------------------------------------------------------------------
# quotes / workOrders
# ---------------------------------------------------------------------------

class LineItemInput(_Params):
    name: str = Field(min_length=1)
    description: str | None = None
    quantity: float = Field(1, gt=0)
    unit_price: float = Field(0, ge=0)
    type: Literal["SERVICE", "PRODUCT"] = "SERVICE"


LineItems = Annotated[list[LineItemInput], BeforeValidator(_items_from_text)]


class QuotesCreateInput(_CustomerRef):
    items: LineItems = Field(min_length=1)
    description: str | None = None
    valid_until: date | None = None


class QuotesCreateTool(BusinessTool):
    input_model = QuotesCreateInput
    metadata = ToolMetadata(
        name="quotes.create",
        description="Cria um orçamento para um cliente existente.",
        action_type=ActionType.CREATE,
        parameters_schema=QuotesCreateInput.model_json_schema(),
        required_permissions=(Permission.QUOTES_WRITE.value,),
    )

    async def run(self, args: QuotesCreateInput, context: ToolContext) -> ToolResult:
        customer = self._customer(context, args)
        if customer is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Customer not found")
        quote = self._store.add_quote(QuoteRecord(
            user_id=context.user_id,
            customer_id=customer.id,
            items=[LineItem(**i.model_dump()) for i in args.items],
            description=args.description,
            valid_until=args.valid_until,
        ))
        return ToolResult.ok(
            _quote_summary(self._store, quote),
            [AffectedEntity(type="quote", id=quote.id, action="created")],
        )


class QuotesSearchInput(_PageInput):
    customer_id: str | None = None
    status: str | None = None
    query: str = ""


class QuotesSearchTool(BusinessTool):
    input_model = QuotesSearchInput
    metadata = ToolMetadata(
        name="quotes.search",
        description="Lista orçamentos, do mais recente ao mais antigo.",
        action_type=ActionType.READ,
        parameters_schema=QuotesSearchInput.model_json_schema(),
        required_permissions=(Permission.QUOTES_READ.value,),
    )

    async def run(self, args: QuotesSearchInput, context: ToolContext) -> ToolResult:
        hits, total = self._store.search_quotes(
            context.user_id,
            customer_id=args.customer_id,
            status=args.status,
            query=args.query,
            limit=args.limit,
            offset=args.offset,
        )
        return ToolResult.ok(
            _page([_quote_summary(self._store, q) for q in hits], total, args),
            [AffectedEntity(type="quote", id=q.id, action="read") for q in hits],
        )


class QuotesGetTool(BusinessTool):
    input_model = _GetInput
    metadata = ToolMetadata(
        name="quotes.get",
        description="Mostra um orçamento com seus itens.",
        action_type=ActionType.READ,
        parameters_schema=_GetInput.model_json_schema(),
        required_permissions=(Permission.QUOTES_READ.value,),
    )

    async def run(self, args: _GetInput, context: ToolContext) -> ToolResult:
        quote = self._store.get_quote(context.user_id, args.id)
        if quote is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Quote not found")
        return ToolResult.ok(
            {
                **_quote_summary(self._store, quote),
                "customerId": quote.customer_id,
                "description": quote.description,
                "items": _items_out(quote.items),
                "createdAt": quote.created_at,
            },
            [AffectedEntity(type="quote", id=quote.id, action="read")],
        )


class WorkOrdersCreateInput(_CustomerRef):
    title: str = Field(min_length=1)
    description: str | None = None
    scheduled_date: date | None = None
    items: LineItems = Field(default_factory=list)


class WorkOrdersCreateTool(BusinessTool):
    input_model = WorkOrdersCreateInput
    metadata = ToolMetadata(
        name="workOrders.create",
        description="Abre uma ordem de serviço para um cliente existente.",
        action_type=ActionType.CREATE,
        parameters_schema=WorkOrdersCreateInput.model_json_schema(),
        required_permissions=(Permission.WORK_ORDERS_WRITE.value,),
    )

    async def run(self, args: WorkOrdersCreateInput, context: ToolContext) -> ToolResult:
        customer = self._customer(context, args)
        if customer is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Customer not found")
        order = self._store.add_work_order(WorkOrderRecord(
            user_id=context.user_id,
            customer_id=customer.id,
            title=args.title,
            description=args.description,
            scheduled_date=args.scheduled_date,
            items=[LineItem(**i.model_dump()) for i in args.items],
        ))
        return ToolResult.ok(
            _work_order_summary(self._store, order),
            [AffectedEntity(type="workOrder", id=order.id, action="created")],
        )


class WorkOrdersSearchInput(_PageInput):
    customer_id: str | None = None
    status: str | None = None
    query: str = ""
    scheduled_date_from: date | None = None
    scheduled_date_to: date | None = None


class WorkOrdersSearchTool(BusinessTool):
    input_model = WorkOrdersSearchInput
    metadata = ToolMetadata(
        name="workOrders.search",
        description="Lista ordens de serviço por cliente, status, texto ou data agendada.",
        action_type=ActionType.READ,
        parameters_schema=WorkOrdersSearchInput.model_json_schema(),
        required_permissions=(Permission.WORK_ORDERS_READ.value,),
    )

    async def run(self, args: WorkOrdersSearchInput, context: ToolContext) -> ToolResult:
        hits, total = self._store.search_work_orders(
            context.user_id,
            customer_id=args.customer_id,
            status=args.status,
            query=args.query,
            scheduled_from=args.scheduled_date_from,
            scheduled_to=args.scheduled_date_to,
            limit=args.limit,
            offset=args.offset,
        )
        return ToolResult.ok(
            _page([_work_order_summary(self._store, o) for o in hits], total, args),
            [AffectedEntity(type="workOrder", id=o.id, action="read") for o in hits],
        )


class WorkOrdersGetTool(BusinessTool):
    input_model = _GetInput
    metadata = ToolMetadata(
        name="workOrders.get",
        description="Mostra uma ordem de serviço com seus itens.",
        action_type=ActionType.READ,
        parameters_schema=_GetInput.model_json_schema(),
        required_permissions=(Permission.WORK_ORDERS_READ.value,),
    )

    async def run(self, args: _GetInput, context: ToolContext) -> ToolResult:
        order = self._store.get_work_order(context.user_id, args.id)
        if order is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Work order not found")
        return ToolResult.ok(
            {
                **_work_order_summary(self._store, order),
                "customerId": order.customer_id,
                "description": order.description,
                "items": _items_out(order.items),
                "createdAt": order.created_at,
            },
            [AffectedEntity(type="workOrder", id=order.id, action="read")],
        )


# ---------------------------------------------------------------------------
# billing
# ---------------------------------------------------------------------------

_BILLING_ALIASES = {
    "PIX": "PIX",
    "BOLETO": "BOLETO",
    "CREDIT_CARD": "CREDIT_CARD",
    "CARTAO": "CREDIT_CARD",
    "CARTÃO": "CREDIT_CARD",
    "CARTAO DE CREDITO": "CREDIT_CARD",
    "CARTÃO DE CRÉDITO": "CREDIT_CARD",
    "CARTÃO DE CREDITO": "CREDIT_CARD",
}


def _normalize_billing_type(value: Any) -> Any:
    if isinstance(value, str):
        return _BILLING_ALIASES.get(value.strip().upper(), value.strip().upper())
    return value


BillingTypeInput = Annotated[BillingType, BeforeValidator(_normalize_billing_type)]

MIN_CHARGE_VALUE = 5.0
HIGH_CHARGE_VALUE = 50000.0


class BillingPreviewInput(_CustomerRef):
    value: float = Field(gt=0)
    billing_type: BillingTypeInput
    due_date: date | None = None
    description: str | None = None


class BillingPreviewTool(BusinessTool):
    input_model = BillingPreviewInput
    metadata = ToolMetadata(
        name="billing.previewCharge",
        description="Gera uma prévia de cobrança (não cria a cobrança).",
        action_type=ActionType.READ,
        parameters_schema=BillingPreviewInput.model_json_schema(),
        required_permissions=(Permission.BILLING_READ.value,),
    )

    async def run(self, args: BillingPreviewInput, context: ToolContext) -> ToolResult:
        customer = self._customer(context, args)
        if customer is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Customer not found")

        today = date.today()
        due = args.due_date or today + timedelta(days=3)
        warnings: list[str] = []
        errors: list[str] = []
        if due < today:
            warnings.append("Due date is in the past")
        if args.billing_type == "BOLETO" and due < today + timedelta(days=1):
            warnings.append("Boleto requires at least 1 business day")
        if args.billing_type == "CREDIT_CARD" and not customer.email:
            warnings.append("Credit card charges require customer email")
        if args.value < MIN_CHARGE_VALUE:
            errors.append(f"Minimum value is R$ {MIN_CHARGE_VALUE:.2f}")
        if args.value > HIGH_CHARGE_VALUE:
            warnings.append("Values above R$ 50,000 may require additional validation")

        preview = self._store.add_preview(
            context.user_id,
            customer,
            plan_id=context.plan_id,
            billing_type=args.billing_type,
            value=args.value,
            due_date=due,
            description=args.description,
            valid=not errors,
            warnings=warnings,
            errors=errors,
        )
        return ToolResult.ok({
            "previewId": preview.id,
            "valid": preview.valid,
            "preview": preview.snapshot(),
            "warnings": warnings,
            "errors": errors,
            "expiresAt": preview.expires_at,
        })


class BillingCreateChargeInput(_Params):
    model_config = ConfigDict(extra="forbid")

    preview_id: str | None = None


class BillingCreateChargeTool(BusinessTool):
    input_model = BillingCreateChargeInput
    metadata = ToolMetadata(
        name="billing.createCharge",
        description="Cria a cobrança a partir de um previewId gerado por billing.previewCharge.",
        action_type=ActionType.PAYMENT_CREATE,
        parameters_schema=BillingCreateChargeInput.model_json_schema(),
        required_permissions=(Permission.BILLING_WRITE.value,),
        requires_payment_preview=True,
        preview_tool="billing.previewCharge",
    )

    async def run(self, args: BillingCreateChargeInput, context: ToolContext) -> ToolResult:
        if not args.preview_id:
            return ToolResult.fail(ToolErrorCode.PREVIEW_REQUIRED, "A charge preview is required")
        preview = self._store.get_preview(args.preview_id)
        if preview is None:
            return ToolResult.fail(ToolErrorCode.PREVIEW_REQUIRED, "Preview not found")
        if preview.user_id != context.user_id:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_OWNED, "Preview does not belong to you")
        if preview.expires_at < time.time():
            return ToolResult.fail(ToolErrorCode.PREVIEW_EXPIRED, "Preview has expired")
        if preview.used_at is not None:
            return ToolResult.fail(ToolErrorCode.IDEMPOTENCY_CONFLICT, "Preview has already been used")
        if not preview.valid:
            return ToolResult.fail(ToolErrorCode.VALIDATION_ERROR, "Preview is not valid")

        charge = self._store.consume_preview(preview)
        logger.info("charge created id=%s preview=%s user=%s", charge.id, preview.id, context.user_id)
        return ToolResult.ok(
            {**_charge_summary(self._store, charge), "invoiceUrl": charge.invoice_url},
            [AffectedEntity(type="charge", id=charge.id, action="created")],
        )


class BillingGetChargeTool(BusinessTool):
    input_model = _GetInput
    metadata = ToolMetadata(
        name="billing.getCharge",
        description="Mostra os detalhes de uma cobrança.",
        action_type=ActionType.READ,
        parameters_schema=_GetInput.model_json_schema(),
        required_permissions=(Permission.BILLING_READ.value,),
    )

    async def run(self, args: _GetInput, context: ToolContext) -> ToolResult:
        charge = self._store.get_charge(context.user_id, args.id)
        if charge is None:
            return ToolResult.fail(ToolErrorCode.ENTITY_NOT_FOUND, "Charge not found")
        return ToolResult.ok(
            {
                **_charge_summary(self._store, charge),
                "customerId": charge.customer_id,
                "description": charge.description,
                "invoiceUrl": charge.invoice_url,
                "createdAt": charge.created_at,
            },
            [AffectedEntity(type="charge", id=charge.id, action="read")],
        )


class BillingSearchChargesInput(_PageInput):
    customer_id: str | None = None
    status: str | None = None
    billing_type: BillingTypeInput | None = None
    overdue_only: bool = False


class BillingSearchChargesTool(BusinessTool):
    input_model = BillingSearchChargesInput
    metadata = ToolMetadata(
        name="billing.searchCharges",
        description="Lista cobranças (mais recentes primeiro); overdueOnly mostra só as vencidas.",
        action_type=ActionType.READ,
        parameters_schema=BillingSearchChargesInput.model_json_schema(),
        required_permissions=(Permission.BILLING_READ.value,),
    )

    async def run(self, args: BillingSearchChargesInput, context: ToolContext) -> ToolResult:
        hits, total, total_value = self._store.search_charges(
            context.user_id,
            customer_id=args.customer_id,
            status=args.status,
            billing_type=args.billing_type,
            overdue_only=args.overdue_only,
            limit=args.limit,
            offset=args.offset,
        )
        return ToolResult.ok(
            _page([_charge_summary(self._store, c) for c in hits], total, args, totalValue=total_value),
            [AffectedEntity(type="charge", id=c.id, action="read") for c in hits],
        )


# ---------------------------------------------------------------------------
# kb.search: calls KnowledgeBase.search and returns snippets
# ---------------------------------------------------------------------------

class KbSearchInput(_Params):
    query: str = Field(min_length=1)
    limit: int = Field(3, ge=1, le=10)


class KbSearchTool(BusinessTool):
    input_model = KbSearchInput
    metadata = ToolMetadata(
        name="kb.search",
        description="Consulta a base de conhecimento (perguntas frequentes).",
        action_type=ActionType.READ,
        parameters_schema=KbSearchInput.model_json_schema(),
        required_permissions=(Permission.KB_READ.value,),
    )

    def __init__(
        self,
        store: InMemoryBusinessStore,
        permissions: PermissionService,
        knowledge: KnowledgeBase,
    ) -> None:
        super().__init__(store, permissions)
        self._knowledge = knowledge

    async def run(self, args: KbSearchInput, context: ToolContext) -> ToolResult:
        chunks = await self._knowledge.search(args.query, k=args.limit)
        return ToolResult.ok({
            "items": [c.model_dump() for c in chunks],
            "total": len(chunks),
        })


def make_builtin_tools(
    store: InMemoryBusinessStore,
    permissions: PermissionService,
    knowledge: KnowledgeBase,
) -> list[Tool]:
    """Factory: binds the store, permission service and knowledge base into each tool."""
    return [
        CustomersSearchTool(store, permissions),
        CustomersGetTool(store, permissions),
        CustomersCreateTool(store, permissions),
        QuotesSearchTool(store, permissions),
        QuotesGetTool(store, permissions),
        QuotesCreateTool(store, permissions),
        WorkOrdersSearchTool(store, permissions),
        WorkOrdersGetTool(store, permissions),
        WorkOrdersCreateTool(store, permissions),
        BillingGetChargeTool(store, permissions),
        BillingSearchChargesTool(store, permissions),
        BillingPreviewTool(store, permissions),
        BillingCreateChargeTool(store, permissions),
        KbSearchTool(store, permissions, knowledge),
    ]

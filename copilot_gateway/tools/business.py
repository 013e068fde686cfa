"""In-memory business records: customers, quotes, work orders, charge previews, charges.

Stand-in for the relational store. Every record is scoped to its owning
user; lookups never cross users.
"""

from __future__ import annotations

import time
import uuid
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field

BillingType = Literal["PIX", "BOLETO", "CREDIT_CARD"]


def _new_id() -> str:
    return str(uuid.uuid4())


class CustomerRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    name: str
    phone: str | None = None
    email: str | None = None
    tax_id: str | None = None
    address: str | None = None
    city: str | None = None
    notes: str | None = None
    created_at: float = Field(default_factory=time.time)


class LineItem(BaseModel):
    name: str
    description: str | None = None
    quantity: float = 1
    unit_price: float = 0
    type: Literal["SERVICE", "PRODUCT"] = "SERVICE"

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


class QuoteRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    customer_id: str
    items: list[LineItem]
    description: str | None = None
    valid_until: date | None = None
    status: str = "DRAFT"
    created_at: float = Field(default_factory=time.time)

    @property
    def total_value(self) -> float:
        return sum(i.total for i in self.items)


class WorkOrderRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    customer_id: str
    title: str
    description: str | None = None
    scheduled_date: date | None = None
    items: list[LineItem] = Field(default_factory=list)
    status: str = "SCHEDULED"
    created_at: float = Field(default_factory=time.time)

    @property
    def total_value(self) -> float:
        return sum(i.total for i in self.items)


class PaymentPreview(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    plan_id: str | None = None
    customer_id: str
    customer_name: str
    billing_type: BillingType
    value: float
    due_date: date
    description: str | None = None
    valid: bool = True
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    expires_at: float
    used_at: float | None = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "billingType": self.billing_type,
            "value": self.value,
            "dueDate": self.due_date.isoformat(),
            "description": self.description,
        }


class ChargeRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    customer_id: str
    preview_id: str
    billing_type: BillingType
    value: float
    due_date: date
    description: str | None = None
    status: str = "PENDING"
    invoice_url: str = ""
    created_at: float = Field(default_factory=time.time)

    @property
    def is_overdue(self) -> bool:
        return self.status in ("PENDING", "OVERDUE") and self.due_date < date.today()


def _owned(record, user_id: str):
    return record if record is not None and record.user_id == user_id else None


class InMemoryBusinessStore:
    """Dict-backed store — suitable for single-process dev/test."""

    def __init__(self, preview_ttl: float = 300.0) -> None:
        self.preview_ttl = preview_ttl
        self.customers: dict[str, CustomerRecord] = {}
        self.quotes: dict[str, QuoteRecord] = {}
        self.work_orders: dict[str, WorkOrderRecord] = {}
        self.previews: dict[str, PaymentPreview] = {}
        self.charges: dict[str, ChargeRecord] = {}

    # -- customers ----------------------------------------------------------

    def add_customer(self, user_id: str, name: str, **fields: Any) -> CustomerRecord:
        record = CustomerRecord(user_id=user_id, name=name, **fields)
        self.customers[record.id] = record
        return record

    def search_customers(
        self, user_id: str, query: str = "", limit: int = 20, offset: int = 0,
    ) -> tuple[list[CustomerRecord], int]:
        q = query.strip().lower()
        hits = [
            c for c in self.customers.values()
            if c.user_id == user_id and (
                not q
                or q in c.name.lower()
                or q in (c.email or "").lower()
                or q in (c.phone or "")
            )
        ]
        hits.sort(key=lambda c: c.name.lower())
        return hits[offset:offset + limit], len(hits)

    def get_customer(self, user_id: str, customer_id: str) -> CustomerRecord | None:
        return _owned(self.customers.get(customer_id), user_id)

    def resolve_customer(
        self,
        user_id: str,
        customer_id: str | None = None,
        name: str | None = None,
    ) -> CustomerRecord | None:
        """By id, else by exact name, else by a unique partial name match."""
        if customer_id:
            return self.get_customer(user_id, customer_id)
        if not name:
            return None
        wanted = name.strip().lower()
        owned = [c for c in self.customers.values() if c.user_id == user_id]
        exact = [c for c in owned if c.name.lower() == wanted]
        if exact:
            return exact[0]
        partial = [c for c in owned if wanted in c.name.lower()]
        return partial[0] if len(partial) == 1 else None

    # -- quotes / work orders -----------------------------------------------

    def add_quote(self, record: QuoteRecord) -> QuoteRecord:
        self.quotes[record.id] = record
        return record

    def add_work_order(self, record: WorkOrderRecord) -> WorkOrderRecord:
        self.work_orders[record.id] = record
        return record

    def get_quote(self, user_id: str, quote_id: str) -> QuoteRecord | None:
        return _owned(self.quotes.get(quote_id), user_id)

    def search_quotes(
        self,
        user_id: str,
        *,
        customer_id: str | None = None,
        status: str | None = None,
        query: str = "",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[QuoteRecord], int]:
        q = query.strip().lower()
        hits = [
            r for r in self.quotes.values()
            if r.user_id == user_id
            and (not customer_id or r.customer_id == customer_id)
            and (not status or r.status == status)
            and (not q or q in (r.description or "").lower())
        ]
        hits.sort(key=lambda r: r.created_at, reverse=True)
        return hits[offset:offset + limit], len(hits)

    def get_work_order(self, user_id: str, work_order_id: str) -> WorkOrderRecord | None:
        return _owned(self.work_orders.get(work_order_id), user_id)

    def search_work_orders(
        self,
        user_id: str,
        *,
        customer_id: str | None = None,
        status: str | None = None,
        query: str = "",
        scheduled_from: date | None = None,
        scheduled_to: date | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WorkOrderRecord], int]:
        q = query.strip().lower()
        hits = [
            r for r in self.work_orders.values()
            if r.user_id == user_id
            and (not customer_id or r.customer_id == customer_id)
            and (not status or r.status == status)
            and (not q or q in r.title.lower() or q in (r.description or "").lower())
            and (scheduled_from is None or (r.scheduled_date and r.scheduled_date >= scheduled_from))
            and (scheduled_to is None or (r.scheduled_date and r.scheduled_date <= scheduled_to))
        ]
        hits.sort(key=lambda r: r.created_at, reverse=True)
        return hits[offset:offset + limit], len(hits)

    # -- billing ------------------------------------------------------------

    def add_preview(self, user_id: str, customer: CustomerRecord, **fields: Any) -> PaymentPreview:
        preview = PaymentPreview(
            user_id=user_id,
            customer_id=customer.id,
            customer_name=customer.name,
            expires_at=time.time() + self.preview_ttl,
            **fields,
        )
        self.previews[preview.id] = preview
        return preview

    def get_preview(self, preview_id: str) -> PaymentPreview | None:
        return self.previews.get(preview_id)

    def consume_preview(self, preview: PaymentPreview) -> ChargeRecord:
        """Mark *preview* used and create the charge it describes."""
        preview.used_at = time.time()
        charge = ChargeRecord(
            user_id=preview.user_id,
            customer_id=preview.customer_id,
            preview_id=preview.id,
            billing_type=preview.billing_type,
            value=preview.value,
            due_date=preview.due_date,
            description=preview.description,
        )
        charge.invoice_url = f"https://pay.example.com/invoice/{charge.id}"
        self.charges[charge.id] = charge
        return charge

    def get_charge(self, user_id: str, charge_id: str) -> ChargeRecord | None:
        return _owned(self.charges.get(charge_id), user_id)

    def search_charges(
        self,
        user_id: str,
        *,
        customer_id: str | None = None,
        status: str | None = None,
        billing_type: str | None = None,
        overdue_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ChargeRecord], int, float]:
        """Newest due date first. Returns ``(page, total, total value)``."""
        hits = [
            c for c in self.charges.values()
            if c.user_id == user_id
            and (not customer_id or c.customer_id == customer_id)
            and (not status or c.status == status)
            and (not billing_type or c.billing_type == billing_type)
            and (not overdue_only or c.is_overdue)
        ]
        hits.sort(key=lambda c: c.due_date, reverse=True)
        return hits[offset:offset + limit], len(hits), sum(c.value for c in hits)

"""
Core Ledger Models for Tijarati

These models define the records the host core stores and exchanges with the
presentation layer. They are designed to:
1. Accept the loose payloads the web bundle sends (camelCase, nulls, aliases)
2. Default every optional field so old snapshots still import
3. Never fail on a corrupt nested list (installments, payouts)
4. Serialize back to the exact camelCase wire shape

DESIGN DECISION: Field coercion is lenient (numbers to strings, "1" to True)
but required keys are not: a transaction without an id or a partner without
a name is rejected. Amount sanity (paid <= total, non-negative prices) is
deliberately NOT enforced here.
"""

import json
import math
import time
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


DEFAULT_CURRENCY = "MAD"


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def coerce_record_list(value: Any) -> list:
    """
    Defensively turn a serialized nested sequence into a list.

    Accepts a list, a JSON string holding a list, or anything else.
    Corrupt JSON, empty input and non-list payloads all resolve to [].
    """
    if isinstance(value, list):
        return value
    if isinstance(value, (str, bytes)):
        if not value.strip():
            return []
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError):
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _drop_nulls(data: Any, keep: tuple[str, ...] = ()) -> Any:
    """Treat explicit nulls as absent so field defaults apply."""
    if not isinstance(data, dict):
        return data
    return {k: v for k, v in data.items() if v is not None or k in keep}


# =============================================================================
# ENUMS - Finite set of known values
# =============================================================================

class TransactionType(str, Enum):
    """
    Known transaction kinds.

    The store keeps the raw string so unknown kinds from newer bundles
    survive a round-trip; these values drive summaries only.
    """
    SALE = "sale"
    PURCHASE = "purchase"


class PricingMode(str, Enum):
    """How the amount was entered."""
    UNIT = "unit"    # amount = quantity * unitPrice
    TOTAL = "total"  # amount entered directly


class LedgerModel(BaseModel):
    """Shared config: camelCase on the wire, unknown fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """Serialize to the camelCase dict sent over the bridge."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# CORE RECORDS
# =============================================================================

class Transaction(LedgerModel):
    """
    A single sale or purchase line.

    `id` is caller-assigned and is the primary key: saving the same id
    again replaces the row. `reminder_id`, when set, is the handle of a live
    debt reminder that must be cancelled before this row goes away.
    """

    id: str = Field(
        default="",
        validate_default=True,
        description="Globally unique, caller-assigned id"
    )
    type: str = Field(
        default="",
        description="sale | purchase"
    )
    item: str = ""
    quantity: float = Field(
        default=1.0,
        description="Quantity (not validated as positive)"
    )
    unit_price: float = Field(
        default=0.0,
        description="Unit price in the base currency"
    )
    amount: float = Field(
        default=0.0,
        description="Total amount in the base currency"
    )
    pricing_mode: str = PricingMode.UNIT.value
    date: str = Field(
        default="",
        description="ISO-ish date string, used for ordering"
    )

    # Credit tracking
    is_credit: bool = False
    client_name: str = ""
    paid_amount: float = 0.0
    is_fully_paid: bool = False
    currency: str = DEFAULT_CURRENCY
    created_at: int = Field(default_factory=now_millis)
    due_date: str = ""
    reminder_id: Optional[str] = None

    # Installments
    is_installment_plan: bool = False
    installments: list[Any] = Field(default_factory=list)

    is_mock: bool = False

    @model_validator(mode='before')
    @classmethod
    def accept_base_aliases(cls, data: Any) -> Any:
        """Map the `...Base` amount names used by the web bundle."""
        data = _drop_nulls(data, keep=("reminderId", "reminder_id"))
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for base_name, name in (
            ("amountBase", "amount"),
            ("unitPriceBase", "unitPrice"),
            ("paidAmountBase", "paidAmount"),
        ):
            if base_name in data:
                data[name] = data.pop(base_name)
        return data

    @field_validator('id', mode='before')
    @classmethod
    def require_id(cls, v: Any) -> str:
        """Transaction id must be present and non-blank."""
        text = str(v).strip() if v is not None else ""
        if not text:
            raise ValueError("Transaction id is required")
        return text

    @field_validator('quantity', 'unit_price', 'amount', 'paid_amount', mode='before')
    @classmethod
    def blank_number_is_zero(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return 0.0
        return v

    @field_validator('reminder_id', mode='before')
    @classmethod
    def blank_reminder_is_none(cls, v: Any) -> Optional[str]:
        return str(v) if v else None

    @field_validator('created_at', mode='before')
    @classmethod
    def millis_as_int(cls, v: Any) -> int:
        try:
            number = float(v)
        except (TypeError, ValueError):
            return now_millis()
        if math.isnan(number) or math.isinf(number):
            return now_millis()
        return int(number)

    @field_validator('installments', mode='before')
    @classmethod
    def parse_installments(cls, v: Any) -> list:
        return coerce_record_list(v)


class Partner(LedgerModel):
    """
    A profit-sharing partner.

    `id` is assigned by the store unless the caller supplies one (imports
    do, to keep later deletes pointing at the right row).
    """

    id: Optional[int] = Field(
        default=None,
        description="Store-assigned id, or explicit id from an import"
    )
    name: str = Field(
        default="",
        validate_default=True,
        description="Partner name (required)"
    )
    percent: float = Field(
        default=0.0,
        description="Profit share percentage"
    )
    created_at: int = Field(default_factory=now_millis)

    # Investment tracking
    invested_base: float = 0.0
    invested_at: str = ""
    profit_schedule: str = Field(
        default="",
        description="Free text, or JSON text when structured"
    )
    notes: str = ""
    payouts: list[Any] = Field(default_factory=list)

    is_mock: bool = False

    @model_validator(mode='before')
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _drop_nulls(data)

    @field_validator('id', mode='before')
    @classmethod
    def numeric_id_or_none(cls, v: Any) -> Optional[int]:
        """Non-numeric ids fall back to auto-assignment."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, str) and not v.strip():
            return None
        try:
            number = float(v)
        except (TypeError, ValueError):
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return int(number)

    @field_validator('percent', 'invested_base', mode='before')
    @classmethod
    def blank_number_is_zero(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return 0.0
        return v

    @field_validator('name', mode='before')
    @classmethod
    def require_name(cls, v: Any) -> str:
        """Partner name must be present and non-blank."""
        text = str(v).strip() if v is not None else ""
        if not text:
            raise ValueError("Partner name is required")
        return text

    @field_validator('created_at', mode='before')
    @classmethod
    def millis_as_int(cls, v: Any) -> int:
        try:
            number = float(v)
        except (TypeError, ValueError):
            return now_millis()
        if math.isnan(number) or math.isinf(number):
            return now_millis()
        return int(number)

    @field_validator('profit_schedule', mode='before')
    @classmethod
    def schedule_as_text(cls, v: Any) -> Any:
        if isinstance(v, (dict, list)):
            return json.dumps(v, ensure_ascii=False)
        return v

    @field_validator('payouts', mode='before')
    @classmethod
    def parse_payouts(cls, v: Any) -> list:
        return coerce_record_list(v)


# =============================================================================
# SNAPSHOT MODELS
# =============================================================================

class Snapshot(LedgerModel):
    """
    Full export of the store.

    Order is preserved: transactions newest first (as listed by the store),
    partners in store order.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    partners: list[Partner] = Field(default_factory=list)


class ImportResult(LedgerModel):
    """Counts of records actually written by an import."""

    imported_partners: int = Field(ge=0)
    imported_transactions: int = Field(ge=0)
    skipped_partners: int = Field(default=0, ge=0)
    skipped_transactions: int = Field(default=0, ge=0)


class LedgerSummary(LedgerModel):
    """
    Aggregate figures handed to the assistant as context.

    Computed deterministically from stored transactions.
    """

    total_sales: float = 0.0
    total_purchases: float = 0.0
    net_profit: float = 0.0
    pending_debts: float = 0.0
    top_sale_items: list[dict] = Field(default_factory=list)

    @classmethod
    def from_transactions(
        cls,
        transactions: list[Transaction],
        top_n: int = 5,
    ) -> "LedgerSummary":
        sales = [t for t in transactions if t.type == TransactionType.SALE.value]
        purchases = [t for t in transactions if t.type == TransactionType.PURCHASE.value]

        total_sales = sum(t.amount for t in sales)
        total_purchases = sum(t.amount for t in purchases)
        pending = sum(
            t.amount - t.paid_amount
            for t in transactions
            if t.is_credit and not t.is_fully_paid
        )

        counts: dict[str, float] = {}
        for t in sales:
            name = t.item.strip()
            if not name:
                continue
            key = name.lower()
            counts[key] = counts.get(key, 0) + (t.quantity or 1)
        top = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:top_n]

        return cls(
            total_sales=total_sales,
            total_purchases=total_purchases,
            net_profit=total_sales - total_purchases,
            pending_debts=pending,
            top_sale_items=[{"item": k, "qty": v} for k, v in top],
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in an incoming record."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )

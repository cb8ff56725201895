"""
Invoice form validation (pure, no DB access).

validate_invoice_form() takes the raw submitted mapping and returns either
Valid(fields) or Invalid(errors). Error lists are keyed by the form field
names (customerId/amount/status) so they can be rendered next to inputs.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

InvoiceStatus = Literal["pending", "paid"]
STATUSES: tuple[str, ...] = ("pending", "paid")
FORM_KEYS: tuple[str, ...] = ("customerId", "amount", "status")

# Largest accepted major-unit amount; its cents fit comfortably in SQLite INTEGER.
MAX_AMOUNT = 1_000_000_000_000

MSG_CUSTOMER_ID = "Customer ID must be a string."
MSG_AMOUNT_POSITIVE = "Amount must be greater than 0."
MSG_AMOUNT_NAN = "Expected number, received nan"
MSG_AMOUNT_FINITE = "Expected a finite number."
MSG_AMOUNT_TOO_LARGE = "Amount must be at most 1000000000000."
MSG_STATUS = 'Status must be either "pending" or "paid".'


_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_INFINITY_RE = re.compile(r"[+-]?Infinity")


def coerce_number(raw: Any) -> float:
    """Form-number coercion: absent/blank -> 0.0, unparsable -> nan.

    Only plain ASCII decimals (optional sign, fraction, exponent) and the
    `Infinity` spellings are numbers; underscores, hex and non-ASCII digits
    are not.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    if not isinstance(raw, str):
        return math.nan
    s = raw.strip()
    if not s:
        return 0.0
    if _INFINITY_RE.fullmatch(s):
        return -math.inf if s.startswith("-") else math.inf
    if not _NUMBER_RE.fullmatch(s):
        return math.nan
    return float(s)


class InvoiceFormSchema(BaseModel):
    """Full invoice record shape; id and date are server-assigned."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    customer_id: str = Field(alias="customerId")
    amount: float
    status: InvoiceStatus
    date: str

    @field_validator("customer_id", mode="before")
    @classmethod
    def _customer_id_is_str(cls, v):
        if not isinstance(v, str):
            raise PydanticCustomError("invalid_type", MSG_CUSTOMER_ID)
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_positive(cls, v):
        n = coerce_number(v)
        if math.isnan(n):
            raise PydanticCustomError("invalid_type", MSG_AMOUNT_NAN)
        if math.isinf(n):
            raise PydanticCustomError("not_finite", MSG_AMOUNT_FINITE)
        if n <= 0:
            raise PydanticCustomError("too_small", MSG_AMOUNT_POSITIVE)
        if n > MAX_AMOUNT:
            raise PydanticCustomError("too_big", MSG_AMOUNT_TOO_LARGE)
        return n

    @field_validator("status", mode="before")
    @classmethod
    def _status_in_enum(cls, v):
        if not isinstance(v, str):
            raise PydanticCustomError("invalid_type", MSG_STATUS)
        if v not in STATUSES:
            raise PydanticCustomError(
                "invalid_enum_value",
                "Invalid enum value. Expected 'pending' | 'paid', received '{received}'",
                {"received": v},
            )
        return v


class CreateInvoice(InvoiceFormSchema):
    id: Optional[str] = Field(default=None, exclude=True)
    date: Optional[str] = Field(default=None, exclude=True)


class UpdateInvoice(InvoiceFormSchema):
    id: Optional[str] = Field(default=None, exclude=True)
    date: Optional[str] = Field(default=None, exclude=True)


_LOC_TO_FORM_KEY = {
    "customerId": "customerId",
    "customer_id": "customerId",
    "amount": "amount",
    "status": "status",
}


@dataclass(frozen=True)
class InvoiceFields:
    customer_id: str
    amount: float
    status: InvoiceStatus


@dataclass(frozen=True)
class Valid:
    fields: InvoiceFields
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Invalid:
    errors: dict[str, list[str]]
    ok: bool = field(default=False, init=False)


ValidationResult = Union[Valid, Invalid]


def read_form(form: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the three user-editable fields out of a submitted form mapping."""
    return {k: form.get(k) for k in FORM_KEYS}


def validate_invoice_form(
    form: Mapping[str, Any], schema: type[InvoiceFormSchema] = CreateInvoice
) -> ValidationResult:
    raw = read_form(form)
    try:
        model = schema.model_validate(raw)
    except ValidationError as exc:
        errors: dict[str, list[str]] = {}
        for err in exc.errors():
            loc = err.get("loc") or ()
            key = _LOC_TO_FORM_KEY.get(str(loc[0])) if loc else None
            if key is None:
                continue
            errors.setdefault(key, []).append(err["msg"])
        return Invalid(errors=errors)
    return Valid(InvoiceFields(customer_id=model.customer_id, amount=model.amount, status=model.status))


def to_minor_units(amount: float) -> int:
    """Major units -> integer cents, half-up on the decimal representation."""
    cents = Decimal(repr(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> float:
    return float(Decimal(int(amount)) / 100)


class FormFields(BaseModel):
    """Values echoed back to re-render a rejected form."""

    model_config = ConfigDict(populate_by_name=True)

    customer_id: Optional[str] = Field(default=None, alias="customerId")
    amount: Optional[float] = None
    status: Optional[InvoiceStatus] = None

    @classmethod
    def from_form(cls, form: Mapping[str, Any], missing_customer_id: Optional[str] = None) -> "FormFields":
        raw = read_form(form)

        customer_id = raw["customerId"] if isinstance(raw["customerId"], str) and raw["customerId"] else None
        if customer_id is None:
            customer_id = missing_customer_id

        n = coerce_number(raw["amount"])
        amount = n if math.isfinite(n) and 0 < n <= MAX_AMOUNT else None

        status = raw["status"] if raw["status"] in STATUSES else None

        return cls(customer_id=customer_id, amount=amount, status=status)

"""Schemas for Payment Vouchers module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from tourdesk.core.documents import DocumentStatus
from tourdesk.modules.payment_vouchers.models import VoucherCategory, VoucherPaymentMethod


def _strip_payee(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("payee_name must be at least 2 characters")
    return v


class PaymentVoucherCreate(BaseModel):
    """Schema for creating a payment voucher. The number is always generated."""

    voucher_date: date | None = None  # defaults to today
    payee_name: str = Field(..., min_length=2, max_length=200)
    contact: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=500)
    tour_code: str | None = Field(None, max_length=100)
    category: VoucherCategory = VoucherCategory.HOTEL
    expense_other: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=1000)
    advance: Decimal = Field(Decimal("0.00"), ge=0)
    total: Decimal = Field(Decimal("0.00"), ge=0)
    payment_method: VoucherPaymentMethod = VoucherPaymentMethod.CASH
    status: DocumentStatus | None = None  # derived from due when omitted

    @field_validator("payee_name")
    @classmethod
    def strip_payee(cls, v: str) -> str:
        return _strip_payee(v)

    @model_validator(mode="after")
    def check_other_expense(self) -> "PaymentVoucherCreate":
        if self.category != VoucherCategory.OTHER:
            self.expense_other = None
        return self


class PaymentVoucherUpdate(BaseModel):
    """Partial update. The voucher number never changes."""

    voucher_date: date | None = None
    payee_name: str | None = Field(None, min_length=2, max_length=200)
    contact: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=500)
    tour_code: str | None = Field(None, max_length=100)
    category: VoucherCategory | None = None
    expense_other: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=1000)
    advance: Decimal | None = Field(None, ge=0)
    total: Decimal | None = Field(None, ge=0)
    payment_method: VoucherPaymentMethod | None = None
    status: DocumentStatus | None = None

    @field_validator("payee_name")
    @classmethod
    def strip_payee(cls, v: str | None) -> str | None:
        return _strip_payee(v) if v is not None else v


class PaymentVoucherResponse(BaseModel):
    id: int
    voucher_number: str
    voucher_date: date
    payee_name: str
    contact: str | None
    address: str | None
    tour_code: str | None
    category: str
    expense_other: str | None
    description: str | None
    advance: float
    total: float
    due: float
    payment_method: str
    status: str
    created_by_id: int | None
    created_by_name: str | None = None
    created_at: datetime
    updated_at: datetime


class VoucherSummary(BaseModel):
    """Totals over every voucher matching the list filters."""

    total_expenses: float
    total_advance: float
    total_due: float
    monthly_expenses: float  # current calendar month only


class PaymentVoucherList(BaseModel):
    items: list[PaymentVoucherResponse]
    total: int
    page: int
    limit: int
    pages: int
    summary: VoucherSummary


class PaymentVoucherFilters(BaseModel):
    category: str | None = None  # a VoucherCategory value, or "all"
    search: str | None = None  # voucher number, payee, tour code, description
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str | None) -> str | None:
        if v is None or v == "all":
            return v
        if v not in {c.value for c in VoucherCategory}:
            raise ValueError(f"Unknown category: {v}")
        return v

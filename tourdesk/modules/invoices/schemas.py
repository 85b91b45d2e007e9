"""Schemas for Invoices module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field, model_validator

from tourdesk.core.documents import DocumentStatus
from tourdesk.modules.invoices.models import InvoiceType


# --- Nested details ---


class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=50)
    email: EmailStr | None = None
    address: str | None = None


class HotelDetails(BaseModel):
    """Hotel booking block of a hotel invoice."""

    hotel_name: str | None = None
    place: str | None = None
    address: str | None = None
    check_in: date | None = None
    check_out: date | None = None
    nights: int | None = Field(None, ge=0)
    room_type: str | None = None
    rooms: int | None = Field(None, ge=0)
    price_per_night: Decimal | None = Field(None, ge=0)
    adults: int | None = Field(None, ge=0)
    children: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_dates(self) -> "HotelDetails":
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out cannot be before check_in")
        return self


class TourHotel(BaseModel):
    hotel_name: str | None = None
    place: str | None = None
    check_in: date | None = None
    check_out: date | None = None
    room_type: str | None = None


class TourDetails(BaseModel):
    """Tour package block of a tour invoice."""

    package_name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    total_days: int | None = Field(None, ge=0)
    total_nights: int | None = Field(None, ge=0)
    pax: str | None = None
    adults: int | None = Field(None, ge=0)
    children: int | None = Field(None, ge=0)
    adult_price: Decimal | None = Field(None, ge=0)
    child_price: Decimal | None = Field(None, ge=0)
    inclusions: str | None = None
    exclusions: str | None = None
    hotels: list[TourHotel] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self) -> "TourDetails":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TransportDetails(BaseModel):
    mode_of_transport: str | None = None
    fooding: str | None = None
    pickup_point: str | None = None
    drop_point: str | None = None
    included_transport_details: str | None = None


# --- Invoice Line Schemas ---


class InvoiceLineCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0)


class InvoiceLineResponse(BaseModel):
    id: int
    description: str
    quantity: int
    price: float
    line_total: float

    model_config = {"from_attributes": True}


# --- Invoice Schemas ---


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice. The number is always generated."""

    invoice_type: InvoiceType
    invoice_date: date | None = None  # defaults to today
    customer: CustomerInfo
    hotel_details: HotelDetails | None = None
    tour_details: TourDetails | None = None
    transport_details: TransportDetails | None = None
    line_items: list[InvoiceLineCreate] = Field(default_factory=list)
    subtotal: Decimal = Field(..., ge=0)
    discount: Decimal = Field(Decimal("0.00"), ge=0)
    tax: Decimal = Field(Decimal("0.00"), ge=0)
    gst_percent: Decimal = Field(Decimal("0.00"), ge=0, le=100)
    total: Decimal = Field(..., ge=0)
    advance_paid: Decimal = Field(Decimal("0.00"), ge=0)
    payment_method: str = Field("Cash", max_length=50)
    status: DocumentStatus | None = None  # derived from due amount when omitted
    notes: str | None = None


class InvoiceUpdate(BaseModel):
    """Partial update. Number and type never change."""

    invoice_date: date | None = None
    customer: CustomerInfo | None = None
    hotel_details: HotelDetails | None = None
    tour_details: TourDetails | None = None
    transport_details: TransportDetails | None = None
    line_items: list[InvoiceLineCreate] | None = None
    subtotal: Decimal | None = Field(None, ge=0)
    discount: Decimal | None = Field(None, ge=0)
    tax: Decimal | None = Field(None, ge=0)
    gst_percent: Decimal | None = Field(None, ge=0, le=100)
    total: Decimal | None = Field(None, ge=0)
    advance_paid: Decimal | None = Field(None, ge=0)
    payment_method: str | None = Field(None, max_length=50)
    status: DocumentStatus | None = None
    notes: str | None = None


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    invoice_type: str
    invoice_date: date
    customer: CustomerInfo
    hotel_details: HotelDetails | None
    tour_details: TourDetails | None
    transport_details: TransportDetails | None
    line_items: list[InvoiceLineResponse] = Field(default_factory=list)
    subtotal: float
    discount: float
    tax: float
    gst_percent: float
    total: float
    advance_paid: float
    due_amount: float
    payment_method: str
    status: str
    notes: str | None
    created_by_id: int | None
    created_by_name: str | None = None
    created_at: datetime
    updated_at: datetime


class InvoiceSummary(BaseModel):
    """Brief invoice summary for lists."""

    id: int
    invoice_number: str
    invoice_type: str
    invoice_date: date
    customer_name: str
    customer_email: str | None
    total: float
    advance_paid: float
    due_amount: float
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


# --- Filters ---


class InvoiceFilters(BaseModel):
    invoice_type: InvoiceType | None = None
    status: DocumentStatus | None = None
    search: str | None = None  # invoice number, customer name or email
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

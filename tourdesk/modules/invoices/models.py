"""Invoice and InvoiceLine models."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Date,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourdesk.core.database.base import BaseModel, BigIntPK
from tourdesk.core.documents import DocumentStatus


class InvoiceType(StrEnum):
    """Invoice type; also the numbering family (HTL / TUR)."""

    HOTEL = "hotel"
    TOUR = "tour"


class Invoice(BaseModel):
    """Hotel booking or tour package invoice issued to a customer."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
    )

    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False)
    invoice_type: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Customer
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Family-specific details, validated by the schemas
    hotel_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    tour_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    transport_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    discount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    tax: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    gst_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    advance_paid: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    due_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))

    payment_method: Mapped[str] = mapped_column(String(50), nullable=False, default="Cash")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.PENDING.value, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    lines: Mapped[list["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
        lazy="selectin",
    )
    created_by: Mapped["User | None"] = relationship("User", lazy="selectin")

    @property
    def is_hotel(self) -> bool:
        return self.invoice_type == InvoiceType.HOTEL.value

    @property
    def title(self) -> str:
        return "Hotel Booking Invoice" if self.is_hotel else "Tour Package Invoice"


class InvoiceLine(BaseModel):
    """Free-text line item of an invoice."""

    __tablename__ = "invoice_lines"

    invoice_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)  # quantity * price

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")


# Import at the end to avoid circular imports
from tourdesk.core.auth.models import User  # noqa: E402

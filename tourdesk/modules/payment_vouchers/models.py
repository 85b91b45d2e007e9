"""PaymentVoucher model."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import BigInteger, Date, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tourdesk.core.database.base import BaseModel
from tourdesk.core.documents import DocumentStatus


class VoucherCategory(StrEnum):
    """What the money was paid out for."""

    HOTEL = "hotel"
    TRANSPORT = "transport"
    FOOD = "food"
    GUIDE = "guide"
    OTHER = "other"


class VoucherPaymentMethod(StrEnum):
    CASH = "cash"
    BANK = "bank"
    UPI = "upi"


class PaymentVoucher(BaseModel):
    """Expense paid out by the agency to a supplier (hotel, driver, guide)."""

    __tablename__ = "payment_vouchers"
    __table_args__ = (
        UniqueConstraint("voucher_number", name="uq_payment_vouchers_voucher_number"),
    )

    voucher_number: Mapped[str] = mapped_column(String(30), nullable=False)
    voucher_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    payee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    tour_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VoucherCategory.HOTEL.value, index=True
    )
    expense_other: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    advance: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    due: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))

    payment_method: Mapped[str] = mapped_column(
        String(10), nullable=False, default=VoucherPaymentMethod.CASH.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.PENDING.value, index=True
    )

    created_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_by: Mapped["User | None"] = relationship("User", lazy="selectin")

    @property
    def expense_label(self) -> str:
        """Category for display; 'other' shows the free-text expense name."""
        if self.category == VoucherCategory.OTHER.value and self.expense_other:
            return self.expense_other
        return self.category.capitalize()


# Import at the end to avoid circular imports
from tourdesk.core.auth.models import User  # noqa: E402

"""Service for Payment Vouchers module."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.audit import AuditAction, create_audit_log
from tourdesk.core.config import settings
from tourdesk.core.documents import (
    FamilyName,
    NumberedDocumentService,
    SqlAlchemyDocumentStore,
    derive_due_and_status,
    get_family,
    recompute_financials,
)
from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.modules.payment_vouchers.models import PaymentVoucher, VoucherCategory
from tourdesk.modules.payment_vouchers.schemas import (
    PaymentVoucherCreate,
    PaymentVoucherFilters,
    PaymentVoucherUpdate,
    VoucherSummary,
)
from tourdesk.shared.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)

_NULLABLE_FIELDS = {"contact", "address", "tour_code", "expense_other", "description"}
_AUDITED_FIELDS = ("payee_name", "category", "total", "advance", "due", "status")


def _month_bounds(today: date) -> tuple[date, date]:
    start = today.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class PaymentVoucherService:
    """Service for managing payment vouchers (PAY001, PAY002, ...)."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = SqlAlchemyDocumentStore(db, PaymentVoucher, "voucher_number")
        self.numbering = NumberedDocumentService(self.store)

    @staticmethod
    def _snapshot(voucher: PaymentVoucher) -> dict[str, Any]:
        return {name: getattr(voucher, name) for name in _AUDITED_FIELDS}

    async def create_voucher(
        self, data: PaymentVoucherCreate, created_by_id: int | None
    ) -> PaymentVoucher:
        """Create a voucher under the next PAY number."""
        derived = derive_due_and_status(
            data.total,
            data.advance,
            data.status.value if data.status else None,
            clamp=settings.clamp_voucher_due,
        )

        def build(voucher_number: str) -> PaymentVoucher:
            return PaymentVoucher(
                voucher_number=voucher_number,
                voucher_date=data.voucher_date or date.today(),
                payee_name=data.payee_name,
                contact=data.contact,
                address=data.address,
                tour_code=data.tour_code,
                category=data.category.value,
                expense_other=data.expense_other,
                description=data.description,
                advance=round_money(data.advance),
                total=round_money(data.total),
                due=derived.due_amount,
                payment_method=data.payment_method.value,
                status=derived.status,
                created_by_id=created_by_id,
            )

        voucher = await self.numbering.create_with_retry(
            get_family(FamilyName.PAYMENT_VOUCHER), build
        )

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE_VOUCHER,
            entity_type="PaymentVoucher",
            entity_id=voucher.id,
            user_id=created_by_id,
            entity_identifier=voucher.voucher_number,
            new_values=self._snapshot(voucher),
        )
        logger.info("Created payment voucher %s", voucher.voucher_number)

        await self.db.commit()
        return await self.get_voucher_by_id(voucher.id)

    async def get_voucher_by_id(self, voucher_id: int) -> PaymentVoucher:
        voucher = await self.store.find_by_id(voucher_id)
        if not voucher:
            raise NotFoundError("Payment voucher", voucher_id)
        return voucher

    def _build_conditions(self, filters: PaymentVoucherFilters) -> list:
        conditions = []
        if filters.category and filters.category != "all":
            conditions.append(PaymentVoucher.category == filters.category)
        if filters.date_from:
            conditions.append(PaymentVoucher.voucher_date >= filters.date_from)
        if filters.date_to:
            conditions.append(PaymentVoucher.voucher_date <= filters.date_to)
        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    PaymentVoucher.voucher_number.ilike(search_term),
                    PaymentVoucher.payee_name.ilike(search_term),
                    PaymentVoucher.tour_code.ilike(search_term),
                    PaymentVoucher.description.ilike(search_term),
                )
            )
        return conditions

    async def list_vouchers(
        self, filters: PaymentVoucherFilters
    ) -> tuple[list[PaymentVoucher], int]:
        """List vouchers with filters, newest first."""
        return await self.store.find_page(
            self._build_conditions(filters),
            order_by=[PaymentVoucher.created_at.desc(), PaymentVoucher.id.desc()],
            skip=(filters.page - 1) * filters.limit,
            limit=filters.limit,
        )

    async def get_summary(
        self, filters: PaymentVoucherFilters, today: date | None = None
    ) -> VoucherSummary:
        """Sum total/advance/due over the filter, plus the current month's total."""
        conditions = self._build_conditions(filters)
        stmt = select(
            func.coalesce(func.sum(PaymentVoucher.total), 0),
            func.coalesce(func.sum(PaymentVoucher.advance), 0),
            func.coalesce(func.sum(PaymentVoucher.due), 0),
        )
        if conditions:
            stmt = stmt.where(*conditions)
        total_expenses, total_advance, total_due = (await self.db.execute(stmt)).one()

        month_start, month_end = _month_bounds(today or date.today())
        monthly_stmt = select(func.coalesce(func.sum(PaymentVoucher.total), 0)).where(
            *conditions,
            PaymentVoucher.voucher_date >= month_start,
            PaymentVoucher.voucher_date < month_end,
        )
        monthly_expenses = (await self.db.execute(monthly_stmt)).scalar_one()

        return VoucherSummary(
            total_expenses=float(total_expenses or ZERO),
            total_advance=float(total_advance or ZERO),
            total_due=float(total_due or ZERO),
            monthly_expenses=float(monthly_expenses or ZERO),
        )

    async def update_voucher(
        self, voucher_id: int, data: PaymentVoucherUpdate, updated_by_id: int | None
    ) -> PaymentVoucher:
        """
        Apply a partial update.

        Changing total or advance recomputes due against the stored value of
        the other one and resets status to paid/pending unless status is sent.
        """
        voucher = await self.get_voucher_by_id(voucher_id)
        changes = data.model_dump(exclude_unset=True)

        fields: dict[str, Any] = {}
        for name, value in changes.items():
            if value is None:
                if name == "status":
                    continue
                if name not in _NULLABLE_FIELDS:
                    raise ValidationError(f"{name} cannot be null", field=name)
            elif isinstance(value, Decimal):
                value = round_money(value)
            elif name in ("category", "payment_method", "status"):
                value = str(value)
            fields[name] = value

        category = fields.get("category", voucher.category)
        if category != VoucherCategory.OTHER.value:
            fields["expense_other"] = None

        fields = recompute_financials(
            fields,
            current_total=voucher.total,
            current_advance=voucher.advance,
            advance_field="advance",
            due_field="due",
            clamp=settings.clamp_voucher_due,
        )

        old_values = self._snapshot(voucher)
        voucher = await self.store.update(voucher.id, fields)

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE_VOUCHER,
            entity_type="PaymentVoucher",
            entity_id=voucher.id,
            user_id=updated_by_id,
            entity_identifier=voucher.voucher_number,
            old_values=old_values,
            new_values=self._snapshot(voucher),
        )

        await self.db.commit()
        return await self.get_voucher_by_id(voucher.id)

    async def delete_voucher(self, voucher_id: int, deleted_by_id: int | None) -> None:
        """Hard-delete a voucher."""
        voucher = await self.get_voucher_by_id(voucher_id)
        voucher_number = voucher.voucher_number
        old_values = self._snapshot(voucher)

        await self.store.delete(voucher.id)

        await create_audit_log(
            session=self.db,
            action=AuditAction.DELETE_VOUCHER,
            entity_type="PaymentVoucher",
            entity_id=voucher_id,
            user_id=deleted_by_id,
            entity_identifier=voucher_number,
            old_values=old_values,
        )
        logger.info("Deleted payment voucher %s", voucher_number)

        await self.db.commit()

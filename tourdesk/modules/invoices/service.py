"""Service for Invoices module."""

import logging
from datetime import date
from typing import Any

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.audit import AuditAction, create_audit_log
from tourdesk.core.documents import (
    NumberedDocumentService,
    SqlAlchemyDocumentStore,
    derive_due_and_status,
    get_family,
    recompute_financials,
)
from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.modules.invoices.models import Invoice, InvoiceLine
from tourdesk.modules.invoices.schemas import (
    InvoiceCreate,
    InvoiceFilters,
    InvoiceLineCreate,
    InvoiceUpdate,
)
from tourdesk.shared.utils.money import round_money

logger = logging.getLogger(__name__)

_SCALAR_FIELDS = (
    "invoice_date",
    "subtotal",
    "discount",
    "tax",
    "gst_percent",
    "total",
    "advance_paid",
    "payment_method",
    "status",
    "notes",
)
_NOT_NULL_FIELDS = {
    "invoice_date",
    "subtotal",
    "discount",
    "tax",
    "gst_percent",
    "total",
    "advance_paid",
    "payment_method",
}
_DETAIL_FIELDS = ("hotel_details", "tour_details", "transport_details")
_AUDITED_FIELDS = ("total", "advance_paid", "due_amount", "status")


def _details_to_json(details) -> dict | None:
    return details.model_dump(mode="json") if details is not None else None


class InvoiceService:
    """Service for managing hotel and tour invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = SqlAlchemyDocumentStore(
            db, Invoice, "invoice_number", family_attr="invoice_type"
        )
        self.numbering = NumberedDocumentService(self.store)

    # --- Helper Methods ---

    @staticmethod
    def _build_lines(items: list[InvoiceLineCreate]) -> list[InvoiceLine]:
        return [
            InvoiceLine(
                position=index,
                description=item.description,
                quantity=item.quantity,
                price=round_money(item.price),
                line_total=round_money(item.price * item.quantity),
            )
            for index, item in enumerate(items)
        ]

    @staticmethod
    def _snapshot(invoice: Invoice) -> dict[str, Any]:
        return {name: getattr(invoice, name) for name in _AUDITED_FIELDS}

    # --- Invoice CRUD ---

    async def create_invoice(self, data: InvoiceCreate, created_by_id: int | None) -> Invoice:
        """Create an invoice under the next HTL/TUR number of its type."""
        family = get_family(data.invoice_type.value)
        derived = derive_due_and_status(
            data.total, data.advance_paid, data.status.value if data.status else None
        )

        def build(invoice_number: str) -> Invoice:
            return Invoice(
                invoice_number=invoice_number,
                invoice_type=data.invoice_type.value,
                invoice_date=data.invoice_date or date.today(),
                customer_name=data.customer.name,
                customer_phone=data.customer.phone,
                customer_email=data.customer.email,
                customer_address=data.customer.address,
                hotel_details=_details_to_json(data.hotel_details),
                tour_details=_details_to_json(data.tour_details),
                transport_details=_details_to_json(data.transport_details),
                subtotal=round_money(data.subtotal),
                discount=round_money(data.discount),
                tax=round_money(data.tax),
                gst_percent=data.gst_percent,
                total=round_money(data.total),
                advance_paid=round_money(data.advance_paid),
                due_amount=derived.due_amount,
                payment_method=data.payment_method,
                status=derived.status,
                notes=data.notes,
                created_by_id=created_by_id,
                lines=self._build_lines(data.line_items),
            )

        invoice = await self.numbering.create_with_retry(family, build)

        await create_audit_log(
            session=self.db,
            action=AuditAction.CREATE_INVOICE,
            entity_type="Invoice",
            entity_id=invoice.id,
            user_id=created_by_id,
            entity_identifier=invoice.invoice_number,
            new_values={
                "invoice_type": invoice.invoice_type,
                "customer_name": invoice.customer_name,
                **self._snapshot(invoice),
            },
        )
        logger.info("Created invoice %s", invoice.invoice_number)

        await self.db.commit()
        return await self.get_invoice_by_id(invoice.id)

    async def get_invoice_by_id(self, invoice_id: int) -> Invoice:
        """Get invoice by ID with lines loaded."""
        invoice = await self.store.find_by_id(invoice_id)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def list_invoices(self, filters: InvoiceFilters) -> tuple[list[Invoice], int]:
        """List invoices with filters, newest first."""
        conditions = []
        if filters.invoice_type is not None:
            conditions.append(Invoice.invoice_type == filters.invoice_type.value)
        if filters.status is not None:
            conditions.append(Invoice.status == filters.status.value)
        if filters.search:
            search_term = f"%{filters.search}%"
            conditions.append(
                or_(
                    Invoice.invoice_number.ilike(search_term),
                    Invoice.customer_name.ilike(search_term),
                    Invoice.customer_email.ilike(search_term),
                )
            )

        return await self.store.find_page(
            conditions,
            order_by=[Invoice.created_at.desc(), Invoice.id.desc()],
            skip=(filters.page - 1) * filters.limit,
            limit=filters.limit,
        )

    async def update_invoice(
        self, invoice_id: int, data: InvoiceUpdate, updated_by_id: int | None
    ) -> Invoice:
        """
        Apply a partial update.

        Changing total or advance_paid recomputes due_amount against the stored
        value of whichever of the two is not in the payload, and resets status
        to paid/pending unless the payload sets status itself.
        """
        invoice = await self.get_invoice_by_id(invoice_id)
        changes = data.model_dump(exclude_unset=True)

        fields: dict[str, Any] = {}
        for name in _SCALAR_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if value is None:
                if name == "status":
                    continue
                if name in _NOT_NULL_FIELDS:
                    raise ValidationError(f"{name} cannot be null", field=name)
            if name == "status":
                value = str(value)
            fields[name] = value

        for name in ("subtotal", "discount", "tax", "total", "advance_paid"):
            if name in fields:
                fields[name] = round_money(fields[name])

        if "customer" in changes:
            if data.customer is None:
                raise ValidationError("customer cannot be null", field="customer")
            fields.update(
                customer_name=data.customer.name,
                customer_phone=data.customer.phone,
                customer_email=data.customer.email,
                customer_address=data.customer.address,
            )

        for name in _DETAIL_FIELDS:
            if name in changes:
                fields[name] = _details_to_json(getattr(data, name))

        fields = recompute_financials(
            fields,
            current_total=invoice.total,
            current_advance=invoice.advance_paid,
            advance_field="advance_paid",
            due_field="due_amount",
        )

        old_values = self._snapshot(invoice)
        if "line_items" in changes and data.line_items is not None:
            invoice.lines = self._build_lines(data.line_items)

        invoice = await self.store.update(invoice.id, fields)

        await create_audit_log(
            session=self.db,
            action=AuditAction.UPDATE_INVOICE,
            entity_type="Invoice",
            entity_id=invoice.id,
            user_id=updated_by_id,
            entity_identifier=invoice.invoice_number,
            old_values=old_values,
            new_values=self._snapshot(invoice),
        )

        await self.db.commit()
        return await self.get_invoice_by_id(invoice.id)

    async def delete_invoice(self, invoice_id: int, deleted_by_id: int | None) -> None:
        """Hard-delete an invoice and its lines."""
        invoice = await self.get_invoice_by_id(invoice_id)
        invoice_number = invoice.invoice_number
        old_values = self._snapshot(invoice)

        await self.store.delete(invoice.id)

        await create_audit_log(
            session=self.db,
            action=AuditAction.DELETE_INVOICE,
            entity_type="Invoice",
            entity_id=invoice_id,
            user_id=deleted_by_id,
            entity_identifier=invoice_number,
            old_values=old_values,
        )
        logger.info("Deleted invoice %s", invoice_number)

        await self.db.commit()

"""API endpoints for Invoices module."""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.auth.dependencies import StaffUser
from tourdesk.core.database.session import get_db
from tourdesk.core.documents import DocumentStatus
from tourdesk.core.pdf import build_invoice_context, pdf_service
from tourdesk.modules.invoices.models import Invoice, InvoiceType
from tourdesk.modules.invoices.schemas import (
    CustomerInfo,
    InvoiceCreate,
    InvoiceFilters,
    InvoiceLineResponse,
    InvoiceResponse,
    InvoiceSummary,
    InvoiceUpdate,
)
from tourdesk.modules.invoices.service import InvoiceService
from tourdesk.shared.schemas.base import ApiResponse, MessageResponse, PaginatedResponse

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def _invoice_to_response(invoice: Invoice) -> InvoiceResponse:
    """Convert Invoice model to response schema."""
    return InvoiceResponse(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        invoice_type=invoice.invoice_type,
        invoice_date=invoice.invoice_date,
        customer=CustomerInfo(
            name=invoice.customer_name,
            phone=invoice.customer_phone,
            email=invoice.customer_email,
            address=invoice.customer_address,
        ),
        hotel_details=invoice.hotel_details,
        tour_details=invoice.tour_details,
        transport_details=invoice.transport_details,
        line_items=[InvoiceLineResponse.model_validate(line) for line in invoice.lines],
        subtotal=float(invoice.subtotal),
        discount=float(invoice.discount),
        tax=float(invoice.tax),
        gst_percent=float(invoice.gst_percent),
        total=float(invoice.total),
        advance_paid=float(invoice.advance_paid),
        due_amount=float(invoice.due_amount),
        payment_method=invoice.payment_method,
        status=invoice.status,
        notes=invoice.notes,
        created_by_id=invoice.created_by_id,
        created_by_name=invoice.created_by.full_name if invoice.created_by else None,
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
    )


def _invoice_to_summary(invoice: Invoice) -> InvoiceSummary:
    """Convert Invoice model to summary schema."""
    return InvoiceSummary.model_validate(invoice)


# --- Invoice CRUD ---


@router.post(
    "",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Create a hotel or tour invoice. The invoice number is generated."""
    service = InvoiceService(db)
    invoice = await service.create_invoice(data, current_user.id)
    return ApiResponse(
        success=True,
        message="Invoice created successfully",
        data=_invoice_to_response(invoice),
    )


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[InvoiceSummary]],
)
async def list_invoices(
    current_user: StaffUser,
    invoice_type: InvoiceType | None = Query(None),
    status: DocumentStatus | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List invoices with filters, newest first."""
    service = InvoiceService(db)
    filters = InvoiceFilters(
        invoice_type=invoice_type,
        status=status,
        search=search,
        page=page,
        limit=limit,
    )
    invoices, total = await service.list_invoices(filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[_invoice_to_summary(inv) for inv in invoices],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get(
    "/{invoice_id}",
    response_model=ApiResponse[InvoiceResponse],
)
async def get_invoice(
    invoice_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Get invoice by ID with all lines."""
    service = InvoiceService(db)
    invoice = await service.get_invoice_by_id(invoice_id)
    return ApiResponse(success=True, data=_invoice_to_response(invoice))


@router.put(
    "/{invoice_id}",
    response_model=ApiResponse[InvoiceResponse],
)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Partially update an invoice; due amount follows total and advance."""
    service = InvoiceService(db)
    invoice = await service.update_invoice(invoice_id, data, current_user.id)
    return ApiResponse(
        success=True,
        message="Invoice updated successfully",
        data=_invoice_to_response(invoice),
    )


@router.delete(
    "/{invoice_id}",
    response_model=MessageResponse,
)
async def delete_invoice(
    invoice_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Delete an invoice permanently."""
    service = InvoiceService(db)
    await service.delete_invoice(invoice_id, current_user.id)
    return MessageResponse(message="Invoice deleted successfully")


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Download invoice as PDF."""
    service = InvoiceService(db)
    invoice = await service.get_invoice_by_id(invoice_id)
    context = build_invoice_context(invoice)
    pdf_bytes = pdf_service.generate_invoice_pdf(context)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="invoice_{invoice.invoice_number}.pdf"'
        },
    )

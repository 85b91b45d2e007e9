"""API endpoints for Payment Vouchers module."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.auth.dependencies import StaffUser
from tourdesk.core.database.session import get_db
from tourdesk.core.pdf import build_voucher_context, pdf_service
from tourdesk.modules.payment_vouchers.models import PaymentVoucher
from tourdesk.modules.payment_vouchers.schemas import (
    PaymentVoucherCreate,
    PaymentVoucherFilters,
    PaymentVoucherList,
    PaymentVoucherResponse,
    PaymentVoucherUpdate,
)
from tourdesk.modules.payment_vouchers.service import PaymentVoucherService
from tourdesk.shared.schemas.base import ApiResponse, MessageResponse

router = APIRouter(prefix="/payment-vouchers", tags=["Payment Vouchers"])


def _voucher_to_response(voucher: PaymentVoucher) -> PaymentVoucherResponse:
    """Convert PaymentVoucher model to response schema."""
    return PaymentVoucherResponse(
        id=voucher.id,
        voucher_number=voucher.voucher_number,
        voucher_date=voucher.voucher_date,
        payee_name=voucher.payee_name,
        contact=voucher.contact,
        address=voucher.address,
        tour_code=voucher.tour_code,
        category=voucher.category,
        expense_other=voucher.expense_other,
        description=voucher.description,
        advance=float(voucher.advance),
        total=float(voucher.total),
        due=float(voucher.due),
        payment_method=voucher.payment_method,
        status=voucher.status,
        created_by_id=voucher.created_by_id,
        created_by_name=voucher.created_by.full_name if voucher.created_by else None,
        created_at=voucher.created_at,
        updated_at=voucher.updated_at,
    )


@router.post(
    "",
    response_model=ApiResponse[PaymentVoucherResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_voucher(
    data: PaymentVoucherCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Create a payment voucher. The voucher number is generated."""
    service = PaymentVoucherService(db)
    voucher = await service.create_voucher(data, current_user.id)
    return ApiResponse(
        success=True,
        message="Payment voucher created successfully",
        data=_voucher_to_response(voucher),
    )


@router.get(
    "",
    response_model=ApiResponse[PaymentVoucherList],
)
async def list_vouchers(
    current_user: StaffUser,
    category: str | None = Query(None, pattern="^(all|hotel|transport|food|guide|other)$"),
    search: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List vouchers with filters, plus expense totals over the same filters."""
    service = PaymentVoucherService(db)
    filters = PaymentVoucherFilters(
        category=category,
        search=search,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    vouchers, total = await service.list_vouchers(filters)
    summary = await service.get_summary(filters)
    return ApiResponse(
        success=True,
        data=PaymentVoucherList(
            items=[_voucher_to_response(v) for v in vouchers],
            total=total,
            page=page,
            limit=limit,
            pages=(total + limit - 1) // limit,
            summary=summary,
        ),
    )


@router.get(
    "/{voucher_id}",
    response_model=ApiResponse[PaymentVoucherResponse],
)
async def get_voucher(
    voucher_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Get payment voucher by ID."""
    service = PaymentVoucherService(db)
    voucher = await service.get_voucher_by_id(voucher_id)
    return ApiResponse(success=True, data=_voucher_to_response(voucher))


@router.put(
    "/{voucher_id}",
    response_model=ApiResponse[PaymentVoucherResponse],
)
async def update_voucher(
    voucher_id: int,
    data: PaymentVoucherUpdate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Partially update a payment voucher."""
    service = PaymentVoucherService(db)
    voucher = await service.update_voucher(voucher_id, data, current_user.id)
    return ApiResponse(
        success=True,
        message="Payment voucher updated successfully",
        data=_voucher_to_response(voucher),
    )


@router.delete(
    "/{voucher_id}",
    response_model=MessageResponse,
)
async def delete_voucher(
    voucher_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Delete a payment voucher permanently."""
    service = PaymentVoucherService(db)
    await service.delete_voucher(voucher_id, current_user.id)
    return MessageResponse(message="Payment voucher deleted successfully")


@router.get("/{voucher_id}/pdf")
async def download_voucher_pdf(
    voucher_id: int,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db),
):
    """Download payment voucher as PDF."""
    service = PaymentVoucherService(db)
    voucher = await service.get_voucher_by_id(voucher_id)
    context = build_voucher_context(voucher)
    pdf_bytes = pdf_service.generate_voucher_pdf(context)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="voucher_{voucher.voucher_number}.pdf"'
        },
    )

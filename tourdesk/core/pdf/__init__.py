from tourdesk.core.pdf.service import (
    amount_to_words,
    build_invoice_context,
    build_voucher_context,
    format_inr,
    image_to_data_uri,
    pdf_service,
)

__all__ = [
    "amount_to_words",
    "build_invoice_context",
    "build_voucher_context",
    "format_inr",
    "image_to_data_uri",
    "pdf_service",
]

"""PDF generation (invoice and payment voucher) from HTML templates."""

import base64
from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from num2words import num2words

from tourdesk.core.config import settings
from tourdesk.core.exceptions import PdfGenerationUnavailableError

TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "pdf"

INVOICE_TERMS = (
    "Check-in and check-out timings as per hotel policy.",
    "Any damage to property will be charged to the guest.",
    "Smoking is prohibited inside rooms.",
    "Outside food and alcohol not allowed.",
    "Cancellation as per company policy.",
)


def amount_to_words(amount: Decimal | float) -> str:
    """Convert amount to words (e.g. 25000 -> 'Twenty-Five Thousand Rupees Only')."""
    amount_int = int(round(float(amount), 0))
    words = num2words(amount_int, lang="en_IN").title()
    return f"{words} Rupees Only"


def format_inr(amount: Decimal | float | None) -> str:
    """Indian digit grouping: 1234567.5 -> '12,34,567.50'."""
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"))
    sign = "-" if value < 0 else ""
    whole, fraction = f"{abs(value):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{fraction}"


class PDFService:
    """Generate PDF documents from Jinja2 templates and WeasyPrint."""

    def __init__(self) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=True,
        )
        self._env.filters["inr"] = format_inr

    def render_html(self, template_name: str, context: dict) -> str:
        return self._env.get_template(template_name).render(**context)

    def _write_pdf(self, html_content: str) -> bytes:
        try:
            from weasyprint import HTML
        except (OSError, ImportError) as e:
            raise PdfGenerationUnavailableError(
                f"PDF generation unavailable (WeasyPrint/system libs). On macOS: brew install pango glib. {e!s}"
            ) from e
        try:
            return HTML(string=html_content).write_pdf()
        except Exception as e:
            raise PdfGenerationUnavailableError(str(e)) from e

    def generate_invoice_pdf(self, context: dict) -> bytes:
        """Render invoice template with context and return PDF bytes."""
        return self._write_pdf(self.render_html("invoice.html", context))

    def generate_voucher_pdf(self, context: dict) -> bytes:
        """Render payment voucher template with context and return PDF bytes."""
        return self._write_pdf(self.render_html("voucher.html", context))


def image_to_data_uri(content: bytes, content_type: str) -> str:
    """Convert image bytes to data URI for embedding in HTML."""
    b64 = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{b64}"


def _asset_data_uri(name: str) -> str | None:
    """Logo/stamp shipped next to the templates; absent files are skipped."""
    path = TEMPLATE_DIR / "assets" / name
    if not path.is_file():
        return None
    return image_to_data_uri(path.read_bytes(), "image/png")


def build_invoice_context(invoice) -> dict:
    """Build template context for invoice PDF from the ORM model and settings."""
    lines = [
        {
            "description": line.description,
            "quantity": line.quantity,
            "price": float(line.price),
            "line_total": float(line.line_total),
        }
        for line in invoice.lines
    ]

    return {
        "invoice": {
            "title": invoice.title,
            "invoice_number": invoice.invoice_number,
            "invoice_type": invoice.invoice_type,
            "invoice_date": invoice.invoice_date,
            "customer": {
                "name": invoice.customer_name,
                "phone": invoice.customer_phone or "",
                "email": invoice.customer_email or "",
                "address": invoice.customer_address or "",
            },
            "hotel_details": invoice.hotel_details or {},
            "tour_details": invoice.tour_details or {},
            "transport_details": invoice.transport_details or {},
            "lines": lines,
            "subtotal": float(invoice.subtotal),
            "discount": float(invoice.discount),
            "tax": float(invoice.tax),
            "gst_percent": float(invoice.gst_percent),
            "total": float(invoice.total),
            "advance_paid": float(invoice.advance_paid),
            "due_amount": float(invoice.due_amount),
            "payment_method": invoice.payment_method,
            "status": invoice.status,
            "notes": invoice.notes or "",
        },
        "amount_in_words": amount_to_words(invoice.total),
        "terms": INVOICE_TERMS,
        "agency_info": settings.agency_info,
        "currency": settings.currency_symbol,
        "logo_data_uri": _asset_data_uri("logo.png"),
        "generated_at": invoice.updated_at or invoice.created_at,
    }


def build_voucher_context(voucher) -> dict:
    """Build template context for payment voucher PDF."""
    created_by_name = voucher.created_by.full_name if voucher.created_by else "System"

    return {
        "voucher": {
            "voucher_number": voucher.voucher_number,
            "voucher_date": voucher.voucher_date,
            "payee_name": voucher.payee_name,
            "contact": voucher.contact or "N/A",
            "address": voucher.address or "N/A",
            "tour_code": voucher.tour_code or "N/A",
            "category": voucher.category.capitalize(),
            "expense_other": voucher.expense_other or "",
            "description": voucher.description or "N/A",
            "payment_method": voucher.payment_method.upper()
            if voucher.payment_method == "upi"
            else voucher.payment_method.capitalize(),
            "total": float(voucher.total),
            "advance": float(voucher.advance),
            "due": float(voucher.due),
            "status": voucher.status,
            "created_by_name": created_by_name,
            "created_at": voucher.created_at,
        },
        "amount_in_words": amount_to_words(voucher.total),
        "agency_info": settings.agency_info,
        "currency": settings.currency_symbol,
        "logo_data_uri": _asset_data_uri("logo.png"),
        "stamp_data_uri": _asset_data_uri("stamp.png"),
        "generated_at": voucher.updated_at or voucher.created_at,
    }


pdf_service = PDFService()

"""Document families: which prefix and zero-padding a numbered document gets."""

from dataclasses import dataclass
from enum import StrEnum

from tourdesk.core.config import settings


class FamilyName(StrEnum):
    """Families with independent number sequences."""

    HOTEL = "hotel"
    TOUR = "tour"
    PAYMENT_VOUCHER = "payment_voucher"


@dataclass(frozen=True)
class DocumentFamily:
    name: str
    prefix: str
    pad_width: int


def get_family(name: str | FamilyName) -> DocumentFamily:
    """Resolve a family from current settings (HTL/TUR width 4, PAY width 3 by default)."""
    name = FamilyName(name)
    if name == FamilyName.HOTEL:
        return DocumentFamily(name.value, settings.hotel_invoice_prefix, settings.invoice_number_width)
    if name == FamilyName.TOUR:
        return DocumentFamily(name.value, settings.tour_invoice_prefix, settings.invoice_number_width)
    return DocumentFamily(name.value, settings.voucher_prefix, settings.voucher_number_width)


def is_well_formed_identifier(identifier: str, prefix: str) -> bool:
    """True for prefix followed by one or more ASCII digits."""
    if not identifier.startswith(prefix):
        return False
    digits = identifier[len(prefix):]
    return bool(digits) and digits.isascii() and digits.isdigit()

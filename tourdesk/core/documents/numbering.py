"""
Sequential document numbers (HTL0001, TUR0042, PAY007) and due/status derivation.

Numbers are allocated optimistically: read the latest number of the family,
add one, insert, and start over when the unique constraint reports that a
concurrent writer took the number first. Numbers may be skipped under
contention but are never shared.
"""

import asyncio
import logging
from collections.abc import Callable
from decimal import Decimal
from enum import StrEnum
from typing import Any, NamedTuple, TypeVar

from tourdesk.core.config import settings
from tourdesk.core.documents.families import DocumentFamily, is_well_formed_identifier
from tourdesk.core.documents.store import DocumentStore
from tourdesk.core.exceptions import DuplicateIdentifierError, MalformedIdentifierError
from tourdesk.shared.utils.money import ZERO, round_money, to_money

logger = logging.getLogger(__name__)

DocT = TypeVar("DocT")


class DocumentStatus(StrEnum):
    """Payment status shared by invoices and vouchers."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class DueAndStatus(NamedTuple):
    due_amount: Decimal
    status: str


def format_identifier(prefix: str, value: int, pad_width: int) -> str:
    """Prefix + zero-padded value. Values wider than pad_width are kept whole."""
    return f"{prefix}{str(value).zfill(pad_width)}"


def parse_sequence_number(identifier: str, prefix: str) -> int:
    """
    Numeric part of an identifier.

    Raises:
        MalformedIdentifierError: prefix mismatch or a non-digit suffix
    """
    if not is_well_formed_identifier(identifier, prefix):
        raise MalformedIdentifierError(identifier, prefix)
    return int(identifier[len(prefix):])


def derive_due_and_status(
    total: Decimal | float | int | str | None,
    amount_paid_in_advance: Decimal | float | int | str | None,
    explicit_status: str | None = None,
    clamp: bool = True,
) -> DueAndStatus:
    """
    Outstanding amount and default status.

    Overpayment clamps the due amount to zero unless clamp is False.
    The derived status is only ever paid or pending; overdue must be explicit.
    """
    due = round_money(to_money(total) - to_money(amount_paid_in_advance))
    if clamp and due < ZERO:
        due = ZERO
    if explicit_status:
        status = str(explicit_status)
    elif due <= ZERO:
        status = DocumentStatus.PAID.value
    else:
        status = DocumentStatus.PENDING.value
    return DueAndStatus(due, status)


def recompute_financials(
    changes: dict[str, Any],
    *,
    current_total: Decimal,
    current_advance: Decimal,
    total_field: str = "total",
    advance_field: str = "advance",
    due_field: str = "due",
    clamp: bool = True,
) -> dict[str, Any]:
    """
    Add due amount and status to a partial update touching total or advance.

    Fields missing from ``changes`` are taken from the persisted values.
    An explicit status in ``changes`` is kept as is.
    """
    if total_field not in changes and advance_field not in changes:
        return changes

    total = changes.get(total_field, current_total)
    advance = changes.get(advance_field, current_advance)
    derived = derive_due_and_status(total, advance, changes.get("status"), clamp=clamp)

    updated = dict(changes)
    updated[due_field] = derived.due_amount
    updated["status"] = derived.status
    return updated


class NumberedDocumentService:
    """Allocates the next number of a family and persists documents under it."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        max_attempts: int | None = None,
        retry_backoff_ms: int | None = None,
        strict: bool | None = None,
    ):
        self.store = store
        self.max_attempts = (
            settings.document_number_max_attempts if max_attempts is None else max_attempts
        )
        self.retry_backoff_ms = (
            settings.document_number_retry_backoff_ms if retry_backoff_ms is None else retry_backoff_ms
        )
        self.strict = settings.strict_document_numbers if strict is None else strict

    async def next_identifier(self, family: DocumentFamily) -> str:
        """Latest number of the family plus one, or 1 for an empty family."""
        latest = await self.store.find_max_identifier(family)

        next_value = 1
        if latest is not None:
            try:
                next_value = parse_sequence_number(latest, family.prefix) + 1
            except MalformedIdentifierError:
                if self.strict:
                    raise
                logger.warning(
                    "Latest %s number %r is malformed, restarting sequence at 1",
                    family.name,
                    latest,
                )

        identifier = format_identifier(family.prefix, next_value, family.pad_width)
        logger.debug("Generated %s number %s (latest: %s)", family.name, identifier, latest or "none")
        return identifier

    async def create_with_retry(
        self,
        family: DocumentFamily,
        build_document: Callable[[str], DocT],
        max_attempts: int | None = None,
    ) -> DocT:
        """
        Build and insert a document under a fresh number.

        ``build_document`` receives the identifier and returns an unsaved document.
        Duplicate numbers are retried with a re-read of the store; anything else
        propagates at once.

        Raises:
            DuplicateIdentifierError: every attempt lost the race
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        for attempt in range(1, attempts + 1):
            identifier = await self.next_identifier(family)
            document = build_document(identifier)
            try:
                return await self.store.insert_unique(document)
            except DuplicateIdentifierError:
                if attempt == attempts:
                    logger.error(
                        "Giving up on %s number after %d duplicate attempts (last: %s)",
                        family.name,
                        attempts,
                        identifier,
                    )
                    raise
                logger.warning(
                    "Duplicate %s number %s, retrying (attempt %d of %d)",
                    family.name,
                    identifier,
                    attempt + 1,
                    attempts,
                )
                if self.retry_backoff_ms > 0:
                    await asyncio.sleep(self.retry_backoff_ms * attempt / 1000)

        raise AssertionError("unreachable")

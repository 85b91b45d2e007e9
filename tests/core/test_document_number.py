import asyncio
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.documents import (
    DocumentFamily,
    DocumentStatus,
    NumberedDocumentService,
    SqlAlchemyDocumentStore,
    derive_due_and_status,
    format_identifier,
    get_family,
    is_well_formed_identifier,
    parse_sequence_number,
    recompute_financials,
)
from tourdesk.core.exceptions import DuplicateIdentifierError, MalformedIdentifierError
from tourdesk.modules.invoices.models import Invoice
from tourdesk.modules.payment_vouchers.models import PaymentVoucher

HOTEL = DocumentFamily("hotel", "HTL", 4)
TOUR = DocumentFamily("tour", "TUR", 4)
VOUCHERS = DocumentFamily("payment_voucher", "PAY", 3)


@dataclass
class FakeDocument:
    family: str
    identifier: str
    id: int | None = None


@dataclass
class MemoryDocumentStore:
    """In-memory store that yields to the loop between read and write."""

    documents: list[FakeDocument] = field(default_factory=list)
    insert_attempts: int = 0

    async def find_max_identifier(self, family: DocumentFamily) -> str | None:
        await asyncio.sleep(0)
        identifiers = [d.identifier for d in self.documents if d.family == family.name]
        well_formed = [i for i in identifiers if is_well_formed_identifier(i, family.prefix)]
        if well_formed:
            return max(well_formed, key=lambda i: (len(i), i))
        return max(identifiers, default=None)

    async def insert_unique(self, document: FakeDocument) -> FakeDocument:
        self.insert_attempts += 1
        await asyncio.sleep(0)
        if any(d.identifier == document.identifier for d in self.documents):
            raise DuplicateIdentifierError("Document", "identifier", document.identifier)
        document.id = len(self.documents) + 1
        self.documents.append(document)
        return document


class StaleMemoryStore(MemoryDocumentStore):
    """Always reports an outdated maximum, so every insert collides."""

    async def find_max_identifier(self, family: DocumentFamily) -> str | None:
        return "HTL0001"


class BrokenMemoryStore(MemoryDocumentStore):
    async def insert_unique(self, document: FakeDocument) -> FakeDocument:
        self.insert_attempts += 1
        raise ConnectionError("store unreachable")


def _builder(family: DocumentFamily):
    return lambda identifier: FakeDocument(family.name, identifier)


class TestIdentifierFormat:
    def test_pads_to_width(self):
        assert format_identifier("HTL", 7, 4) == "HTL0007"
        assert format_identifier("PAY", 8, 3) == "PAY008"

    def test_wider_values_are_not_truncated(self):
        assert format_identifier("HTL", 12345, 4) == "HTL12345"

    def test_parse(self):
        assert parse_sequence_number("HTL0042", "HTL") == 42
        assert parse_sequence_number("PAY007", "PAY") == 7
        assert parse_sequence_number("HTL12345", "HTL") == 12345

    @pytest.mark.parametrize("identifier", ["HTL00AB", "HTL", "TUR0001", "HTL-001", "HTL００１"])
    def test_parse_rejects_malformed(self, identifier: str):
        with pytest.raises(MalformedIdentifierError) as exc_info:
            parse_sequence_number(identifier, "HTL")
        assert exc_info.value.identifier == identifier

    def test_families_from_settings(self):
        assert get_family("hotel") == HOTEL
        assert get_family("tour") == TOUR
        assert get_family("payment_voucher") == VOUCHERS


class TestNextIdentifier:
    async def test_empty_family_starts_at_one(self):
        service = NumberedDocumentService(MemoryDocumentStore())
        assert await service.next_identifier(HOTEL) == "HTL0001"
        assert await service.next_identifier(VOUCHERS) == "PAY001"

    async def test_increments_latest(self):
        store = MemoryDocumentStore([FakeDocument("hotel", "HTL0042")])
        service = NumberedDocumentService(store)
        assert await service.next_identifier(HOTEL) == "HTL0043"

    async def test_voucher_increments_latest(self):
        store = MemoryDocumentStore([FakeDocument("payment_voucher", "PAY007")])
        service = NumberedDocumentService(store)
        assert await service.next_identifier(VOUCHERS) == "PAY008"

    async def test_families_are_independent(self):
        store = MemoryDocumentStore(
            [FakeDocument("hotel", "HTL0042"), FakeDocument("tour", "TUR0005")]
        )
        service = NumberedDocumentService(store)
        assert await service.next_identifier(HOTEL) == "HTL0043"
        assert await service.next_identifier(TOUR) == "TUR0006"

    async def test_grows_past_pad_width(self):
        store = MemoryDocumentStore([FakeDocument("hotel", "HTL9999")])
        service = NumberedDocumentService(store)
        assert await service.next_identifier(HOTEL) == "HTL10000"

    async def test_malformed_latest_restarts_at_one(self):
        store = MemoryDocumentStore([FakeDocument("hotel", "HTL00AB")])
        service = NumberedDocumentService(store, strict=False)
        assert await service.next_identifier(HOTEL) == "HTL0001"

    async def test_malformed_latest_raises_when_strict(self):
        store = MemoryDocumentStore([FakeDocument("hotel", "HTL00AB")])
        service = NumberedDocumentService(store, strict=True)
        with pytest.raises(MalformedIdentifierError):
            await service.next_identifier(HOTEL)


class TestCreateWithRetry:
    async def test_concurrent_creates_get_distinct_numbers(self):
        store = MemoryDocumentStore()
        service = NumberedDocumentService(store, retry_backoff_ms=0)
        n = 8

        documents = await asyncio.gather(
            *(service.create_with_retry(HOTEL, _builder(HOTEL), max_attempts=n) for _ in range(n))
        )

        identifiers = [d.identifier for d in documents]
        assert len(store.documents) == n
        assert len(set(identifiers)) == n

    async def test_commit_order_is_increasing(self):
        store = MemoryDocumentStore()
        service = NumberedDocumentService(store, retry_backoff_ms=0)
        n = 6

        await asyncio.gather(
            *(service.create_with_retry(HOTEL, _builder(HOTEL), max_attempts=n) for _ in range(n))
        )

        numbers = [parse_sequence_number(d.identifier, "HTL") for d in store.documents]
        assert numbers == list(range(1, n + 1))

    async def test_gives_up_after_max_attempts(self):
        store = StaleMemoryStore([FakeDocument("hotel", "HTL0002")])
        service = NumberedDocumentService(store, retry_backoff_ms=0)

        with pytest.raises(DuplicateIdentifierError):
            await service.create_with_retry(HOTEL, _builder(HOTEL), max_attempts=3)

        assert store.insert_attempts == 3
        assert [d.identifier for d in store.documents] == ["HTL0002"]

    async def test_constructor_attempts_apply_by_default(self):
        store = StaleMemoryStore([FakeDocument("hotel", "HTL0002")])
        service = NumberedDocumentService(store, max_attempts=2, retry_backoff_ms=0)

        with pytest.raises(DuplicateIdentifierError):
            await service.create_with_retry(HOTEL, _builder(HOTEL))

        assert store.insert_attempts == 2

    async def test_other_errors_are_not_retried(self):
        store = BrokenMemoryStore()
        service = NumberedDocumentService(store)

        with pytest.raises(ConnectionError):
            await service.create_with_retry(HOTEL, _builder(HOTEL), max_attempts=3)

        assert store.insert_attempts == 1

    async def test_rejects_zero_attempts(self):
        service = NumberedDocumentService(MemoryDocumentStore())
        with pytest.raises(ValueError):
            await service.create_with_retry(HOTEL, _builder(HOTEL), max_attempts=0)


class TestDueAndStatus:
    def test_fully_paid(self):
        result = derive_due_and_status(1000, 1000)
        assert result.due_amount == Decimal("0.00")
        assert result.status == DocumentStatus.PAID

    def test_partially_paid(self):
        result = derive_due_and_status(1000, 400)
        assert result.due_amount == Decimal("600.00")
        assert result.status == DocumentStatus.PENDING

    def test_overpayment_clamps_to_zero(self):
        result = derive_due_and_status(1000, 1500)
        assert result.due_amount == Decimal("0.00")
        assert result.status == DocumentStatus.PAID

    def test_unclamped(self):
        result = derive_due_and_status(1000, 1500, clamp=False)
        assert result.due_amount == Decimal("-500.00")
        assert result.status == DocumentStatus.PAID

    def test_explicit_status_wins(self):
        assert derive_due_and_status(1000, 0, "overdue").status == "overdue"
        assert derive_due_and_status(1000, 1000, "pending").status == "pending"

    def test_never_derives_overdue(self):
        statuses = {derive_due_and_status(1000, paid).status for paid in (0, 1, 999, 1000, 2000)}
        assert statuses == {"pending", "paid"}

    def test_none_amounts_count_as_zero(self):
        result = derive_due_and_status(None, None)
        assert result.due_amount == Decimal("0.00")
        assert result.status == "paid"


class TestRecomputeFinancials:
    def test_advance_only_reads_stored_total(self):
        fields = recompute_financials(
            {"advance": Decimal("1000")},
            current_total=Decimal("1000"),
            current_advance=Decimal("200"),
        )
        assert fields["due"] == Decimal("0.00")
        assert fields["status"] == "paid"

    def test_total_only_reads_stored_advance(self):
        fields = recompute_financials(
            {"total": Decimal("1500")},
            current_total=Decimal("1000"),
            current_advance=Decimal("200"),
        )
        assert fields["due"] == Decimal("1300.00")
        assert fields["status"] == "pending"

    def test_untouched_amounts_leave_changes_alone(self):
        changes = {"notes": "late checkout"}
        fields = recompute_financials(
            changes, current_total=Decimal("1000"), current_advance=Decimal("200")
        )
        assert fields == changes

    def test_explicit_status_is_kept(self):
        fields = recompute_financials(
            {"advance_paid": Decimal("0"), "status": "overdue"},
            current_total=Decimal("1000"),
            current_advance=Decimal("200"),
            advance_field="advance_paid",
            due_field="due_amount",
        )
        assert fields["due_amount"] == Decimal("1000.00")
        assert fields["status"] == "overdue"


def _invoice(number: str, invoice_type: str = "hotel") -> Invoice:
    return Invoice(
        invoice_number=number,
        invoice_type=invoice_type,
        invoice_date=date(2026, 1, 15),
        customer_name="Ananya Sen",
        total=Decimal("1000.00"),
    )


def _voucher(number: str) -> PaymentVoucher:
    return PaymentVoucher(
        voucher_number=number,
        voucher_date=date(2026, 1, 15),
        payee_name="Hotel Sea View",
        total=Decimal("500.00"),
    )


class TestSqlAlchemyDocumentStore:
    async def test_next_after_stored_invoice(self, db_session: AsyncSession):
        db_session.add_all([_invoice("HTL0041"), _invoice("HTL0042"), _invoice("TUR0100", "tour")])
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")
        service = NumberedDocumentService(store)

        assert await service.next_identifier(HOTEL) == "HTL0043"
        assert await service.next_identifier(TOUR) == "TUR0101"

    async def test_next_after_stored_voucher(self, db_session: AsyncSession):
        db_session.add(_voucher("PAY007"))
        await db_session.commit()

        service = NumberedDocumentService(SqlAlchemyDocumentStore(db_session, PaymentVoucher, "voucher_number"))

        assert await service.next_identifier(VOUCHERS) == "PAY008"

    async def test_orders_by_length_before_text(self, db_session: AsyncSession):
        db_session.add_all([_invoice("HTL9999"), _invoice("HTL10000")])
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")

        assert await store.find_max_identifier(HOTEL) == "HTL10000"
        assert await NumberedDocumentService(store).next_identifier(HOTEL) == "HTL10001"

    async def test_malformed_stored_number(self, db_session: AsyncSession):
        db_session.add(_invoice("HTL00AB"))
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")

        assert await NumberedDocumentService(store, strict=False).next_identifier(HOTEL) == "HTL0001"
        with pytest.raises(MalformedIdentifierError):
            await NumberedDocumentService(store, strict=True).next_identifier(HOTEL)

    async def test_longer_malformed_sibling_does_not_win(self, db_session: AsyncSession):
        db_session.add_all([_invoice("HTL0001"), _invoice("HTL0042"), _invoice("HTL-0042")])
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")

        assert await store.find_max_identifier(HOTEL) == "HTL0042"
        assert await NumberedDocumentService(store, strict=True).next_identifier(HOTEL) == "HTL0043"

    async def test_scan_pages_past_malformed_rows(self, db_session: AsyncSession):
        db_session.add_all(
            [_invoice("HTL0007")] + [_invoice(f"HTL-LEGACY-{n}") for n in range(5)]
        )
        await db_session.commit()

        store = SqlAlchemyDocumentStore(
            db_session, Invoice, "invoice_number", family_attr="invoice_type", scan_batch_size=2
        )

        assert await store.find_max_identifier(HOTEL) == "HTL0007"

    async def test_create_invoice_after_malformed_legacy_number(self, db_session: AsyncSession):
        db_session.add_all([_invoice("HTL0001"), _invoice("HTL0042"), _invoice("HTL-0042")])
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")
        saved = await NumberedDocumentService(store).create_with_retry(HOTEL, _invoice)

        assert saved.invoice_number == "HTL0043"

    async def test_duplicate_insert_is_reported_and_session_stays_usable(
        self, db_session: AsyncSession
    ):
        db_session.add(_invoice("HTL0001"))
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")

        with pytest.raises(DuplicateIdentifierError) as exc_info:
            await store.insert_unique(_invoice("HTL0001"))
        assert exc_info.value.identifier == "HTL0001"

        saved = await store.insert_unique(_invoice("HTL0002"))
        await db_session.commit()
        assert saved.id is not None

    async def test_create_with_retry_recovers_from_stale_read(self, db_session: AsyncSession):
        db_session.add(_invoice("HTL0001"))
        await db_session.commit()

        store = SqlAlchemyDocumentStore(db_session, Invoice, "invoice_number", family_attr="invoice_type")
        service = NumberedDocumentService(store, retry_backoff_ms=0)

        real_find_max = store.find_max_identifier
        calls = 0

        async def stale_first_read(family):
            nonlocal calls
            calls += 1
            if calls == 1:
                return None  # another writer's HTL0001 is not seen yet
            return await real_find_max(family)

        store.find_max_identifier = stale_first_read

        invoice = await service.create_with_retry(HOTEL, lambda number: _invoice(number))
        await db_session.commit()

        assert invoice.invoice_number == "HTL0002"
        assert calls == 2

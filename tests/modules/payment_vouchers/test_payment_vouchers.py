from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.config import settings
from tourdesk.core.exceptions import NotFoundError
from tourdesk.modules.payment_vouchers.models import PaymentVoucher
from tourdesk.modules.payment_vouchers.schemas import (
    PaymentVoucherCreate,
    PaymentVoucherFilters,
    PaymentVoucherUpdate,
)
from tourdesk.modules.payment_vouchers.service import PaymentVoucherService


def _voucher(**overrides) -> PaymentVoucherCreate:
    data = {
        "voucher_date": date(2026, 3, 11),
        "payee_name": "Sea View Hotel",
        "contact": "9830011111",
        "tour_code": "PURI-MAR",
        "category": "hotel",
        "description": "Two rooms for the Puri group",
        "total": Decimal("12000"),
        "advance": Decimal("2000"),
        "payment_method": "bank",
    }
    data.update(overrides)
    return PaymentVoucherCreate(**data)


class TestPaymentVoucherService:
    async def test_create_numbers_sequentially(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)

        first = await service.create_voucher(_voucher(), None)
        second = await service.create_voucher(_voucher(), None)

        assert first.voucher_number == "PAY001"
        assert second.voucher_number == "PAY002"

    async def test_create_continues_after_existing_number(self, db_session: AsyncSession):
        db_session.add(
            PaymentVoucher(
                voucher_number="PAY007",
                voucher_date=date(2026, 1, 2),
                payee_name="Legacy",
                total=Decimal("10"),
            )
        )
        await db_session.commit()

        voucher = await PaymentVoucherService(db_session).create_voucher(_voucher(), None)

        assert voucher.voucher_number == "PAY008"

    async def test_create_derives_due(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)

        voucher = await service.create_voucher(_voucher(), None)

        assert voucher.due == Decimal("10000.00")
        assert voucher.status == "pending"

    async def test_overpayment_is_clamped(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)

        voucher = await service.create_voucher(_voucher(advance=Decimal("15000")), None)

        assert voucher.due == Decimal("0.00")
        assert voucher.status == "paid"

    async def test_overpayment_unclamped_when_configured(
        self, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(settings, "clamp_voucher_due", False)
        service = PaymentVoucherService(db_session)

        voucher = await service.create_voucher(_voucher(advance=Decimal("15000")), None)

        assert voucher.due == Decimal("-3000.00")
        assert voucher.status == "paid"

    async def test_expense_other_only_for_other_category(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)

        hotel = await service.create_voucher(_voucher(expense_other="Parking"), None)
        other = await service.create_voucher(
            _voucher(category="other", expense_other="Parking"), None
        )

        assert hotel.expense_other is None
        assert other.expense_other == "Parking"
        assert other.expense_label == "Parking"

    async def test_partial_update_reads_stored_total(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)
        voucher = await service.create_voucher(_voucher(total=Decimal("1000"), advance=Decimal("200")), None)

        updated = await service.update_voucher(voucher.id, PaymentVoucherUpdate(advance=Decimal("1000")), None)

        assert updated.total == Decimal("1000.00")
        assert updated.due == Decimal("0.00")
        assert updated.status == "paid"

    async def test_update_category_clears_expense_other(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)
        voucher = await service.create_voucher(_voucher(category="other", expense_other="Tolls"), None)

        updated = await service.update_voucher(
            voucher.id, PaymentVoucherUpdate(category="transport"), None
        )

        assert updated.category == "transport"
        assert updated.expense_other is None
        assert updated.voucher_number == voucher.voucher_number

    async def test_explicit_status_on_update(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)
        voucher = await service.create_voucher(_voucher(), None)

        updated = await service.update_voucher(
            voucher.id, PaymentVoucherUpdate(status="overdue"), None
        )

        assert updated.status == "overdue"
        assert updated.due == Decimal("10000.00")

    async def test_delete(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)
        voucher = await service.create_voucher(_voucher(), None)

        await service.delete_voucher(voucher.id, None)

        with pytest.raises(NotFoundError):
            await service.get_voucher_by_id(voucher.id)

    async def test_list_and_summary(self, db_session: AsyncSession):
        service = PaymentVoucherService(db_session)
        await service.create_voucher(_voucher(voucher_date=date(2026, 3, 1)), None)
        await service.create_voucher(
            _voucher(
                voucher_date=date(2026, 3, 20),
                payee_name="Himalaya Cabs",
                category="transport",
                tour_code="SIK-APR",
                total=Decimal("8000"),
                advance=Decimal("8000"),
            ),
            None,
        )
        await service.create_voucher(
            _voucher(voucher_date=date(2026, 2, 15), total=Decimal("500"), advance=Decimal("0")),
            None,
        )

        everything = PaymentVoucherFilters(category="all")
        items, total = await service.list_vouchers(everything)
        summary = await service.get_summary(everything, today=date(2026, 3, 25))

        assert total == 3
        assert len(items) == 3
        assert summary.total_expenses == 20500.0
        assert summary.total_advance == 10000.0
        assert summary.total_due == 10500.0
        assert summary.monthly_expenses == 20000.0

        transport = PaymentVoucherFilters(category="transport")
        items, total = await service.list_vouchers(transport)
        assert total == 1
        assert items[0].payee_name == "Himalaya Cabs"
        assert (await service.get_summary(transport, today=date(2026, 3, 25))).total_expenses == 8000.0

        february = PaymentVoucherFilters(date_from=date(2026, 2, 1), date_to=date(2026, 2, 28))
        items, total = await service.list_vouchers(february)
        assert total == 1
        assert items[0].total == Decimal("500.00")

        by_tour_code, total = await service.list_vouchers(PaymentVoucherFilters(search="sik-apr"))
        assert total == 1

    async def test_summary_of_empty_filter(self, db_session: AsyncSession):
        summary = await PaymentVoucherService(db_session).get_summary(PaymentVoucherFilters())

        assert summary.total_expenses == 0.0
        assert summary.monthly_expenses == 0.0


class TestPaymentVoucherSchemas:
    def test_payee_name_too_short(self):
        with pytest.raises(ValueError):
            _voucher(payee_name=" A ")

    def test_update_payee_is_stripped(self):
        assert PaymentVoucherUpdate(payee_name="  Sea View Hotel ").payee_name == "Sea View Hotel"

    def test_update_rejects_blank_payee(self):
        with pytest.raises(ValueError):
            PaymentVoucherUpdate(payee_name="    ")

    def test_unknown_payment_method(self):
        with pytest.raises(ValueError):
            _voucher(payment_method="cheque")

    def test_unknown_filter_category(self):
        with pytest.raises(ValueError):
            PaymentVoucherFilters(category="fuel")


class TestPaymentVoucherEndpoints:
    """Tests for /api/v1/payment-vouchers."""

    def _payload(self, **overrides) -> dict:
        payload = {
            "voucher_date": "2026-03-11",
            "payee_name": "Sea View Hotel",
            "category": "hotel",
            "total": "12000",
            "advance": "2000",
            "payment_method": "cash",
        }
        payload.update(overrides)
        return payload

    async def test_create(self, client: AsyncClient, manager_headers: dict):
        response = await client.post(
            "/api/v1/payment-vouchers", json=self._payload(), headers=manager_headers
        )

        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["voucher_number"] == "PAY001"
        assert data["due"] == 10000.0
        assert data["status"] == "pending"
        assert data["created_by_name"] == "Manager User"

    async def test_create_requires_staff(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/v1/payment-vouchers", json=self._payload(), headers=user_headers
        )
        assert response.status_code == 403

    async def test_list_with_summary(self, client: AsyncClient, admin_headers: dict):
        await client.post("/api/v1/payment-vouchers", json=self._payload(), headers=admin_headers)
        await client.post(
            "/api/v1/payment-vouchers",
            json=self._payload(category="food", total="300", advance="300"),
            headers=admin_headers,
        )

        response = await client.get(
            "/api/v1/payment-vouchers", params={"category": "all"}, headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["summary"]["total_expenses"] == 12300.0
        assert data["summary"]["total_due"] == 10000.0

    async def test_list_rejects_unknown_category(self, client: AsyncClient, admin_headers: dict):
        response = await client.get(
            "/api/v1/payment-vouchers", params={"category": "fuel"}, headers=admin_headers
        )
        assert response.status_code == 422

    async def test_update_get_delete(self, client: AsyncClient, manager_headers: dict):
        created = await client.post(
            "/api/v1/payment-vouchers", json=self._payload(), headers=manager_headers
        )
        voucher_id = created.json()["data"]["id"]

        updated = await client.put(
            f"/api/v1/payment-vouchers/{voucher_id}",
            json={"total": "2000"},
            headers=manager_headers,
        )
        assert updated.status_code == 200, updated.text
        assert updated.json()["data"]["due"] == 0.0
        assert updated.json()["data"]["status"] == "paid"

        fetched = await client.get(f"/api/v1/payment-vouchers/{voucher_id}", headers=manager_headers)
        assert fetched.json()["data"]["advance"] == 2000.0

        deleted = await client.delete(f"/api/v1/payment-vouchers/{voucher_id}", headers=manager_headers)
        assert deleted.status_code == 200

        missing = await client.get(f"/api/v1/payment-vouchers/{voucher_id}", headers=manager_headers)
        assert missing.status_code == 404

    async def test_pdf(self, client: AsyncClient, manager_headers: dict):
        created = await client.post(
            "/api/v1/payment-vouchers", json=self._payload(), headers=manager_headers
        )
        voucher_id = created.json()["data"]["id"]

        with patch("tourdesk.modules.payment_vouchers.router.pdf_service") as mock_svc:
            mock_svc.generate_voucher_pdf.return_value = b"%PDF-1.4"
            response = await client.get(
                f"/api/v1/payment-vouchers/{voucher_id}/pdf", headers=manager_headers
            )

        assert response.status_code == 200
        context = mock_svc.generate_voucher_pdf.call_args.args[0]
        assert context["voucher"]["voucher_number"] == "PAY001"
        assert context["voucher"]["created_by_name"] == "Manager User"
        assert context["amount_in_words"] == "Twelve Thousand Rupees Only"

    async def test_update_rejects_blank_payee(self, client: AsyncClient, manager_headers: dict):
        created = await client.post(
            "/api/v1/payment-vouchers", json=self._payload(), headers=manager_headers
        )
        voucher_id = created.json()["data"]["id"]

        response = await client.put(
            f"/api/v1/payment-vouchers/{voucher_id}",
            json={"payee_name": "  "},
            headers=manager_headers,
        )

        assert response.status_code == 422
        assert "payee_name" in {e["field"] for e in response.json()["errors"]}

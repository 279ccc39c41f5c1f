from datetime import datetime
from decimal import Decimal

from app.models import Invoice
from app.services.commission import CommissionCalculationService
from app.services.payment_scan import PaymentScanService


class TestPaymentScan:

    def test_full_payment_date_is_payment_reaching_amount(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="10000", payments=[
            (datetime(2024, 2, 10), "4000"),
            (datetime(2024, 1, 5), "3000"),
            (datetime(2024, 3, 1), "3000"),
        ], first_payment_date=None)

        result = PaymentScanService(db).rescan_payments()

        invoice = db.query(Invoice).filter(Invoice.id == "INV-1").one()
        assert result["total_checked"] == 1
        assert result["errors"] == []
        assert invoice.first_payment_date == datetime(2024, 1, 5)
        assert invoice.first_payment_amount == Decimal("3000")
        assert invoice.full_payment_date == datetime(2024, 3, 1)

    def test_partial_payment_has_no_full_payment_date(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="10000", payments=[(datetime(2024, 1, 5), "9999.99")])

        PaymentScanService(db).rescan_payments()

        invoice = db.query(Invoice).filter(Invoice.id == "INV-1").one()
        assert invoice.first_payment_date == datetime(2024, 1, 5)
        assert invoice.full_payment_date is None

    def test_overpayment_counts_as_fully_paid(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="5000", payments=[(datetime(2024, 4, 2), "5200")])

        PaymentScanService(db).rescan_payments()

        assert db.query(Invoice).filter(Invoice.id == "INV-1").one().full_payment_date == datetime(2024, 4, 2)

    def test_rescan_is_idempotent(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="1000", payments=[(datetime(2024, 1, 5), "1000")])
        service = PaymentScanService(db)

        first = service.rescan_payments()
        second = service.rescan_payments()

        assert first["updated_invoices"] == 1
        assert second["updated_invoices"] == 0

    def test_invoice_without_amount_is_reported_and_others_continue(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("BAD", "A1", amount=None, payments=[(datetime(2024, 1, 5), "100")])
        make_invoice("GOOD", "A1", amount="100", payments=[(datetime(2024, 1, 6), "100")])

        result = PaymentScanService(db).rescan_payments()

        assert result["errors"] == [
            {"identifier": "BAD", "error": "Invoice amount missing or not positive"}
        ]
        assert db.query(Invoice).filter(Invoice.id == "GOOD").one().full_payment_date == datetime(2024, 1, 6)

    def test_fully_paid_listing(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", full_payment_date=datetime(2024, 1, 10))
        make_invoice("INV-2", "A1", full_payment_date=datetime(2024, 2, 10))
        make_invoice("INV-3", "A1")

        listing = PaymentScanService(db).fully_paid_invoices()

        assert listing["total"] == 2
        assert [i["id"] for i in listing["invoices"]] == ["INV-2", "INV-1"]

    def test_removed_payments_clear_milestones(self, db, tiers, make_agent, make_invoice):
        make_agent("A1")
        invoice = make_invoice("INV-1", "A1", amount="1000", eligible="1000",
                               payments=[(datetime(2024, 3, 5), "1000")])
        service = PaymentScanService(db)
        service.rescan_payments()
        assert len(CommissionCalculationService(db).compute_commission("A1", "2024-03")["invoices"]) == 1

        invoice.payments.clear()
        db.commit()
        result = service.rescan_payments()

        invoice = db.query(Invoice).filter(Invoice.id == "INV-1").one()
        assert result["updated_invoices"] == 1
        assert result["errors"] == []
        assert invoice.first_payment_date is None
        assert invoice.first_payment_amount is None
        assert invoice.full_payment_date is None
        assert CommissionCalculationService(db).compute_commission("A1", "2024-03")["invoices"] == []

    def test_write_failure_rolls_back_only_that_invoice(self, db, make_agent, make_invoice, fail_invoice_writes):
        make_agent("A1")
        make_invoice("BROKEN", "A1", amount="100", payments=[(datetime(2024, 1, 5), "100")])
        make_invoice("OK", "A1", amount="100", payments=[(datetime(2024, 1, 6), "100")])
        fail_invoice_writes(lambda inv: inv.id == "BROKEN")

        result = PaymentScanService(db).rescan_payments()

        assert [e["identifier"] for e in result["errors"]] == ["BROKEN"]
        assert result["updated_invoices"] == 1
        broken = db.query(Invoice).filter(Invoice.id == "BROKEN").one()
        assert broken.first_payment_amount is None
        assert broken.full_payment_date is None
        assert db.query(Invoice).filter(Invoice.id == "OK").one().full_payment_date == datetime(2024, 1, 6)

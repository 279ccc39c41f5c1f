from datetime import datetime
from decimal import Decimal

import pytest

from app.models import Invoice
from app.services.anp import ANPAggregationService


def _anp(db, invoice_id):
    return db.query(Invoice).filter(Invoice.id == invoice_id).one().achieved_monthly_anp


class TestRecomputeANP:

    def test_group_shares_sum_of_invoice_amounts(self, db, make_agent, make_invoice):
        make_agent("A1")
        # payment amounts differ from invoice amounts: ANP sums invoice amounts
        make_invoice("INV-1", "A1", amount="12000", payments=[(datetime(2024, 3, 2), "1000")])
        make_invoice("INV-2", "A1", amount="8000", payments=[(datetime(2024, 3, 28), "500")])

        result = ANPAggregationService(db).recompute_anp()

        assert result["agent_month_combinations"] == 1
        assert result["processed_agents"] == 1
        assert result["total_checked"] == 2
        assert result["updated_invoices"] == 2
        assert _anp(db, "INV-1") == Decimal("20000")
        assert _anp(db, "INV-2") == Decimal("20000")

    def test_single_invoice_month_equals_its_amount(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="7500", payments=[(datetime(2024, 5, 9), "100")])

        ANPAggregationService(db).recompute_anp()

        assert _anp(db, "INV-1") == Decimal("7500")

    def test_groups_split_by_agent_and_first_payment_month(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_agent("A2")
        make_invoice("A1-MAR", "A1", amount="1000", payments=[(datetime(2024, 3, 31, 23, 0), "10")])
        make_invoice("A1-APR", "A1", amount="2000", payments=[(datetime(2024, 4, 1), "10")])
        make_invoice("A2-MAR", "A2", amount="4000", payments=[(datetime(2024, 3, 15), "10")])

        result = ANPAggregationService(db).recompute_anp()

        assert result["agent_month_combinations"] == 3
        assert result["processed_agents"] == 2
        assert _anp(db, "A1-MAR") == Decimal("1000")
        assert _anp(db, "A1-APR") == Decimal("2000")
        assert _anp(db, "A2-MAR") == Decimal("4000")

    def test_unassigned_and_unpaid_invoices_are_left_alone(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("NO-AGENT", None, amount="1000", payments=[(datetime(2024, 3, 2), "10")])
        make_invoice("UNPAID", "A1", amount="3000")
        make_invoice("PAID", "A1", amount="5000", payments=[(datetime(2024, 3, 2), "10")])

        result = ANPAggregationService(db).recompute_anp()

        assert result["total_checked"] == 2
        assert _anp(db, "NO-AGENT") is None
        assert _anp(db, "UNPAID") is None
        assert _anp(db, "PAID") == Decimal("5000")

    def test_rerun_is_idempotent(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="12000", payments=[(datetime(2024, 3, 2), "1000")])
        make_invoice("INV-2", "A1", amount="8000", payments=[(datetime(2024, 3, 5), "1000")])
        service = ANPAggregationService(db)

        service.recompute_anp()
        before = {i.id: i.achieved_monthly_anp for i in db.query(Invoice).all()}
        second = service.recompute_anp()
        after = {i.id: i.achieved_monthly_anp for i in db.query(Invoice).all()}

        assert before == after
        assert second["updated_invoices"] == 0

    def test_new_invoice_grows_whole_group(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="12000", payments=[(datetime(2024, 3, 2), "1000")])
        make_invoice("INV-2", "A1", amount="8000", payments=[(datetime(2024, 3, 5), "1000")])
        service = ANPAggregationService(db)
        service.recompute_anp()

        make_invoice("INV-3", "A1", amount="5000", payments=[(datetime(2024, 3, 20), "5000")])
        result = service.recompute_anp()

        assert result["updated_invoices"] == 3
        for invoice_id in ("INV-1", "INV-2", "INV-3"):
            assert _anp(db, invoice_id) == Decimal("25000")

    def test_missing_amount_is_flagged_and_counted_as_zero(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("NO-AMOUNT", "A1", amount=None, payments=[(datetime(2024, 3, 2), "10")])
        make_invoice("INV-1", "A1", amount="3000", payments=[(datetime(2024, 3, 3), "10")])

        result = ANPAggregationService(db).recompute_anp()

        assert [e["identifier"] for e in result["errors"]] == ["NO-AMOUNT"]
        assert _anp(db, "NO-AMOUNT") == Decimal("3000")
        assert _anp(db, "INV-1") == Decimal("3000")

    def test_write_failure_leaves_group_untouched(self, db, make_agent, make_invoice, fail_invoice_writes):
        make_agent("A1")
        make_agent("A2")
        make_invoice("A1-1", "A1", amount="1000", payments=[(datetime(2024, 3, 2), "10")])
        make_invoice("A1-2", "A1", amount="2000", payments=[(datetime(2024, 3, 3), "10")])
        make_invoice("A2-1", "A2", amount="4000", anp="999", payments=[(datetime(2024, 3, 4), "10")])
        make_invoice("A2-2", "A2", amount="5000", anp="999", payments=[(datetime(2024, 3, 5), "10")])
        fail_invoice_writes(lambda inv: inv.agent_id == "A2")

        result = ANPAggregationService(db).recompute_anp()

        assert [e["identifier"] for e in result["errors"]] == ["A2:2024-03"]
        assert result["updated_invoices"] == 2
        assert _anp(db, "A1-1") == Decimal("3000")
        assert _anp(db, "A1-2") == Decimal("3000")
        assert _anp(db, "A2-1") == Decimal("999")
        assert _anp(db, "A2-2") == Decimal("999")

    def test_invoice_leaving_group_loses_anp(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="1000", payments=[(datetime(2024, 3, 2), "10")])
        moved = make_invoice("INV-2", "A1", amount="2000", payments=[(datetime(2024, 3, 3), "10")])
        service = ANPAggregationService(db)
        service.recompute_anp()
        assert _anp(db, "INV-2") == Decimal("3000")

        moved.agent_id = None
        db.commit()
        result = service.recompute_anp()

        assert result["updated_invoices"] == 2
        assert _anp(db, "INV-1") == Decimal("1000")
        assert _anp(db, "INV-2") is None

    def test_invoice_without_payments_loses_anp(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="1000", anp="1000", first_payment_date=datetime(2024, 3, 2))

        ANPAggregationService(db).recompute_anp()

        assert _anp(db, "INV-1") is None


class TestRelatedInvoices:

    def test_cross_check_passes_after_recompute(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="12000", payments=[(datetime(2024, 3, 2), "1000")])
        make_invoice("INV-2", "A1", amount="8000", payments=[(datetime(2024, 3, 5), "1000")])
        service = ANPAggregationService(db)
        service.recompute_anp()

        related = service.related_invoices("INV-1")

        assert related["month"] == "2024-03"
        assert {i["id"] for i in related["invoices"]} == {"INV-1", "INV-2"}
        assert related["total_amount"] == Decimal("20000")
        assert related["anp_checked"] is True

    def test_cross_check_fails_when_group_is_stale(self, db, make_agent, make_invoice):
        make_agent("A1")
        make_invoice("INV-1", "A1", amount="12000", payments=[(datetime(2024, 3, 2), "1000")])
        service = ANPAggregationService(db)
        service.recompute_anp()
        make_invoice("INV-2", "A1", amount="8000", payments=[(datetime(2024, 3, 5), "1000")])

        assert service.related_invoices("INV-1")["anp_checked"] is False

    def test_unknown_invoice(self, db):
        with pytest.raises(LookupError):
            ANPAggregationService(db).related_invoices("missing")

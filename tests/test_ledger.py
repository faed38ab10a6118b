from datetime import date
from unittest.mock import MagicMock

import pytest
from django.db import connection, transaction
from django.test.utils import CaptureQueriesContext

from billing.models import BillingActivity, TimeEntry
from billing.money import Money
from billing.services import LedgerService
from billing.validation import ConflictError, NotFoundError, ValidationError
from tests.factories import FlatFeeMatterFactory, InvoiceFactory, MatterFactory, TimeEntryFactory


@pytest.mark.django_db
class TestRecord:
    def test_records_entry_with_entry_rate(self, user):
        matter = MatterFactory(hourly_rate_cents=25000)
        entry = LedgerService.record(
            matter.id, "Drafted complaint", 90, hourly_rate=27500,
            entry_date=date(2024, 3, 1), user=user,
        )
        assert entry.pk is not None
        assert entry.hourly_rate == Money(27500)
        assert entry.is_billable is True
        assert entry.invoice_id is None
        assert entry.created_by == user

    def test_logs_created_activity(self, user):
        matter = MatterFactory()
        entry = LedgerService.record(matter.id, "Research", 30, hourly_rate=20000, user=user)
        activity = BillingActivity.objects.get(entity_type="time_entry", entity_id=entry.id)
        assert activity.action == BillingActivity.ActionType.CREATED
        assert activity.details == {"matter_id": matter.id, "minutes": 30}

    def test_accepts_money_rate(self):
        matter = MatterFactory()
        entry = LedgerService.record(matter.id, "Research", 30, hourly_rate=Money(18000))
        assert entry.hourly_rate_cents == 18000

    @pytest.mark.parametrize("minutes", [0, -15])
    def test_rejects_non_positive_duration(self, minutes):
        matter = MatterFactory()
        with pytest.raises(ValidationError) as exc:
            LedgerService.record(matter.id, "Research", minutes, hourly_rate=20000)
        assert exc.value.status == 400
        assert TimeEntry.objects.count() == 0

    def test_rejects_negative_rate(self):
        matter = MatterFactory()
        with pytest.raises(ValidationError):
            LedgerService.record(matter.id, "Research", 30, hourly_rate=-1)

    def test_rejects_blank_description(self):
        matter = MatterFactory()
        with pytest.raises(ValidationError):
            LedgerService.record(matter.id, "   ", 30, hourly_rate=20000)

    def test_hourly_matter_requires_rate(self):
        matter = MatterFactory(hourly_rate_cents=25000)
        with pytest.raises(ValidationError) as exc:
            LedgerService.record(matter.id, "Research", 30)
        assert [f.field for f in exc.value.fields] == ["hourly_rate"]

    def test_flat_fee_matter_needs_no_rate(self):
        matter = FlatFeeMatterFactory()
        entry = LedgerService.record(matter.id, "Closing call", 15)
        assert entry.hourly_rate_cents is None

    def test_unknown_matter(self):
        with pytest.raises(NotFoundError):
            LedgerService.record(999999, "Research", 30, hourly_rate=100)

    def test_stores_enhanced_narrative(self):
        matter = MatterFactory()
        enhancer = MagicMock()
        enhancer.enhance.return_value = "Legal research regarding statute of limitations."
        entry = LedgerService.record(matter.id, "research SOL", 30, hourly_rate=100, enhancer=enhancer)
        enhancer.enhance.assert_called_once_with("research SOL", 30)
        assert entry.ai_narrative == "Legal research regarding statute of limitations."
        assert entry.description == "research SOL"

    def test_skips_enhancement_when_asked(self):
        matter = MatterFactory()
        enhancer = MagicMock()
        entry = LedgerService.record(matter.id, "research", 30, hourly_rate=100, enhancer=enhancer, enhance_narrative=False)
        enhancer.enhance.assert_not_called()
        assert entry.ai_narrative == ""


@pytest.mark.django_db
class TestUnbilled:
    def test_orders_by_date_then_id_and_filters(self):
        matter = MatterFactory()
        late = TimeEntryFactory(matter=matter, entry_date=date(2024, 2, 1))
        early_a = TimeEntryFactory(matter=matter, entry_date=date(2024, 1, 1))
        early_b = TimeEntryFactory(matter=matter, entry_date=date(2024, 1, 1))
        TimeEntryFactory(matter=matter, is_billable=False)
        TimeEntryFactory(matter=matter, invoice=InvoiceFactory(matter=matter))
        TimeEntryFactory()  # other matter

        assert LedgerService.unbilled(matter.id) == [early_a, early_b, late]

    def test_unknown_matter(self):
        with pytest.raises(NotFoundError):
            LedgerService.unbilled(424242)


@pytest.mark.django_db
class TestMarkInvoiced:
    def test_claims_entries(self):
        matter = MatterFactory()
        entries = TimeEntryFactory.create_batch(2, matter=matter)
        invoice = InvoiceFactory(matter=matter)
        with transaction.atomic():
            claimed = LedgerService.mark_invoiced([e.id for e in entries], invoice)
        assert claimed == 2
        assert set(TimeEntry.objects.filter(invoice=invoice).values_list("id", flat=True)) == {e.id for e in entries}
        assert LedgerService.unbilled(matter.id) == []

    def test_claiming_twice_is_a_conflict(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter)
        first = InvoiceFactory(matter=matter)
        second = InvoiceFactory(matter=matter)
        with transaction.atomic():
            LedgerService.mark_invoiced([entry.id], first)

        with pytest.raises(ConflictError):
            with transaction.atomic():
                LedgerService.mark_invoiced([entry.id], second)

        entry.refresh_from_db()
        assert entry.invoice_id == first.id

    def test_partial_claim_rolls_back(self):
        matter = MatterFactory()
        free, taken = TimeEntryFactory.create_batch(2, matter=matter)
        TimeEntry.objects.filter(pk=taken.pk).update(invoice=InvoiceFactory(matter=matter))
        invoice = InvoiceFactory(matter=matter)

        with pytest.raises(ConflictError):
            with transaction.atomic():
                LedgerService.mark_invoiced([free.id, taken.id], invoice)

        free.refresh_from_db()
        assert free.invoice_id is None


@pytest.mark.django_db
class TestLockEntries:
    def test_locks_in_ascending_id_order(self):
        matter = MatterFactory()
        a, b, c = TimeEntryFactory.create_batch(3, matter=matter)

        with transaction.atomic():
            with CaptureQueriesContext(connection) as ctx:
                locked = LedgerService.lock_entries([c.id, a.id, b.id])

        assert locked == [a.id, b.id, c.id]
        sql = ctx.captured_queries[-1]["sql"]
        assert 'ORDER BY "billing_timeentry"."id" ASC' in sql

    def test_unknown_ids_are_skipped(self):
        entry = TimeEntryFactory()
        with transaction.atomic():
            assert LedgerService.lock_entries([entry.id, 987654]) == [entry.id]

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from unittest.mock import patch

import pytest
from django.db import connection

from billing.models import BillingActivity, Invoice, TimeEntry
from billing.money import Money
from billing.services import InvoiceService, LedgerService, LifecycleService
from billing.services import sequencer
from billing.validation import ConflictError, NotFoundError, ValidationError
from tests.factories import (
    ClientFactory,
    FlatFeeMatterFactory,
    InvoiceFactory,
    MatterFactory,
    TimeEntryFactory,
)

DUE = date.today() + timedelta(days=30)


@pytest.mark.django_db
class TestCreateInvoice:
    def test_snapshot_survives_rate_change(self):
        matter = MatterFactory(hourly_rate_cents=25000)
        entry = LedgerService.record(matter.id, "Trial prep", 120, hourly_rate=matter.hourly_rate_cents)

        matter.hourly_rate_cents = 30000
        matter.save()

        invoice = InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE)

        assert invoice.total == Money(50000)
        assert invoice.subtotal == Money(50000)
        invoice.refresh_from_db()
        assert invoice.total_cents == 50000

    def test_creates_draft_with_frozen_snapshot(self, user):
        client = ClientFactory(name="Acme Corp", email="ap@acme.example")
        matter = MatterFactory(client=client, title="Acme v. Widget")
        e1 = TimeEntryFactory(matter=matter, duration_minutes=60, hourly_rate_cents=20000)
        e2 = TimeEntryFactory(matter=matter, duration_minutes=30, hourly_rate_cents=30000)

        invoice = InvoiceService.create_invoice(matter.id, client.id, [e2.id, e1.id], DUE, notes="Net 30", user=user)

        assert invoice.status == Invoice.Status.DRAFT
        assert invoice.invoice_number == f"INV-{invoice.invoice_sequence:06d}"
        assert invoice.client_name == "Acme Corp"
        assert invoice.client_email == "ap@acme.example"
        assert invoice.matter_title == "Acme v. Widget"
        assert invoice.included_entry_ids == [e2.id, e1.id]
        assert invoice.total == Money(35000)
        assert invoice.notes == "Net 30"
        assert invoice.due_date == DUE

        lines = invoice.frozen_line_items()
        assert [line.time_entry_id for line in lines] == [e2.id, e1.id]
        assert [line.amount_cents for line in lines] == [15000, 20000]

        assert set(TimeEntry.objects.filter(invoice=invoice).values_list("id", flat=True)) == {e1.id, e2.id}
        assert LedgerService.unbilled(matter.id) == []
        assert BillingActivity.objects.filter(
            entity_type="invoice", entity_id=invoice.id, action="created", user=user,
        ).exists()

    def test_snapshot_is_not_affected_by_later_client_edits(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter)
        invoice = InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE)

        matter.client.name = "Renamed Inc"
        matter.client.save()

        invoice.refresh_from_db()
        assert invoice.client_name != "Renamed Inc"

    def test_flat_fee_invoice(self):
        matter = FlatFeeMatterFactory(title="Incorporation", flat_fee_cents=150000)
        entry = TimeEntryFactory(matter=matter, hourly_rate_cents=None)

        invoice = InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE)

        assert invoice.total == Money(150000)
        assert invoice.billing_mode == "flat_fee"
        lines = invoice.frozen_line_items()
        assert len(lines) == 1
        assert lines[0].description == "Flat fee: Incorporation"
        entry.refresh_from_db()
        assert entry.invoice_id == invoice.id

    def test_flat_fee_invoice_without_entries(self):
        matter = FlatFeeMatterFactory(flat_fee_cents=80000)
        invoice = InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)
        assert invoice.total == Money(80000)
        assert invoice.included_entry_ids == []

    def test_numbers_are_unique_and_increasing(self):
        matter = MatterFactory()
        numbers = []
        for _ in range(3):
            entry = TimeEntryFactory(matter=matter)
            numbers.append(InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE).invoice_sequence)
        assert numbers == sorted(numbers)
        assert len(set(numbers)) == 3


@pytest.mark.django_db
class TestCreateInvoiceValidation:
    def test_hourly_matter_needs_entries(self):
        matter = MatterFactory()
        with pytest.raises(ValidationError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)

    def test_missing_due_date(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter)
        with pytest.raises(ValidationError) as exc:
            InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], None)
        assert "due_date" in [f.field for f in exc.value.fields]

    def test_duplicate_ids(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter)
        with pytest.raises(ValidationError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id, entry.id], DUE)

    def test_client_must_match_matter(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter)
        other_client = ClientFactory()
        with pytest.raises(ValidationError):
            InvoiceService.create_invoice(matter.id, other_client.id, [entry.id], DUE)

    def test_unknown_matter(self):
        with pytest.raises(NotFoundError):
            InvoiceService.create_invoice(987654, 1, [1], DUE)

    def test_unknown_entry(self):
        matter = MatterFactory()
        with pytest.raises(NotFoundError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [987654], DUE)

    def test_entry_from_another_matter(self):
        matter = MatterFactory()
        stranger = TimeEntryFactory()
        with pytest.raises(NotFoundError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [stranger.id], DUE)

    def test_non_billable_entry(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter, is_billable=False)
        with pytest.raises(ConflictError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE)

    def test_already_invoiced_entry(self):
        matter = MatterFactory()
        entry = TimeEntryFactory(matter=matter)
        InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE)

        with pytest.raises(ConflictError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [entry.id], DUE)
        assert Invoice.objects.count() == 1

    def test_validation_failure_writes_nothing(self):
        matter = MatterFactory()
        good = TimeEntryFactory(matter=matter)
        bad = TimeEntryFactory(matter=matter, is_billable=False)
        with pytest.raises(ConflictError):
            InvoiceService.create_invoice(matter.id, matter.client_id, [good.id, bad.id], DUE)
        assert Invoice.objects.count() == 0
        good.refresh_from_db()
        assert good.invoice_id is None

    def test_flat_fee_matter_is_billed_once(self):
        matter = FlatFeeMatterFactory(flat_fee_cents=150000)
        first = InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)

        with pytest.raises(ConflictError) as exc:
            InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)

        assert first.invoice_number in exc.value.message
        assert Invoice.objects.filter(matter=matter).count() == 1

    def test_voided_flat_fee_can_be_reissued(self):
        matter = FlatFeeMatterFactory(flat_fee_cents=150000)
        first = InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)
        LifecycleService.transition(first.id, "void")

        second = InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)

        assert second.total == Money(150000)
        assert second.invoice_sequence > first.invoice_sequence


@pytest.mark.django_db
class TestCreateInvoiceAtomicity:
    def test_claim_conflict_rolls_back_invoice_but_consumes_number(self):
        matter = MatterFactory()
        e1, e2 = TimeEntryFactory.create_batch(2, matter=matter)
        rival = InvoiceFactory(matter=matter)
        real_next_value = sequencer.next_value

        def claim_then_allocate(*args, **kwargs):
            # Another request claims e2 between validation and persistence.
            TimeEntry.objects.filter(pk=e2.pk).update(invoice=rival)
            return real_next_value(*args, **kwargs)

        with patch("billing.services.invoice_service.sequencer.next_value", side_effect=claim_then_allocate):
            with pytest.raises(ConflictError):
                InvoiceService.create_invoice(matter.id, matter.client_id, [e1.id, e2.id], DUE)

        assert not Invoice.objects.filter(invoice_sequence=1).exists()
        e1.refresh_from_db()
        assert e1.invoice_id is None

        e3 = TimeEntryFactory(matter=matter)
        invoice = InvoiceService.create_invoice(matter.id, matter.client_id, [e1.id, e3.id], DUE)
        assert invoice.invoice_sequence == 2

    def test_flat_fee_billed_between_check_and_persist_is_conflict(self):
        matter = FlatFeeMatterFactory(flat_fee_cents=150000)
        real_next_value = sequencer.next_value

        def bill_then_allocate(*args, **kwargs):
            # Another request invoices the same flat fee after validation passed.
            InvoiceFactory(matter=matter, total_cents=150000, subtotal_cents=150000)
            return real_next_value(*args, **kwargs)

        with patch("billing.services.invoice_service.sequencer.next_value", side_effect=bill_then_allocate):
            with pytest.raises(ConflictError):
                InvoiceService.create_invoice(matter.id, matter.client_id, [], DUE)

        assert Invoice.objects.filter(matter=matter).count() == 1


@pytest.mark.django_db
class TestGetInvoice:
    def test_found(self):
        invoice = InvoiceFactory()
        assert InvoiceService.get_invoice(invoice.id) == invoice

    @pytest.mark.parametrize("invoice_id", [123456, "not-a-number", None])
    def test_not_found(self, invoice_id):
        with pytest.raises(NotFoundError) as exc:
            InvoiceService.get_invoice(invoice_id)
        assert exc.value.message == "Invoice not found"


def _in_thread(fn, *args):
    try:
        return fn(*args)
    finally:
        connection.close()


@pytest.mark.django_db(transaction=True)
class TestConcurrency:
    def test_overlapping_requests_only_one_wins(self):
        matter = MatterFactory()
        e1, e2, e3 = TimeEntryFactory.create_batch(3, matter=matter)
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def attempt(ids):
            barrier.wait()
            try:
                invoice = InvoiceService.create_invoice(matter.id, matter.client_id, ids, DUE)
                result = ("ok", invoice.id)
            except ConflictError:
                result = ("conflict", None)
            with lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=_in_thread, args=(attempt, [e1.id, e2.id])),
            threading.Thread(target=_in_thread, args=(attempt, [e2.id, e3.id])),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(kind for kind, _ in outcomes) == ["conflict", "ok"]
        assert Invoice.objects.count() == 1
        winner = Invoice.objects.get()
        claimed = set(TimeEntry.objects.filter(invoice=winner).values_list("id", flat=True))
        assert claimed == set(winner.included_entry_ids)
        assert TimeEntry.objects.filter(invoice__isnull=False).count() == 2

    def test_concurrent_number_allocation_is_unique(self):
        with ThreadPoolExecutor(max_workers=8) as pool:
            values = list(pool.map(lambda _: _in_thread(sequencer.next_value), range(100)))

        assert len(set(values)) == 100
        assert min(values) >= 1
        assert max(values) == 100

    def test_concurrent_invoice_creation_numbers_are_unique_and_follow_real_time_order(self):
        matter = MatterFactory()
        entries = TimeEntryFactory.create_batch(100, matter=matter)
        lock = threading.Lock()
        calls = []

        def create(entry_id):
            started = time.monotonic()
            invoice = InvoiceService.create_invoice(matter.id, matter.client_id, [entry_id], DUE)
            finished = time.monotonic()
            with lock:
                calls.append((started, finished, invoice.invoice_sequence, invoice.invoice_number))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda eid: _in_thread(create, eid), [e.id for e in entries]))

        assert len(calls) == 100
        assert len({seq for _, _, seq, _ in calls}) == 100
        assert len({number for _, _, _, number in calls}) == 100
        assert Invoice.objects.count() == 100

        # A call that returned before another started always holds the smaller number.
        for a_start, a_end, a_seq, a_number in calls:
            for b_start, b_end, b_seq, b_number in calls:
                if a_end < b_start:
                    assert a_seq < b_seq
                    assert a_number < b_number


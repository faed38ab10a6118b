import pytest

from billing.models import InvoiceSequence
from billing.services import sequencer


@pytest.mark.django_db
class TestSequencer:
    def test_increments_from_one(self):
        assert [sequencer.next_value() for _ in range(3)] == [1, 2, 3]
        assert InvoiceSequence.objects.get(name="invoice").last_value == 3

    def test_named_sequences_are_independent(self):
        sequencer.next_value()
        sequencer.next_value()
        assert sequencer.next_value("credit_note") == 1

    def test_format_number(self):
        assert sequencer.format_number(42) == "INV-000042"
        assert sequencer.format_number(1234567) == "INV-1234567"

    def test_format_number_uses_settings(self, settings):
        settings.INVOICE_NUMBER_PREFIX = "LAW"
        settings.INVOICE_NUMBER_PADDING = 4
        assert sequencer.format_number(7) == "LAW-0007"

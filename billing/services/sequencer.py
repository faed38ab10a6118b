"""
Invoice Sequencer - allocates invoice numbers from a locked counter row.

Each allocation commits on its own, so a number handed out is consumed even
if the invoice that asked for it is later rolled back. Gaps are expected;
duplicates are impossible.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F

from ..models import InvoiceSequence

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE = "invoice"


def next_value(name: str = DEFAULT_SEQUENCE) -> int:
    with transaction.atomic():
        InvoiceSequence.objects.get_or_create(name=name)
        counter = InvoiceSequence.objects.select_for_update().get(name=name)
        InvoiceSequence.objects.filter(pk=counter.pk).update(last_value=F("last_value") + 1)
        counter.refresh_from_db(fields=["last_value"])
    logger.debug(f"Allocated {name} sequence value {counter.last_value}")
    return counter.last_value


def format_number(value: int) -> str:
    prefix = getattr(settings, "INVOICE_NUMBER_PREFIX", "INV")
    padding = getattr(settings, "INVOICE_NUMBER_PADDING", 6)
    return f"{prefix}-{value:0{padding}d}"

"""
Invoice Service - turns unbilled work into a draft invoice with a frozen
monetary snapshot.

Order of work:
1. Validate everything read-only (no writes on any failure path)
2. Price through the billing calculator
3. Allocate a number (committed on its own)
4. Persist invoice, line items and the entry claim in one transaction
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from django.db import transaction
from django.db.utils import OperationalError
from django.utils import timezone

from ..models import BillingActivity, Invoice, InvoiceLineItem, Matter, TimeEntry
from ..validation import (
    ConflictError,
    ErrorCode,
    FieldError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from . import sequencer
from .activity_service import ActivityService
from .billing_calculator import PricedInvoice, price_invoice
from .directory_service import get_matter
from .ledger_service import LedgerService

logger = logging.getLogger(__name__)


class InvoiceService:
    @staticmethod
    def validate_request(matter: Matter, client_id, time_entry_ids: Sequence[int], due_date) -> Dict[str, List[str]]:
        errors = {}

        if not due_date:
            errors["due_date"] = ["Due date is required"]
        elif not isinstance(due_date, date):
            errors["due_date"] = ["Due date must be a valid date"]

        try:
            if int(client_id) != matter.client_id:
                errors["client_id"] = ["Client does not match the matter's client"]
        except (TypeError, ValueError):
            errors["client_id"] = ["Client is required"]

        if len(set(time_entry_ids)) != len(time_entry_ids):
            errors["time_entry_ids"] = ["Time entry ids must be unique"]
        elif matter.billing_mode == Matter.BillingMode.HOURLY and not time_entry_ids:
            errors["time_entry_ids"] = ["At least one time entry is required for an hourly matter"]

        return errors

    @staticmethod
    def ensure_flat_fee_unbilled(matter: Matter) -> None:
        """A flat fee is billed once per matter; only voiding the invoice frees it."""
        if matter.billing_mode != Matter.BillingMode.FLAT_FEE:
            return
        existing = (
            Invoice.objects.filter(matter=matter)
            .exclude(status=Invoice.Status.VOID)
            .values_list("invoice_number", flat=True)
            .first()
        )
        if existing:
            raise ConflictError(f"The flat fee for this matter is already billed on invoice {existing}")

    @staticmethod
    def _load_entries(matter: Matter, time_entry_ids: Sequence[int]) -> List[TimeEntry]:
        found = {entry.id: entry for entry in TimeEntry.objects.filter(id__in=time_entry_ids)}

        entries = []
        for entry_id in time_entry_ids:
            entry = found.get(entry_id)
            if entry is None or entry.matter_id != matter.id:
                raise NotFoundError(f"Time entry {entry_id} not found on this matter")
            if not entry.is_billable:
                raise ConflictError(f"Time entry {entry_id} is not billable")
            if entry.is_invoiced:
                raise ConflictError(f"Time entry {entry_id} has already been invoiced")
            entries.append(entry)
        return entries

    @classmethod
    def create_invoice(
        cls,
        matter_id,
        client_id,
        time_entry_ids: Sequence[int],
        due_date: date,
        notes: str = "",
        user=None,
        issue_date: Optional[date] = None,
    ) -> Invoice:
        time_entry_ids = list(time_entry_ids or [])
        for entry_id in time_entry_ids:
            if isinstance(entry_id, bool) or not isinstance(entry_id, int):
                raise ValidationError(
                    "Invalid invoice request",
                    fields=[FieldError("time_entry_ids", ErrorCode.FIELD_INVALID.value, "Time entry ids must be integers")],
                )

        matter = get_matter(matter_id)

        errors = cls.validate_request(matter, client_id, time_entry_ids, due_date)
        if errors:
            raise ValidationError.from_dict(errors, message="Invalid invoice request")

        cls.ensure_flat_fee_unbilled(matter)
        entries = cls._load_entries(matter, time_entry_ids)
        priced = price_invoice(matter, entries)

        try:
            sequence = sequencer.next_value()
            invoice = cls._persist(matter, entries, priced, sequence, due_date, notes, user, issue_date)
        except OperationalError as e:
            logger.error(f"Invoice creation for matter {matter.id} hit a database error: {e}")
            raise UnavailableError("The ledger database is busy. Please retry shortly.") from e

        logger.info(f"Invoice {invoice.invoice_number} created for matter {matter.id} total={invoice.total}")
        return invoice

    @staticmethod
    def _persist(
        matter: Matter,
        entries: List[TimeEntry],
        priced: PricedInvoice,
        sequence: int,
        due_date: date,
        notes: str,
        user,
        issue_date: Optional[date],
    ) -> Invoice:
        entry_ids = [entry.id for entry in entries]
        client = matter.client

        with transaction.atomic():
            # Matter row first, then entries: every create takes locks in the same order.
            locked_matter = Matter.objects.select_for_update().get(pk=matter.pk)
            InvoiceService.ensure_flat_fee_unbilled(locked_matter)
            LedgerService.lock_entries(entry_ids)

            invoice = Invoice.objects.create(
                matter=matter,
                client=client,
                created_by=user,
                invoice_sequence=sequence,
                invoice_number=sequencer.format_number(sequence),
                status=Invoice.Status.DRAFT,
                client_name=client.name,
                client_email=client.email,
                matter_title=matter.title,
                billing_mode=matter.billing_mode,
                currency=priced.currency,
                included_entry_ids=entry_ids,
                subtotal_cents=priced.subtotal.amount,
                total_cents=priced.total.amount,
                issue_date=issue_date or timezone.localdate(),
                due_date=due_date,
                notes=notes or "",
            )

            InvoiceLineItem.objects.bulk_create([
                InvoiceLineItem(
                    invoice=invoice,
                    time_entry_id=line.time_entry_id,
                    entry_date=line.entry_date,
                    description=line.description,
                    duration_minutes=line.duration_minutes,
                    hourly_rate_cents=line.hourly_rate.amount if line.hourly_rate is not None else None,
                    amount_cents=line.amount.amount,
                    sort_order=idx,
                )
                for idx, line in enumerate(priced.lines)
            ])

            LedgerService.mark_invoiced(entry_ids, invoice)

            ActivityService.log(
                BillingActivity.EntityType.INVOICE,
                invoice.id,
                BillingActivity.ActionType.CREATED,
                user=user,
                details={
                    "invoice_number": invoice.invoice_number,
                    "matter_id": matter.id,
                    "entry_count": len(entry_ids),
                    "total_cents": invoice.total_cents,
                },
            )

        return invoice

    @staticmethod
    def get_invoice(invoice_id) -> Invoice:
        try:
            return Invoice.objects.select_related("matter", "client").get(pk=invoice_id)
        except (Invoice.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Invoice not found")

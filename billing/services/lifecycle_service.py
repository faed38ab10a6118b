"""
Lifecycle Service - the only writer of ``Invoice.status``.

Every transition is a conditional update on the status the caller read, so
two racing requests cannot both succeed. Frozen totals are never touched.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from django.db import transaction
from django.db.utils import OperationalError
from django.utils import timezone

from ..models import BillingActivity, Invoice
from ..validation import (
    ConflictError,
    InvalidTransitionError,
    UnavailableError,
    ValidationError,
)
from .activity_service import ActivityService
from .invoice_service import InvoiceService

logger = logging.getLogger(__name__)

S = Invoice.Status


class LifecycleService:
    VALID_TRANSITIONS = {
        S.DRAFT: [S.SENT, S.OVERDUE, S.VOID],
        S.SENT: [S.PAID, S.OVERDUE, S.VOID],
        S.OVERDUE: [S.VOID],
        S.PAID: [],
        S.VOID: [],
    }

    TIMESTAMP_FIELDS = {
        S.SENT: "sent_at",
        S.PAID: "paid_at",
        S.VOID: "voided_at",
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @staticmethod
    def is_past_due(invoice: Invoice, today: Optional[date] = None) -> bool:
        return invoice.due_date < (today or timezone.localdate())

    @classmethod
    def available_transitions(cls, invoice: Invoice, today: Optional[date] = None) -> List[str]:
        allowed = []
        for status in cls.VALID_TRANSITIONS.get(invoice.status, []):
            if status == S.OVERDUE and not cls.is_past_due(invoice, today):
                continue
            allowed.append(status.value)
        return allowed

    @classmethod
    def transition(cls, invoice_id, new_status: str, user=None, today: Optional[date] = None) -> Invoice:
        if new_status not in S.values:
            raise ValidationError.from_dict(
                {"status": [f"'{new_status}' is not a valid invoice status"]},
                message="Invalid status",
            )
        new_status = S(new_status).value

        invoice = InvoiceService.get_invoice(invoice_id)
        current = invoice.status

        if not cls.can_transition(current, new_status):
            raise InvalidTransitionError(current, new_status)

        if new_status == S.OVERDUE and not cls.is_past_due(invoice, today):
            raise InvalidTransitionError(
                current,
                new_status,
                message=f"Invoice {invoice.invoice_number} is not past its due date ({invoice.due_date.isoformat()})",
            )

        try:
            with transaction.atomic():
                cls._apply(invoice, current, new_status)
                ActivityService.log(
                    BillingActivity.EntityType.INVOICE,
                    invoice.id,
                    BillingActivity.ActionType.STATUS_CHANGED,
                    user=user,
                    details={"old_status": current, "new_status": new_status},
                )
        except OperationalError as e:
            raise UnavailableError("The ledger database is busy. Please retry shortly.") from e

        logger.info(f"Invoice {invoice.invoice_number} transitioned from {current} to {new_status}")
        invoice.refresh_from_db()
        return invoice

    @classmethod
    def _apply(cls, invoice: Invoice, current: str, new_status: str) -> None:
        now = timezone.now()
        changes = {"status": new_status, "updated_at": now}
        timestamp_field = cls.TIMESTAMP_FIELDS.get(new_status)
        if timestamp_field:
            changes[timestamp_field] = now

        updated = Invoice.objects.filter(pk=invoice.pk, status=current).update(**changes)
        if updated != 1:
            raise ConflictError(
                f"Invoice {invoice.invoice_number} changed status concurrently; reload and retry"
            )

    @classmethod
    def mark_overdue(cls, today: Optional[date] = None) -> int:
        """Move every draft or sent invoice whose due date has passed to overdue."""
        today = today or timezone.localdate()
        candidates = Invoice.objects.filter(
            status__in=[S.DRAFT, S.SENT],
            due_date__lt=today,
        ).values_list("id", "status", "invoice_number")

        marked = 0
        for invoice_id, current, number in list(candidates):
            with transaction.atomic():
                updated = Invoice.objects.filter(pk=invoice_id, status=current).update(
                    status=S.OVERDUE,
                    updated_at=timezone.now(),
                )
                if not updated:
                    logger.info(f"Invoice {number} changed status during overdue sweep, skipped")
                    continue
                ActivityService.log(
                    BillingActivity.EntityType.INVOICE,
                    invoice_id,
                    BillingActivity.ActionType.MARKED_OVERDUE,
                    details={"old_status": current, "new_status": S.OVERDUE.value, "as_of": today.isoformat()},
                )
            marked += 1

        if marked:
            logger.info(f"Marked {marked} invoice(s) overdue as of {today.isoformat()}")
        return marked

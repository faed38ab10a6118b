"""
Ledger Service - the append-only record of work logged against a matter.

Responsibilities:
- Validating and recording time entries (with best-effort narrative)
- Answering "what is still unbilled" for a matter
- Claiming entries for an invoice exactly once
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Union

from django.db import transaction
from django.utils import timezone

from ..models import BillingActivity, Invoice, Matter, TimeEntry
from ..money import Money
from ..validation import ConflictError, ErrorCode, FieldError, ValidationError
from .activity_service import ActivityService
from .directory_service import get_matter
from .narrative_service import NarrativeEnhancer

logger = logging.getLogger(__name__)


def _rate_cents(hourly_rate: Optional[Union[Money, int]]) -> Optional[int]:
    if hourly_rate is None:
        return None
    if isinstance(hourly_rate, Money):
        return hourly_rate.amount
    if isinstance(hourly_rate, bool) or not isinstance(hourly_rate, int):
        raise ValidationError(
            "Hourly rate must be a whole number of minor units",
            fields=[FieldError("hourly_rate", ErrorCode.FIELD_INVALID.value, "Must be an integer amount in cents")],
        )
    return hourly_rate


class LedgerService:
    @staticmethod
    def record(
        matter_id,
        description: str,
        duration_minutes: int,
        hourly_rate: Optional[Union[Money, int]] = None,
        billable: bool = True,
        entry_date: Optional[date] = None,
        user=None,
        enhance_narrative: bool = True,
        enhancer: Optional[NarrativeEnhancer] = None,
    ) -> TimeEntry:
        errors: List[FieldError] = []

        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
            errors.append(FieldError("duration_minutes", ErrorCode.FIELD_INVALID.value, "Duration must be a whole number of minutes"))
        elif duration_minutes <= 0:
            errors.append(FieldError("duration_minutes", ErrorCode.FIELD_OUT_OF_RANGE.value, "Duration must be greater than 0"))

        if not (description or "").strip():
            errors.append(FieldError("description", ErrorCode.FIELD_REQUIRED.value, "Description is required"))

        rate_cents = _rate_cents(hourly_rate)
        if rate_cents is not None and rate_cents < 0:
            errors.append(FieldError("hourly_rate", ErrorCode.FIELD_OUT_OF_RANGE.value, "Hourly rate cannot be negative"))

        matter = get_matter(matter_id)

        if matter.billing_mode == Matter.BillingMode.HOURLY and rate_cents is None:
            errors.append(FieldError("hourly_rate", ErrorCode.FIELD_REQUIRED.value, "Hourly rate is required for hourly matters"))

        if errors:
            raise ValidationError("Invalid time entry", fields=errors)

        description = description.strip()
        narrative = ""
        if enhance_narrative:
            enhanced = (enhancer or NarrativeEnhancer()).enhance(description, duration_minutes)
            if enhanced != description:
                narrative = enhanced

        with transaction.atomic():
            entry = TimeEntry.objects.create(
                matter=matter,
                created_by=user,
                description=description,
                ai_narrative=narrative,
                duration_minutes=duration_minutes,
                hourly_rate_cents=rate_cents,
                is_billable=billable,
                entry_date=entry_date or timezone.localdate(),
            )
            ActivityService.log(
                BillingActivity.EntityType.TIME_ENTRY,
                entry.id,
                BillingActivity.ActionType.CREATED,
                user=user,
                details={"matter_id": matter.id, "minutes": duration_minutes},
            )

        logger.info(f"Time entry {entry.id} recorded on matter {matter.id} ({duration_minutes}m)")
        return entry

    @staticmethod
    def unbilled(matter_id) -> List[TimeEntry]:
        matter = get_matter(matter_id)
        return list(
            TimeEntry.objects.filter(matter=matter, is_billable=True, invoice__isnull=True)
            .order_by("entry_date", "id")
        )

    @staticmethod
    def lock_entries(entry_ids: Iterable[int]) -> List[int]:
        """Row-lock the entries in ascending id order so overlapping claims queue instead of deadlocking."""
        return list(
            TimeEntry.objects.select_for_update()
            .filter(id__in=list(entry_ids))
            .order_by("id")
            .values_list("id", flat=True)
        )

    @staticmethod
    def mark_invoiced(entry_ids: Iterable[int], invoice: Invoice) -> int:
        """
        Claim ``entry_ids`` for ``invoice`` with a compare-and-swap update.

        Raises ConflictError unless every entry was still unclaimed. Must run
        inside the caller's transaction so the raise rolls the caller back.
        """
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return 0
        if not transaction.get_connection().in_atomic_block:
            raise RuntimeError("mark_invoiced must be called inside transaction.atomic()")

        claimed = TimeEntry.objects.filter(id__in=ids, invoice__isnull=True).update(
            invoice=invoice,
            updated_at=timezone.now(),
        )
        if claimed != len(ids):
            logger.warning(f"Invoice {invoice.invoice_number}: claimed {claimed} of {len(ids)} entries, rolling back")
            raise ConflictError("One or more time entries have already been invoiced")
        return claimed

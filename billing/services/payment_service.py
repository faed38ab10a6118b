"""
Payment Service - records money received against a sent invoice.

A payment never edits the invoice snapshot. When the recorded payments
cover the frozen total, the invoice is moved to paid through the
lifecycle service like any other transition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from django.db import transaction
from django.db.models import Sum
from django.db.utils import OperationalError
from django.utils import timezone

from ..models import BillingActivity, Invoice, Payment
from ..money import Money
from ..validation import (
    ConflictError,
    ErrorCode,
    FieldError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from .activity_service import ActivityService
from .lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceBalance:
    total: Money
    paid: Money
    balance: Money


def _amount_cents(amount: Union[Money, int], currency: str) -> int:
    if isinstance(amount, Money):
        if amount.currency != currency:
            raise ValidationError(
                "Invalid payment",
                fields=[FieldError("amount", ErrorCode.FIELD_INVALID.value, f"Payment must be in {currency}")],
            )
        return amount.amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(
            "Invalid payment",
            fields=[FieldError("amount", ErrorCode.FIELD_INVALID.value, "Must be an integer amount in cents")],
        )
    return amount


class PaymentService:
    @staticmethod
    def _paid_cents(invoice: Invoice) -> int:
        return invoice.payments.aggregate(total=Sum("amount_cents"))["total"] or 0

    @classmethod
    def balance(cls, invoice_id) -> InvoiceBalance:
        invoice = cls._get_invoice(invoice_id)
        paid = cls._paid_cents(invoice)
        return InvoiceBalance(
            total=invoice.total,
            paid=Money(paid, invoice.currency),
            balance=Money(invoice.total_cents - paid, invoice.currency),
        )

    @classmethod
    def payments(cls, invoice_id) -> List[Payment]:
        invoice = cls._get_invoice(invoice_id)
        return list(invoice.payments.select_related("invoice"))

    @classmethod
    def record(
        cls,
        invoice_id,
        amount: Union[Money, int],
        method: str,
        reference: str = "",
        notes: str = "",
        payment_date: Optional[date] = None,
        user=None,
    ) -> Payment:
        invoice = cls._get_invoice(invoice_id)

        errors: List[FieldError] = []
        cents = _amount_cents(amount, invoice.currency)
        if cents <= 0:
            errors.append(FieldError("amount", ErrorCode.FIELD_OUT_OF_RANGE.value, "Payment amount must be greater than 0"))
        if method not in Payment.Method.values:
            errors.append(FieldError("method", ErrorCode.FIELD_INVALID.value, f"'{method}' is not a valid payment method"))
        if errors:
            raise ValidationError("Invalid payment", fields=errors)

        try:
            with transaction.atomic():
                invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
                if invoice.status != Invoice.Status.SENT:
                    raise ConflictError(
                        f"Payments can only be recorded on sent invoices; {invoice.invoice_number} is {invoice.status}"
                    )

                outstanding = invoice.total_cents - cls._paid_cents(invoice)
                if cents > outstanding:
                    raise ValidationError(
                        "Invalid payment",
                        fields=[FieldError(
                            "amount",
                            ErrorCode.FIELD_OUT_OF_RANGE.value,
                            f"Payment exceeds the outstanding balance of {Money(outstanding, invoice.currency)}",
                        )],
                    )

                payment = Payment.objects.create(
                    invoice=invoice,
                    amount_cents=cents,
                    method=method,
                    reference=reference or "",
                    notes=notes or "",
                    payment_date=payment_date or timezone.localdate(),
                    recorded_by=user,
                )
                ActivityService.log(
                    BillingActivity.EntityType.PAYMENT,
                    payment.id,
                    BillingActivity.ActionType.CREATED,
                    user=user,
                    details={"invoice_id": invoice.id, "amount_cents": cents, "method": method},
                )
                ActivityService.log(
                    BillingActivity.EntityType.INVOICE,
                    invoice.id,
                    BillingActivity.ActionType.PAYMENT_RECORDED,
                    user=user,
                    details={"payment_id": payment.id, "amount_cents": cents, "balance_cents": outstanding - cents},
                )

                if cents == outstanding:
                    LifecycleService.transition(invoice.id, Invoice.Status.PAID.value, user=user)
        except OperationalError as e:
            logger.error(f"Payment on invoice {invoice.invoice_number} hit a database error: {e}")
            raise UnavailableError("The ledger database is busy. Please retry shortly.") from e

        logger.info(f"Payment {payment.id} of {payment.amount} recorded on invoice {invoice.invoice_number}")
        return payment

    @staticmethod
    def _get_invoice(invoice_id) -> Invoice:
        try:
            return Invoice.objects.get(pk=invoice_id)
        except (Invoice.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Invoice not found")

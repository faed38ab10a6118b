from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from django.conf import settings
from django.db import models
from django.db.models import Q

from .money import Money


def _currency() -> str:
    return getattr(settings, "BILLING_CURRENCY", "USD")


@dataclass(frozen=True)
class HourlyBilling:
    """Hourly matter. ``rate`` is the matter's current rate, informational only:
    entries carry the rate that was in force when they were logged."""
    rate: Optional[Money]


@dataclass(frozen=True)
class FlatFeeBilling:
    amount: Money


BillingTerms = Union[HourlyBilling, FlatFeeBilling]


class Client(models.Model):
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    address = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Matter(models.Model):
    class BillingMode(models.TextChoices):
        HOURLY = "hourly", "Hourly"
        FLAT_FEE = "flat_fee", "Flat Fee"

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        PENDING = "pending", "Pending"
        CLOSED = "closed", "Closed"
        ARCHIVED = "archived", "Archived"

    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="matters")
    title = models.CharField(max_length=255)
    case_type = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN, db_index=True)
    billing_mode = models.CharField(max_length=20, choices=BillingMode.choices, default=BillingMode.HOURLY)
    hourly_rate_cents = models.PositiveBigIntegerField(null=True, blank=True)
    flat_fee_cents = models.PositiveBigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(billing_mode="hourly", flat_fee_cents__isnull=True)
                    | Q(billing_mode="flat_fee", flat_fee_cents__isnull=False, hourly_rate_cents__isnull=True)
                ),
                name="matter_billing_terms_match_mode",
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.client.name})"

    @property
    def billing(self) -> BillingTerms:
        if self.billing_mode == self.BillingMode.FLAT_FEE:
            return FlatFeeBilling(amount=Money(self.flat_fee_cents or 0, _currency()))
        rate = Money(self.hourly_rate_cents, _currency()) if self.hourly_rate_cents is not None else None
        return HourlyBilling(rate=rate)


class TimeEntry(models.Model):
    matter = models.ForeignKey(Matter, on_delete=models.PROTECT, related_name="time_entries")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="time_entries")
    description = models.TextField()
    ai_narrative = models.TextField(blank=True)
    duration_minutes = models.PositiveIntegerField()
    hourly_rate_cents = models.PositiveBigIntegerField(null=True, blank=True, help_text="Rate in force when the work was logged")
    is_billable = models.BooleanField(default=True)
    entry_date = models.DateField(db_index=True)
    # Set once by invoice generation, never cleared.
    invoice = models.ForeignKey('Invoice', on_delete=models.PROTECT, null=True, blank=True, related_name="time_entries")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['entry_date', 'id']
        verbose_name_plural = "Time entries"
        indexes = [
            models.Index(fields=['matter', 'is_billable', 'invoice'], name='billing_te_unbilled_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(duration_minutes__gt=0), name="time_entry_duration_positive"),
        ]

    def __str__(self):
        return f"{self.duration_minutes}m on {self.entry_date} - {self.matter_id}"

    @property
    def hourly_rate(self) -> Optional[Money]:
        if self.hourly_rate_cents is None:
            return None
        return Money(self.hourly_rate_cents, _currency())

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None

    @property
    def narrative(self) -> str:
        return self.ai_narrative or self.description


class Invoice(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        PAID = "paid", "Paid"
        OVERDUE = "overdue", "Overdue"
        VOID = "void", "Void"

    matter = models.ForeignKey(Matter, on_delete=models.PROTECT, related_name="invoices")
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="invoices")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_invoices")
    invoice_sequence = models.PositiveBigIntegerField(unique=True)
    invoice_number = models.CharField(max_length=50, unique=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)

    # Frozen snapshot, written once at creation.
    client_name = models.CharField(max_length=255)
    client_email = models.EmailField(blank=True)
    matter_title = models.CharField(max_length=255)
    billing_mode = models.CharField(max_length=20, choices=Matter.BillingMode.choices)
    currency = models.CharField(max_length=3, default="USD")
    included_entry_ids = models.JSONField(default=list)
    subtotal_cents = models.BigIntegerField()
    total_cents = models.BigIntegerField()

    issue_date = models.DateField()
    due_date = models.DateField()
    notes = models.TextField(blank=True)

    sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)

    pdf_url = models.URLField(max_length=500, blank=True)
    pdf_file_name = models.CharField(max_length=255, blank=True)
    pdf_exported_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-invoice_sequence']
        indexes = [
            models.Index(fields=['matter', 'status'], name='billing_inv_matter_status_idx'),
            models.Index(fields=['status', 'due_date'], name='billing_inv_status_due_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(subtotal_cents__gte=0, total_cents__gte=0), name="invoice_totals_non_negative"),
        ]

    def __str__(self):
        return f"{self.invoice_number} - {self.client_name}"

    def delete(self, *args, **kwargs):
        raise models.ProtectedError("Invoices are never deleted; void them instead.", {self})

    @property
    def subtotal(self) -> Money:
        return Money(self.subtotal_cents, self.currency)

    @property
    def total(self) -> Money:
        return Money(self.total_cents, self.currency)

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.PAID, self.Status.VOID)

    @property
    def has_export(self) -> bool:
        return bool(self.pdf_url)

    def frozen_line_items(self) -> List["InvoiceLineItem"]:
        return list(self.line_items.order_by('sort_order', 'id'))


class InvoiceLineItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="line_items")
    time_entry = models.ForeignKey(TimeEntry, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    entry_date = models.DateField(null=True, blank=True)
    description = models.TextField()
    duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    hourly_rate_cents = models.PositiveBigIntegerField(null=True, blank=True)
    amount_cents = models.BigIntegerField()
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ['sort_order', 'id']

    @property
    def amount(self) -> Money:
        return Money(self.amount_cents, self.invoice.currency)

    @property
    def hourly_rate(self) -> Optional[Money]:
        if self.hourly_rate_cents is None:
            return None
        return Money(self.hourly_rate_cents, self.invoice.currency)

    @property
    def hours(self) -> Optional[str]:
        if self.duration_minutes is None:
            return None
        return f"{self.duration_minutes / 60:.2f}"


class Payment(models.Model):
    class Method(models.TextChoices):
        CASH = "cash", "Cash"
        CHECK = "check", "Check"
        CREDIT_CARD = "credit_card", "Credit Card"
        BANK_TRANSFER = "bank_transfer", "Bank Transfer"
        OTHER = "other", "Other"

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    amount_cents = models.BigIntegerField()
    method = models.CharField(max_length=20, choices=Method.choices)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    payment_date = models.DateField()
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="recorded_payments")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['payment_date', 'id']
        constraints = [
            models.CheckConstraint(condition=Q(amount_cents__gt=0), name="payment_amount_positive"),
        ]

    def __str__(self):
        return f"{self.amount} on {self.invoice_id} ({self.method})"

    @property
    def amount(self) -> Money:
        return Money(self.amount_cents, self.invoice.currency)


class InvoiceSequence(models.Model):
    name = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name}={self.last_value}"


class BillingActivity(models.Model):
    class EntityType(models.TextChoices):
        TIME_ENTRY = "time_entry", "Time Entry"
        INVOICE = "invoice", "Invoice"
        PAYMENT = "payment", "Payment"

    class ActionType(models.TextChoices):
        CREATED = "created", "Created"
        STATUS_CHANGED = "status_changed", "Status Changed"
        MARKED_OVERDUE = "marked_overdue", "Marked Overdue"
        EXPORTED_PDF = "exported_pdf", "PDF Exported"
        PAYMENT_RECORDED = "payment_recorded", "Payment Recorded"

    entity_type = models.CharField(max_length=20, choices=EntityType.choices)
    entity_id = models.BigIntegerField()
    action = models.CharField(max_length=50, choices=ActionType.choices)
    details = models.JSONField(default=dict, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    is_system = models.BooleanField(default=False)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']
        verbose_name_plural = "Billing activities"
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-timestamp'], name='billing_act_entity_idx'),
        ]

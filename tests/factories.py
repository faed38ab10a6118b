from datetime import date, timedelta

import factory
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory

from billing.models import Client, Invoice, InvoiceLineItem, Matter, Payment, TimeEntry


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"lawyer{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@firm.example")
    password = factory.django.Password("password123")


class ClientFactory(DjangoModelFactory):
    class Meta:
        model = Client

    name = factory.Sequence(lambda n: f"Client {n} LLC")
    email = factory.LazyAttribute(lambda o: f"billing{o.name.split()[1]}@client.example")


class MatterFactory(DjangoModelFactory):
    class Meta:
        model = Matter

    client = factory.SubFactory(ClientFactory)
    title = factory.Sequence(lambda n: f"Matter {n}")
    case_type = "litigation"
    billing_mode = Matter.BillingMode.HOURLY
    hourly_rate_cents = 25000
    flat_fee_cents = None


class FlatFeeMatterFactory(MatterFactory):
    billing_mode = Matter.BillingMode.FLAT_FEE
    hourly_rate_cents = None
    flat_fee_cents = 150000


class TimeEntryFactory(DjangoModelFactory):
    class Meta:
        model = TimeEntry

    matter = factory.SubFactory(MatterFactory)
    description = factory.Sequence(lambda n: f"Drafted motion section {n}")
    duration_minutes = 60
    hourly_rate_cents = factory.LazyAttribute(lambda o: o.matter.hourly_rate_cents)
    is_billable = True
    entry_date = factory.Sequence(lambda n: date(2024, 1, 1) + timedelta(days=n % 28))


class InvoiceFactory(DjangoModelFactory):
    """A persisted invoice built directly, bypassing generation (for lifecycle and export tests)."""

    class Meta:
        model = Invoice

    matter = factory.SubFactory(MatterFactory)
    client = factory.LazyAttribute(lambda o: o.matter.client)
    invoice_sequence = factory.Sequence(lambda n: 500000 + n)
    invoice_number = factory.LazyAttribute(lambda o: f"INV-{o.invoice_sequence:06d}")
    status = Invoice.Status.DRAFT
    client_name = factory.LazyAttribute(lambda o: o.client.name)
    client_email = factory.LazyAttribute(lambda o: o.client.email)
    matter_title = factory.LazyAttribute(lambda o: o.matter.title)
    billing_mode = factory.LazyAttribute(lambda o: o.matter.billing_mode)
    currency = "USD"
    included_entry_ids = factory.LazyFunction(list)
    subtotal_cents = 50000
    total_cents = 50000
    issue_date = factory.LazyFunction(date.today)
    due_date = factory.LazyFunction(lambda: date.today() + timedelta(days=30))


class InvoiceLineItemFactory(DjangoModelFactory):
    class Meta:
        model = InvoiceLineItem

    invoice = factory.SubFactory(InvoiceFactory)
    entry_date = date(2024, 1, 10)
    description = "Reviewed discovery responses"
    duration_minutes = 120
    hourly_rate_cents = 25000
    amount_cents = 50000
    sort_order = 0


class PaymentFactory(DjangoModelFactory):
    class Meta:
        model = Payment

    invoice = factory.SubFactory(InvoiceFactory, status=Invoice.Status.SENT)
    amount_cents = 20000
    method = Payment.Method.CHECK
    reference = factory.Sequence(lambda n: f"CHK-{1000 + n}")
    payment_date = factory.LazyFunction(date.today)

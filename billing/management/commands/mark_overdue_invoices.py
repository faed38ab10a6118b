"""
Management command to move past-due invoices to overdue.

Usage:
    python manage.py mark_overdue_invoices                   # Mark as of today
    python manage.py mark_overdue_invoices --dry-run         # Show what would change
    python manage.py mark_overdue_invoices --as-of 2024-03-31
"""

import logging
from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from billing.models import Invoice
from billing.services import LifecycleService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark draft and sent invoices whose due date has passed as overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List invoices that would be marked without changing them',
        )
        parser.add_argument(
            '--as-of',
            dest='as_of',
            default=None,
            help='Treat this ISO date (YYYY-MM-DD) as today',
        )

    def handle(self, *args, **options):
        today = timezone.localdate()
        if options['as_of']:
            try:
                today = date.fromisoformat(options['as_of'])
            except ValueError:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")

        if options['dry_run']:
            due = Invoice.objects.filter(
                status__in=[Invoice.Status.DRAFT, Invoice.Status.SENT],
                due_date__lt=today,
            ).order_by('due_date')
            self.stdout.write(self.style.WARNING('DRY RUN - No invoices will be changed'))
            for invoice in due:
                self.stdout.write(f'  - {invoice.invoice_number} ({invoice.status}, due {invoice.due_date})')
            self.stdout.write(f'{due.count()} invoice(s) would be marked overdue')
            return

        marked = LifecycleService.mark_overdue(today=today)
        logger.info(f"Overdue sweep as of {today}: {marked} invoice(s) marked")
        self.stdout.write(self.style.SUCCESS(f'Marked {marked} invoice(s) overdue'))

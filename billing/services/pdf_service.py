"""
PDF Service - renders an invoice snapshot and publishes it to storage.

Responsibilities:
- HTML rendering from the frozen invoice and line items only
- HTML to PDF conversion (WeasyPrint)
- Export pipeline: render, upload, record the reference on the invoice
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.utils import OperationalError
from django.template.loader import render_to_string
from django.utils import timezone

from ..models import BillingActivity, Invoice
from ..validation import UnavailableError
from .activity_service import ActivityService
from .invoice_service import InvoiceService
from .storage_service import InvoiceStorage, invoice_file_name, invoice_storage_key

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "billing/invoice_pdf.html"


class PDFService:
    """Handles PDF generation with a unified rendering pipeline."""

    @staticmethod
    def build_context(invoice: Invoice) -> Dict[str, Any]:
        lines = []
        for item in invoice.frozen_line_items():
            rate = item.hourly_rate
            lines.append({
                "entry_date": item.entry_date,
                "description": item.description,
                "hours": item.hours,
                "rate": rate.format() if rate is not None else None,
                "amount": item.amount.format(),
            })

        return {
            "invoice": invoice,
            "lines": lines,
            "subtotal": invoice.subtotal.format(),
            "total": invoice.total.format(),
            "firm_name": getattr(settings, "FIRM_NAME", ""),
            "branding_color": "#2563eb",
        }

    @classmethod
    def render_html(cls, invoice: Invoice) -> str:
        """Render the invoice from its stored snapshot; never reads live rates."""
        return render_to_string(TEMPLATE_NAME, cls.build_context(invoice))

    @staticmethod
    def html_to_pdf(html: str) -> bytes:
        """
        Convert rendered HTML to PDF bytes.

        Raises:
            UnavailableError: If WeasyPrint or its system libraries are missing,
                or the renderer fails at the OS level.
        """
        try:
            from weasyprint import HTML
        except (ImportError, OSError) as e:
            logger.error(f"PDF renderer unavailable: {e}")
            raise UnavailableError("PDF generation is currently unavailable.") from e

        try:
            return HTML(string=html, base_url=getattr(settings, "SITE_URL", "")).write_pdf()
        except OSError as e:
            logger.error(f"PDF rendering failed: {e}")
            raise UnavailableError("PDF generation is currently unavailable.") from e

    @classmethod
    def export_invoice_pdf(cls, invoice_id, user=None, storage: Optional[InvoiceStorage] = None) -> Dict[str, str]:
        """
        Render, upload and link the invoice document.

        Concurrent exports of one invoice queue on the invoice row lock, so
        each finishes its upload and link before the next starts and both
        callers get the same stored reference back.
        """
        InvoiceService.get_invoice(invoice_id)
        storage = storage or InvoiceStorage()

        try:
            with transaction.atomic():
                invoice = Invoice.objects.select_for_update().get(pk=invoice_id)

                html = cls.render_html(invoice)
                pdf_bytes = cls.html_to_pdf(html)
                url = storage.put(invoice_storage_key(invoice), pdf_bytes)
                file_name = invoice_file_name(invoice)

                now = timezone.now()
                Invoice.objects.filter(pk=invoice.pk).update(
                    pdf_url=url,
                    pdf_file_name=file_name,
                    pdf_exported_at=now,
                    updated_at=now,
                )
                ActivityService.log(
                    BillingActivity.EntityType.INVOICE,
                    invoice.id,
                    BillingActivity.ActionType.EXPORTED_PDF,
                    user=user,
                    details={"url": url, "file_name": file_name, "bytes": len(pdf_bytes)},
                )
        except OperationalError as e:
            raise UnavailableError("The ledger database is busy. Please retry shortly.") from e

        logger.info(f"Exported PDF for invoice {invoice.invoice_number} to {url}")
        return {"url": url, "file_name": file_name}

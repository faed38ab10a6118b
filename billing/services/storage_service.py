"""
Invoice Storage - durable home for exported invoice documents.

Wraps Django's storage API so the default backend (atomic filesystem) can be
swapped for any other storage class without touching the export pipeline.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage

from ..validation import UnavailableError

if TYPE_CHECKING:
    from billing.models import Invoice

logger = logging.getLogger(__name__)


def invoice_file_name(invoice: "Invoice") -> str:
    return f"invoice-{invoice.invoice_number}.pdf"


def invoice_storage_key(invoice: "Invoice") -> str:
    prefix = getattr(settings, "INVOICE_STORAGE_PREFIX", "invoices").strip("/")
    return f"{prefix}/{invoice.id}/{invoice_file_name(invoice)}"


class InvoiceStorage:
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or default_storage

    def put(self, key: str, content: bytes) -> str:
        """Store ``content`` at ``key``, replacing any previous object, and return its absolute URL."""
        try:
            saved_name = self.storage.save(key, ContentFile(content))
            url = self.storage.url(saved_name)
        except OSError as e:
            logger.error(f"Storage write failed for {key}: {e}")
            raise UnavailableError("Document storage is unavailable. Please retry shortly.") from e

        if saved_name != key:
            logger.warning(f"Storage renamed {key} to {saved_name}")
        return self.absolute_url(url)

    def exists(self, key: str) -> bool:
        try:
            return self.storage.exists(key)
        except OSError as e:
            raise UnavailableError("Document storage is unavailable. Please retry shortly.") from e

    @staticmethod
    def absolute_url(url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        site_url = getattr(settings, "SITE_URL", "").rstrip("/")
        return f"{site_url}/{url.lstrip('/')}"

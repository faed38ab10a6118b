"""
Billing Services Layer

- Models: data + database constraints
- Services: business rules, transactions, external calls
- API: request parsing, auth, response mapping

All writes to time entries and invoices flow through these services.
"""

from .activity_service import ActivityService
from .invoice_service import InvoiceService
from .ledger_service import LedgerService
from .lifecycle_service import LifecycleService
from .narrative_service import NarrativeEnhancer
from .pdf_service import PDFService
from .payment_service import InvoiceBalance, PaymentService
from .storage_service import InvoiceStorage

__all__ = [
    "ActivityService",
    "InvoiceService",
    "LedgerService",
    "LifecycleService",
    "NarrativeEnhancer",
    "PDFService",
    "PaymentService",
    "InvoiceBalance",
    "InvoiceStorage",
]

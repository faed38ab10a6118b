from typing import Any, Dict, Optional, cast

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from billing.models import BillingActivity
from billing.services import (
    ActivityService,
    InvoiceService,
    LedgerService,
    LifecycleService,
    PDFService,
    PaymentService,
)

from .response import APIResponse
from .serializers import (
    AvailableTransitionsSerializer,
    BillingActivitySerializer,
    InvoiceBalanceSerializer,
    InvoiceCreateSerializer,
    InvoiceDetailSerializer,
    InvoiceStatusSerializer,
    PdfExportSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    TimeEntryCreateSerializer,
    TimeEntrySerializer,
)

INVOICE_ID_PARAM = OpenApiParameter(
    name="pk",
    description="Invoice ID",
    required=True,
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
)

MATTER_ID_PARAM = OpenApiParameter(
    name="pk",
    description="Matter ID",
    required=True,
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
)


# ------------------------------
# Time entries
# ------------------------------
class TimeEntryViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Record time entry",
        description="Log work against a matter. Hourly matters require a rate on the entry.",
        request=TimeEntryCreateSerializer,
        responses={201: TimeEntrySerializer},
    )
    def create(self, request: Request, version: Optional[str] = None) -> Response:
        serializer = TimeEntryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = cast(Dict[str, Any], serializer.validated_data)

        entry = LedgerService.record(
            matter_id=data["matter_id"],
            description=data["description"],
            duration_minutes=data["duration_minutes"],
            hourly_rate=data.get("hourly_rate"),
            billable=data["billable"],
            entry_date=data.get("entry_date"),
            user=request.user,
            enhance_narrative=data["enhance_narrative"],
        )
        return APIResponse.created(
            data=TimeEntrySerializer(entry).data,
            message="Time entry recorded.",
        )


class MatterViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List unbilled time entries",
        description="Billable entries on the matter not yet claimed by an invoice, oldest first.",
        responses={200: TimeEntrySerializer(many=True)},
        parameters=[MATTER_ID_PARAM],
    )
    @action(detail=True, methods=["get"], url_path="unbilled-entries")
    def unbilled_entries(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        entries = LedgerService.unbilled(pk)
        return APIResponse.success(
            data=TimeEntrySerializer(entries, many=True).data,
            message="Unbilled time entries retrieved.",
        )


# ------------------------------
# Invoices
# ------------------------------
class InvoiceViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create invoice",
        description="Aggregate unbilled time entries into a draft invoice with a frozen total.",
        request=InvoiceCreateSerializer,
        responses={201: InvoiceDetailSerializer},
    )
    def create(self, request: Request, version: Optional[str] = None) -> Response:
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = cast(Dict[str, Any], serializer.validated_data)

        invoice = InvoiceService.create_invoice(
            matter_id=data["matter_id"],
            client_id=data["client_id"],
            time_entry_ids=data["time_entry_ids"],
            due_date=data["due_date"],
            notes=data.get("notes", ""),
            user=request.user,
            issue_date=data.get("issue_date"),
        )
        return APIResponse.created(
            data=InvoiceDetailSerializer(invoice).data,
            message=f"Invoice {invoice.invoice_number} created.",
        )

    @extend_schema(
        summary="Get invoice details",
        description="Invoice snapshot including frozen line items.",
        responses={200: InvoiceDetailSerializer},
        parameters=[INVOICE_ID_PARAM],
    )
    def retrieve(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        invoice = InvoiceService.get_invoice(pk)
        return APIResponse.success(
            data=InvoiceDetailSerializer(invoice).data,
            message="Invoice retrieved.",
        )

    @extend_schema(
        summary="Update invoice status",
        description="Move the invoice through its lifecycle. Invalid transitions return 422.",
        request=InvoiceStatusSerializer,
        responses={200: InvoiceDetailSerializer},
        parameters=[INVOICE_ID_PARAM],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        serializer = InvoiceStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        validated_data = cast(Dict[str, Any], serializer.validated_data)

        invoice = LifecycleService.transition(pk, validated_data["status"], user=request.user)
        return APIResponse.success(
            data=InvoiceDetailSerializer(invoice).data,
            message="Invoice status updated.",
        )

    @extend_schema(
        summary="Get available status transitions",
        description="Statuses this invoice can move to right now.",
        responses={200: AvailableTransitionsSerializer},
        parameters=[INVOICE_ID_PARAM],
    )
    @action(detail=True, methods=["get"], url_path="available-transitions")
    def available_transitions(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        invoice = InvoiceService.get_invoice(pk)
        return APIResponse.success(
            data={
                "current_status": invoice.status,
                "available_transitions": LifecycleService.available_transitions(invoice),
            },
            message="Available transitions retrieved.",
        )

    @extend_schema(
        summary="Get invoice history",
        description="Audit trail of creation, status changes and exports for an invoice.",
        responses={200: BillingActivitySerializer(many=True)},
        parameters=[INVOICE_ID_PARAM],
    )
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        invoice = InvoiceService.get_invoice(pk)
        entries = ActivityService.history(BillingActivity.EntityType.INVOICE, invoice.id).select_related("user")
        return APIResponse.success(
            data=BillingActivitySerializer(entries, many=True).data,
            message="Invoice history retrieved.",
        )

    @extend_schema(
        summary="Export invoice PDF",
        description="Render the invoice to PDF, store it durably and return its URL.",
        request=None,
        responses={200: PdfExportSerializer},
        parameters=[INVOICE_ID_PARAM],
    )
    @action(detail=True, methods=["post"], url_path="export-pdf")
    def export_pdf(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        result = PDFService.export_invoice_pdf(pk, user=request.user)
        return APIResponse.success(
            data=result,
            message="Invoice PDF exported.",
        )

    @extend_schema(
        methods=["GET"],
        summary="List invoice payments",
        description="Payments recorded against the invoice, oldest first.",
        responses={200: PaymentSerializer(many=True)},
        parameters=[INVOICE_ID_PARAM],
    )
    @extend_schema(
        methods=["POST"],
        summary="Record payment",
        description="Record money received on a sent invoice. Paying the full balance marks it paid.",
        request=PaymentCreateSerializer,
        responses={201: PaymentSerializer},
        parameters=[INVOICE_ID_PARAM],
    )
    @action(detail=True, methods=["get", "post"], url_path="payments")
    def payments(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        if request.method == "GET":
            return APIResponse.success(
                data=PaymentSerializer(PaymentService.payments(pk), many=True).data,
                message="Payments retrieved.",
            )

        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = cast(Dict[str, Any], serializer.validated_data)

        payment = PaymentService.record(
            pk,
            amount=data["amount"],
            method=data["method"],
            reference=data.get("reference", ""),
            notes=data.get("notes", ""),
            payment_date=data.get("payment_date"),
            user=request.user,
        )
        return APIResponse.created(
            data=PaymentSerializer(payment).data,
            message="Payment recorded.",
        )

    @extend_schema(
        summary="Get invoice balance",
        description="Frozen total, payments received and the outstanding balance.",
        responses={200: InvoiceBalanceSerializer},
        parameters=[INVOICE_ID_PARAM],
    )
    @action(detail=True, methods=["get"], url_path="balance")
    def balance(self, request: Request, pk: Optional[int] = None, version: Optional[str] = None) -> Response:
        result = PaymentService.balance(pk)
        return APIResponse.success(
            data={
                "total_cents": result.total.amount,
                "paid_cents": result.paid.amount,
                "balance_cents": result.balance.amount,
                "balance": result.balance.format(),
            },
            message="Invoice balance retrieved.",
        )

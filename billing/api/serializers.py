from rest_framework import serializers

from billing.models import BillingActivity, Invoice, InvoiceLineItem, Payment, TimeEntry


class TimeEntryCreateSerializer(serializers.Serializer):
    matter_id = serializers.IntegerField()
    description = serializers.CharField(max_length=5000, allow_blank=True)
    duration_minutes = serializers.IntegerField()
    hourly_rate = serializers.IntegerField(required=False, allow_null=True, help_text="Minor units (cents) per hour")
    billable = serializers.BooleanField(default=True)
    entry_date = serializers.DateField(required=False)
    enhance_narrative = serializers.BooleanField(default=True)


class TimeEntrySerializer(serializers.ModelSerializer):
    narrative = serializers.CharField(read_only=True)
    invoice_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = TimeEntry
        fields = [
            "id",
            "matter",
            "description",
            "ai_narrative",
            "narrative",
            "duration_minutes",
            "hourly_rate_cents",
            "is_billable",
            "entry_date",
            "invoice_id",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceCreateSerializer(serializers.Serializer):
    matter_id = serializers.IntegerField()
    client_id = serializers.IntegerField()
    time_entry_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    due_date = serializers.DateField()
    issue_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class InvoiceLineItemSerializer(serializers.ModelSerializer):
    amount = serializers.SerializerMethodField()

    class Meta:
        model = InvoiceLineItem
        fields = [
            "id",
            "time_entry",
            "entry_date",
            "description",
            "duration_minutes",
            "hourly_rate_cents",
            "amount_cents",
            "amount",
            "sort_order",
        ]
        read_only_fields = fields

    def get_amount(self, obj) -> str:
        return obj.amount.format()


class InvoiceDetailSerializer(serializers.ModelSerializer):
    line_items = serializers.SerializerMethodField()
    subtotal = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "matter",
            "client",
            "status",
            "client_name",
            "client_email",
            "matter_title",
            "billing_mode",
            "currency",
            "included_entry_ids",
            "subtotal_cents",
            "total_cents",
            "subtotal",
            "total",
            "issue_date",
            "due_date",
            "notes",
            "sent_at",
            "paid_at",
            "voided_at",
            "pdf_url",
            "pdf_file_name",
            "pdf_exported_at",
            "line_items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_line_items(self, obj) -> list:
        return InvoiceLineItemSerializer(obj.frozen_line_items(), many=True).data

    def get_subtotal(self, obj) -> str:
        return obj.subtotal.format()

    def get_total(self, obj) -> str:
        return obj.total.format()


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.Status.choices)


class AvailableTransitionsSerializer(serializers.Serializer):
    current_status = serializers.CharField()
    available_transitions = serializers.ListField(child=serializers.CharField())


class PdfExportSerializer(serializers.Serializer):
    url = serializers.URLField()
    file_name = serializers.CharField()


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.IntegerField(help_text="Minor units (cents)")
    method = serializers.ChoiceField(choices=Payment.Method.choices)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    payment_date = serializers.DateField(required=False)


class PaymentSerializer(serializers.ModelSerializer):
    amount = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "invoice",
            "amount_cents",
            "amount",
            "method",
            "reference",
            "notes",
            "payment_date",
            "created_at",
        ]
        read_only_fields = fields

    def get_amount(self, obj) -> str:
        return obj.amount.format()


class InvoiceBalanceSerializer(serializers.Serializer):
    total_cents = serializers.IntegerField()
    paid_cents = serializers.IntegerField()
    balance_cents = serializers.IntegerField()
    balance = serializers.CharField()


class BillingActivitySerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source="user.email", read_only=True, allow_null=True, default=None)

    class Meta:
        model = BillingActivity
        fields = [
            "id",
            "action",
            "details",
            "user_email",
            "is_system",
            "timestamp",
        ]
        read_only_fields = fields

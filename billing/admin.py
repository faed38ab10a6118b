from django.contrib import admin

from .models import BillingActivity, Client, Invoice, InvoiceLineItem, InvoiceSequence, Matter, Payment, TimeEntry


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'created_at')
    search_fields = ('name', 'email')


@admin.register(Matter)
class MatterAdmin(admin.ModelAdmin):
    list_display = ('title', 'client', 'billing_mode', 'hourly_rate_cents', 'flat_fee_cents', 'status')
    list_filter = ('billing_mode', 'status')
    search_fields = ('title', 'client__name')


@admin.register(TimeEntry)
class TimeEntryAdmin(admin.ModelAdmin):
    list_display = ('id', 'matter', 'entry_date', 'duration_minutes', 'hourly_rate_cents', 'is_billable', 'invoice')
    list_filter = ('is_billable', 'entry_date')
    readonly_fields = ('invoice', 'created_at', 'updated_at')


class InvoiceLineItemInline(admin.TabularInline):
    model = InvoiceLineItem
    extra = 0
    can_delete = False
    readonly_fields = ('time_entry', 'entry_date', 'description', 'duration_minutes', 'hourly_rate_cents', 'amount_cents', 'sort_order')

    def has_add_permission(self, request, obj=None):
        return False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    readonly_fields = ('amount_cents', 'method', 'reference', 'payment_date', 'recorded_by', 'created_at')
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


class ReadOnlyAdmin(admin.ModelAdmin):
    """Visible for support, written only through the billing services."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(ReadOnlyAdmin):
    list_display = ('invoice_number', 'client_name', 'matter_title', 'status', 'total_cents', 'due_date')
    list_filter = ('status', 'billing_mode')
    search_fields = ('invoice_number', 'client_name', 'matter_title')
    inlines = [InvoiceLineItemInline, PaymentInline]
    readonly_fields = [f.name for f in Invoice._meta.fields]


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdmin):
    list_display = ('invoice', 'amount_cents', 'method', 'reference', 'payment_date')
    list_filter = ('method',)
    search_fields = ('invoice__invoice_number', 'reference')
    readonly_fields = [f.name for f in Payment._meta.fields]


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(ReadOnlyAdmin):
    list_display = ('name', 'last_value', 'updated_at')
    readonly_fields = ('name', 'last_value', 'updated_at')


@admin.register(BillingActivity)
class BillingActivityAdmin(admin.ModelAdmin):
    list_display = ('entity_type', 'entity_id', 'action', 'user', 'is_system', 'timestamp')
    list_filter = ('entity_type', 'action')

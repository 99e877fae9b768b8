from django.contrib import admin

from .models import PaymentObligation


@admin.register(PaymentObligation)
class PaymentObligationAdmin(admin.ModelAdmin):
    list_display = ("lease", "tenant", "kind", "amount_due", "due_date", "status", "settled_at")
    list_filter = ("kind", "status")
    search_fields = ("tenant__username", "tenant__email", "provider_transfer_id", "transaction_reference")
    date_hierarchy = "due_date"
    raw_id_fields = ("lease", "tenant")
    readonly_fields = (
        "lease", "tenant", "kind", "amount_due", "period", "status",
        "idempotency_key", "source_wallet_id", "destination_address",
        "provider_transfer_id", "transaction_reference", "settled_at",
        "transfer_attempts", "failure_reason", "last_reminder_sent_on",
        "created_at", "updated_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

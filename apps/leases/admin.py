from django.contrib import admin

from .models import Lease, LeaseSignature


class LeaseSignatureInline(admin.TabularInline):
    model = LeaseSignature
    extra = 0
    can_delete = False
    fields = ("role", "wallet_id", "signer_user", "signed_at", "ip_address")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Lease)
class LeaseAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "manager", "status", "monthly_rent", "start_date", "end_date", "activated_at")
    list_filter = ("status",)
    search_fields = ("tenant__username", "tenant__email", "manager__username", "property_id")
    raw_id_fields = ("tenant", "manager")
    readonly_fields = (
        "status", "activated_at", "terminated_at", "termination_reason", "created_at", "updated_at",
    )
    inlines = [LeaseSignatureInline]

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return self.readonly_fields
        return self.readonly_fields + Lease.TERM_FIELDS + ("property_id", "tenant", "manager")

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LeaseSignature)
class LeaseSignatureAdmin(admin.ModelAdmin):
    list_display = ("lease", "role", "wallet_id", "signer_user", "signed_at")
    list_filter = ("role",)
    search_fields = ("wallet_id", "lease__id")
    readonly_fields = (
        "lease", "role", "signer_user", "wallet_id", "signature_base64", "message",
        "signed_at", "ip_address", "user_agent",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

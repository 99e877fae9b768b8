from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import RoleChangeLog, User, Wallet


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "first_name", "last_name", "role", "is_active")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("username", "email", "first_name", "last_name")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("RentFlow", {"fields": ("role",)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("RentFlow", {"fields": ("role", "email", "first_name", "last_name")}),
    )


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("wallet_id", "owner", "kind", "address", "is_active", "created_at")
    list_filter = ("kind", "is_active")
    search_fields = ("wallet_id", "address", "owner__username", "owner__email")
    raw_id_fields = ("owner",)


@admin.register(RoleChangeLog)
class RoleChangeLogAdmin(admin.ModelAdmin):
    list_display = ("user", "from_role", "to_role", "lease", "created_at")
    list_filter = ("to_role",)
    search_fields = ("user__username", "user__email")
    readonly_fields = ("user", "from_role", "to_role", "lease", "created_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

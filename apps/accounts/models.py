import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from apps.core.models import TimeStampedModel


class UserRole(models.TextChoices):
    PROSPECTIVE_TENANT = "prospective_tenant", "Prospective Tenant"
    TENANT = "tenant", "Tenant"
    MANAGER = "manager", "Manager"
    ADMIN = "admin", "Admin"


class User(AbstractUser):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.PROSPECTIVE_TENANT,
        db_index=True,
    )

    class Meta:
        ordering = ["last_name", "first_name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(role__in=UserRole.values),
                name="user_role_valid",
            ),
        ]

    def __str__(self):
        return self.get_full_name() or self.username

    @property
    def is_tenant(self):
        return self.role == UserRole.TENANT

    @property
    def is_prospective_tenant(self):
        return self.role == UserRole.PROSPECTIVE_TENANT

    @property
    def is_manager_user(self):
        return self.role in (UserRole.MANAGER, UserRole.ADMIN)


class Wallet(TimeStampedModel):
    """A signing/payment wallet known to the wallet provider."""

    class Kind(models.TextChoices):
        ED25519 = "ed25519", "Self-custody (Ed25519)"
        CUSTODIAL = "custodial", "Provider custodial"

    wallet_id = models.CharField(max_length=128, unique=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="wallets",
    )
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.CUSTODIAL)
    public_key = models.CharField(
        max_length=64, blank=True, default="",
        help_text="Base64 raw 32-byte Ed25519 public key (self-custody wallets only).",
    )
    address = models.CharField(max_length=128, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.wallet_id} ({self.get_kind_display()})"


class RoleChangeLog(TimeStampedModel):
    """Append-only record of role promotions."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="role_changes"
    )
    from_role = models.CharField(max_length=20, choices=UserRole.choices)
    to_role = models.CharField(max_length=20, choices=UserRole.choices)
    lease = models.ForeignKey(
        "leases.Lease",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="role_changes",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "lease", "to_role"],
                name="unique_role_change_per_lease",
            ),
        ]

    def __str__(self):
        return f"{self.user}: {self.from_role} -> {self.to_role}"

from django.conf import settings
from django.db import models

from apps.core.exceptions import ImmutableTermsError, InvalidTransition, InvariantViolation
from apps.core.models import TimeStampedModel


class LeaseStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PENDING_TENANT = "pending_tenant", "Awaiting Tenant Signature"
    PENDING_LANDLORD = "pending_landlord", "Awaiting Landlord Signature"
    FULLY_SIGNED = "fully_signed", "Fully Signed"
    ACTIVE = "active", "Active"
    EXPIRED = "expired", "Expired"
    TERMINATED = "terminated", "Terminated"


class SignerRole(models.TextChoices):
    LANDLORD = "landlord", "Landlord/Manager"
    TENANT = "tenant", "Tenant"


TERMINAL_STATUSES = frozenset({LeaseStatus.EXPIRED, LeaseStatus.TERMINATED})

LEASE_TRANSITIONS = {
    LeaseStatus.DRAFT: {
        LeaseStatus.PENDING_TENANT,
        LeaseStatus.PENDING_LANDLORD,
        LeaseStatus.TERMINATED,
    },
    LeaseStatus.PENDING_TENANT: {LeaseStatus.FULLY_SIGNED, LeaseStatus.TERMINATED},
    LeaseStatus.PENDING_LANDLORD: {LeaseStatus.FULLY_SIGNED, LeaseStatus.TERMINATED},
    LeaseStatus.FULLY_SIGNED: {LeaseStatus.ACTIVE, LeaseStatus.TERMINATED},
    LeaseStatus.ACTIVE: {LeaseStatus.EXPIRED, LeaseStatus.TERMINATED},
    LeaseStatus.EXPIRED: set(),
    LeaseStatus.TERMINATED: set(),
}


def status_for_signatures(landlord_signed, tenant_signed):
    """Signing status as a pure function of which parties have signed."""
    if landlord_signed and tenant_signed:
        return LeaseStatus.FULLY_SIGNED
    if landlord_signed:
        return LeaseStatus.PENDING_TENANT
    if tenant_signed:
        return LeaseStatus.PENDING_LANDLORD
    return LeaseStatus.DRAFT


class Lease(TimeStampedModel):
    """
    A rental agreement between a manager and a tenant.

    The financial terms are a snapshot taken when the lease is generated and
    cannot change afterwards. Leases are never deleted; they end in the
    expired or terminated state.
    """

    TERM_FIELDS = ("monthly_rent", "security_deposit", "start_date", "end_date", "rent_due_day")

    property_id = models.UUIDField(db_index=True)
    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="leases"
    )
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="managed_leases"
    )
    status = models.CharField(
        max_length=20, choices=LeaseStatus.choices, default=LeaseStatus.DRAFT, db_index=True
    )

    # Terms snapshot
    monthly_rent = models.DecimalField(max_digits=10, decimal_places=2)
    security_deposit = models.DecimalField(max_digits=10, decimal_places=2)
    start_date = models.DateField()
    end_date = models.DateField()
    rent_due_day = models.PositiveSmallIntegerField(default=1)

    activated_at = models.DateTimeField(null=True, blank=True)
    terminated_at = models.DateTimeField(null=True, blank=True)
    termination_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=LeaseStatus.values),
                name="lease_status_valid",
            ),
            models.CheckConstraint(
                condition=models.Q(monthly_rent__gt=0) & models.Q(security_deposit__gt=0),
                name="lease_amounts_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="lease_end_after_start",
            ),
            models.CheckConstraint(
                condition=models.Q(rent_due_day__gte=1) & models.Q(rent_due_day__lte=28),
                name="lease_rent_due_day_range",
            ),
        ]

    def __str__(self):
        return f"Lease {self.pk} ({self.get_status_display()})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_terms = {
            name: instance.__dict__[name] for name in cls.TERM_FIELDS if name in instance.__dict__
        }
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_terms", None)
        if loaded:
            changed = [name for name, value in loaded.items() if getattr(self, name) != value]
            if changed:
                raise ImmutableTermsError(
                    f"Lease terms are immutable: {', '.join(changed)}", lease_id=self.pk
                )
        super().save(*args, **kwargs)
        self._loaded_terms = {name: getattr(self, name) for name in self.TERM_FIELDS}

    def delete(self, *args, **kwargs):
        raise InvariantViolation("Leases are never deleted; terminate instead.", lease_id=self.pk)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def is_fully_signed(self):
        return self.status == LeaseStatus.FULLY_SIGNED

    def can_transition_to(self, target):
        return target in LEASE_TRANSITIONS.get(self.status, set())

    def transition_to(self, target):
        if not self.can_transition_to(target):
            raise InvalidTransition("lease", self.status, target)
        self.status = target

    def signature_for(self, role):
        return self.signatures.filter(role=role).first()

    def signed_roles(self):
        return set(self.signatures.values_list("role", flat=True))

    def to_dict(self):
        signatures = {role: None for role in SignerRole.values}
        for sig in self.signatures.all():
            signatures[sig.role] = sig.to_dict()
        return {
            "id": str(self.pk),
            "property_id": str(self.property_id),
            "tenant_id": str(self.tenant_id),
            "manager_id": str(self.manager_id),
            "status": self.status,
            "terms": {
                "monthly_rent": str(self.monthly_rent),
                "security_deposit": str(self.security_deposit),
                "start_date": self.start_date.isoformat(),
                "end_date": self.end_date.isoformat(),
                "rent_due_day": self.rent_due_day,
            },
            "signatures": signatures,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "terminated_at": self.terminated_at.isoformat() if self.terminated_at else None,
            "created_at": self.created_at.isoformat(),
        }


class LeaseSignature(TimeStampedModel):
    """One wallet signature per party. Rows are written once and never updated."""

    lease = models.ForeignKey(Lease, on_delete=models.PROTECT, related_name="signatures")
    role = models.CharField(max_length=10, choices=SignerRole.choices)
    signer_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="lease_signatures",
    )
    wallet_id = models.CharField(max_length=128)
    signature_base64 = models.TextField()
    message = models.TextField(help_text="Exact message the wallet signed")
    signed_at = models.DateTimeField()

    # Audit trail
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["signed_at"]
        constraints = [
            models.UniqueConstraint(fields=["lease", "role"], name="unique_signature_per_role"),
        ]

    def __str__(self):
        return f"{self.get_role_display()} signature on {self.lease_id}"

    def to_dict(self):
        return {
            "wallet_id": self.wallet_id,
            "signature_base64": self.signature_base64,
            "message": self.message,
            "signed_at": self.signed_at.isoformat(),
        }

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvariantViolation("Lease signatures cannot be modified.", signature_id=self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvariantViolation("Lease signatures cannot be deleted.", signature_id=self.pk)

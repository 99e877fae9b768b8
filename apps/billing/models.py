from django.conf import settings
from django.db import models

from apps.core.exceptions import InvariantViolation
from apps.core.models import TimeStampedModel


class ObligationKind(models.TextChoices):
    SECURITY_DEPOSIT = "security_deposit", "Security Deposit"
    RENT = "rent", "Rent"


class ObligationStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    LATE = "late", "Late"
    FAILED = "failed", "Failed"


# Statuses from which a new transfer may be started
PAYABLE_STATUSES = (ObligationStatus.PENDING, ObligationStatus.LATE, ObligationStatus.FAILED)


class PaymentObligation(TimeStampedModel):
    """A single required payment tied to a lease."""

    lease = models.ForeignKey(
        "leases.Lease", on_delete=models.PROTECT, related_name="obligations"
    )
    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payment_obligations"
    )
    kind = models.CharField(max_length=20, choices=ObligationKind.choices)
    amount_due = models.DecimalField(max_digits=10, decimal_places=2)
    due_date = models.DateField(db_index=True)
    period = models.DateField(
        null=True, blank=True, help_text="First day of the rent month; empty for deposits."
    )
    status = models.CharField(
        max_length=15,
        choices=ObligationStatus.choices,
        default=ObligationStatus.PENDING,
        db_index=True,
    )

    # Payment network
    # Kept across transport errors so a retry reuses the same network-side key.
    idempotency_key = models.CharField(max_length=64, blank=True, default="")
    source_wallet_id = models.CharField(max_length=128, blank=True, default="")
    destination_address = models.CharField(max_length=200, blank=True, default="")
    provider_transfer_id = models.CharField(max_length=128, null=True, blank=True)
    transaction_reference = models.CharField(max_length=200, null=True, blank=True)
    settled_at = models.DateTimeField(null=True, blank=True)
    transfer_attempts = models.PositiveIntegerField(default=0)
    failure_reason = models.TextField(blank=True, default="")

    last_reminder_sent_on = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ["due_date", "kind"]
        constraints = [
            models.UniqueConstraint(
                fields=["lease"],
                condition=models.Q(kind=ObligationKind.SECURITY_DEPOSIT),
                name="unique_deposit_per_lease",
            ),
            models.UniqueConstraint(
                fields=["lease", "period"],
                condition=models.Q(kind=ObligationKind.RENT),
                name="unique_rent_per_period",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_due__gt=0),
                name="obligation_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(status__in=ObligationStatus.values),
                name="obligation_status_valid",
            ),
            models.CheckConstraint(
                condition=models.Q(kind__in=ObligationKind.values),
                name="obligation_kind_valid",
            ),
        ]

    def __str__(self):
        label = self.period.strftime("%Y-%m") if self.period else "deposit"
        return f"{self.get_kind_display()} {label} ({self.get_status_display()})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_amount = instance.__dict__.get("amount_due")
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_amount", None)
        if loaded is not None and self.amount_due != loaded:
            raise InvariantViolation("Obligation amounts are immutable.", obligation_id=self.pk)
        super().save(*args, **kwargs)
        self._loaded_amount = self.amount_due

    @property
    def is_settled(self):
        return self.status == ObligationStatus.COMPLETED

    def to_dict(self):
        return {
            "id": str(self.pk),
            "lease_id": str(self.lease_id),
            "kind": self.kind,
            "amount_due": str(self.amount_due),
            "due_date": self.due_date.isoformat(),
            "period": self.period.isoformat() if self.period else None,
            "status": self.status,
            "provider_transfer_id": self.provider_transfer_id,
            "transaction_reference": self.transaction_reference,
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
            "transfer_attempts": self.transfer_attempts,
            "failure_reason": self.failure_reason,
        }

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

KIND_CHOICES = [("security_deposit", "Security Deposit"), ("rent", "Rent")]
STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("completed", "Completed"),
    ("late", "Late"),
    ("failed", "Failed"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("leases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentObligation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("kind", models.CharField(choices=KIND_CHOICES, max_length=20)),
                ("amount_due", models.DecimalField(decimal_places=2, max_digits=10)),
                ("due_date", models.DateField(db_index=True)),
                (
                    "period",
                    models.DateField(
                        blank=True, help_text="First day of the rent month; empty for deposits.", null=True
                    ),
                ),
                (
                    "status",
                    models.CharField(choices=STATUS_CHOICES, db_index=True, default="pending", max_length=15),
                ),
                ("provider_transfer_id", models.CharField(blank=True, max_length=128, null=True)),
                ("transaction_reference", models.CharField(blank=True, max_length=200, null=True)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("transfer_attempts", models.PositiveIntegerField(default=0)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("last_reminder_sent_on", models.DateField(blank=True, null=True)),
                (
                    "lease",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="obligations",
                        to="leases.lease",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_obligations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["due_date", "kind"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(kind="security_deposit"),
                        fields=("lease",),
                        name="unique_deposit_per_lease",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(kind="rent"),
                        fields=("lease", "period"),
                        name="unique_rent_per_period",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount_due__gt=0),
                        name="obligation_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(status__in=[value for value, _ in STATUS_CHOICES]),
                        name="obligation_status_valid",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(kind__in=[value for value, _ in KIND_CHOICES]),
                        name="obligation_kind_valid",
                    ),
                ],
            },
        ),
    ]

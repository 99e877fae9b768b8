import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("draft", "Draft"),
    ("pending_tenant", "Awaiting Tenant Signature"),
    ("pending_landlord", "Awaiting Landlord Signature"),
    ("fully_signed", "Fully Signed"),
    ("active", "Active"),
    ("expired", "Expired"),
    ("terminated", "Terminated"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Lease",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("property_id", models.UUIDField(db_index=True)),
                (
                    "status",
                    models.CharField(choices=STATUS_CHOICES, db_index=True, default="draft", max_length=20),
                ),
                ("monthly_rent", models.DecimalField(decimal_places=2, max_digits=10)),
                ("security_deposit", models.DecimalField(decimal_places=2, max_digits=10)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("rent_due_day", models.PositiveSmallIntegerField(default=1)),
                ("activated_at", models.DateTimeField(blank=True, null=True)),
                ("terminated_at", models.DateTimeField(blank=True, null=True)),
                ("termination_reason", models.TextField(blank=True, default="")),
                (
                    "manager",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="managed_leases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="leases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(status__in=[value for value, _ in STATUS_CHOICES]),
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
                ],
            },
        ),
        migrations.CreateModel(
            name="LeaseSignature",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "role",
                    models.CharField(
                        choices=[("landlord", "Landlord/Manager"), ("tenant", "Tenant")], max_length=10
                    ),
                ),
                ("wallet_id", models.CharField(max_length=128)),
                ("signature_base64", models.TextField()),
                ("message", models.TextField(help_text="Exact message the wallet signed")),
                ("signed_at", models.DateTimeField()),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, default="")),
                (
                    "lease",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="signatures",
                        to="leases.lease",
                    ),
                ),
                (
                    "signer_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="lease_signatures",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["signed_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("lease", "role"), name="unique_signature_per_role"),
                ],
            },
        ),
    ]

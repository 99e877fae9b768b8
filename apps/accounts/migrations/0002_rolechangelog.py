import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

ROLE_CHOICES = [
    ("prospective_tenant", "Prospective Tenant"),
    ("tenant", "Tenant"),
    ("manager", "Manager"),
    ("admin", "Admin"),
]


class Migration(migrations.Migration):

    dependencies = [
        ("accounts", "0001_initial"),
        ("leases", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="RoleChangeLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("from_role", models.CharField(choices=ROLE_CHOICES, max_length=20)),
                ("to_role", models.CharField(choices=ROLE_CHOICES, max_length=20)),
                (
                    "lease",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="role_changes",
                        to="leases.lease",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="role_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "lease", "to_role"),
                        name="unique_role_change_per_lease",
                    ),
                ],
            },
        ),
    ]

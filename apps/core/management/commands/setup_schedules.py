"""
Management command to register the Django-Q2 schedules.

Usage:
    python manage.py setup_schedules          # Create or update schedules
    python manage.py setup_schedules --remove # Delete them
"""

from django.core.management.base import BaseCommand

SCHEDULES = [
    {
        "name": "rentflow-hourly-sweep",
        "func": "apps.billing.tasks.run_hourly_sweep",
        "schedule_type": "H",
    },
]


class Command(BaseCommand):
    help = "Register the periodic payment and lease sweeps with Django-Q2"

    def add_arguments(self, parser):
        parser.add_argument(
            "--remove",
            action="store_true",
            help="Delete the schedules instead of creating them",
        )

    def handle(self, *args, **options):
        from django_q.models import Schedule

        if options["remove"]:
            names = [s["name"] for s in SCHEDULES]
            deleted, _ = Schedule.objects.filter(name__in=names).delete()
            self.stdout.write(self.style.WARNING(f"Removed {deleted} schedule(s)."))
            return

        for entry in SCHEDULES:
            schedule, created = Schedule.objects.update_or_create(
                name=entry["name"],
                defaults={
                    "func": entry["func"],
                    "schedule_type": entry["schedule_type"],
                    "repeats": -1,
                },
            )
            verb = "Created" if created else "Updated"
            self.stdout.write(self.style.SUCCESS(f"{verb} schedule {schedule.name} -> {schedule.func}"))

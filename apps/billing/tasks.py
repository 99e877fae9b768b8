"""
Django-Q2 tasks for payment obligations.

Registered as an hourly schedule by ``manage.py setup_schedules``:
    from django_q.tasks import async_task
    async_task('apps.billing.tasks.run_hourly_sweep')
    async_task('apps.billing.tasks.poll_settlement', obligation_id)

Every task is safe to run repeatedly.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

MONTHS_AHEAD = 3
MAX_DUE_DAY = 28


def add_months(day, months):
    """First day of the month ``months`` after the month containing ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return day.replace(year=index // 12, month=index % 12 + 1, day=1)


def generate_monthly_obligations(today=None):
    """
    Make sure every active lease has rent obligations for the current and
    next two months. Periods outside the lease dates are skipped.

    Returns:
        dict with created count and the number of leases that errored.
    """
    from apps.leases.models import Lease, LeaseStatus

    from .services import PaymentGate

    today = today or timezone.localdate()
    results = {"created": 0, "errors": 0}

    for lease in Lease.objects.filter(status=LeaseStatus.ACTIVE):
        try:
            due_day = min(lease.rent_due_day or settings.DEFAULT_RENT_DUE_DAY, MAX_DUE_DAY)
            first_period = lease.start_date.replace(day=1)
            for offset in range(MONTHS_AHEAD):
                period = add_months(today, offset)
                due_date = period.replace(day=due_day)
                if period < first_period or due_date > lease.end_date:
                    continue
                _, created = PaymentGate.ensure_rent(lease, period, due_date)
                if created:
                    results["created"] += 1
        except Exception:
            logger.exception("Failed to generate rent obligations for lease %s", lease.pk)
            results["errors"] += 1

    logger.info(
        "Monthly obligation generation: %d created, %d errors",
        results["created"],
        results["errors"],
    )
    return results


def mark_overdue(today=None):
    """Flag pending obligations whose due date has passed. Due today is not late."""
    from .models import ObligationStatus, PaymentObligation

    today = today or timezone.localdate()
    updated = PaymentObligation.objects.filter(
        status=ObligationStatus.PENDING, due_date__lt=today
    ).update(status=ObligationStatus.LATE, updated_at=timezone.now())

    logger.info("Marked %d obligations late", updated)
    return {"updated": updated}


def due_reminders(days_ahead, today=None):
    """
    Send one reminder per obligation per day for pending obligations due in
    exactly ``days_ahead`` days.
    """
    from .models import ObligationStatus, PaymentObligation
    from .signals import payment_reminder_due

    today = today or timezone.localdate()
    target = today + timedelta(days=days_ahead)
    sent = 0

    candidates = (
        PaymentObligation.objects.filter(status=ObligationStatus.PENDING, due_date=target)
        .exclude(last_reminder_sent_on=today)
        .select_related("lease", "tenant")
    )
    for obligation in candidates:
        claimed = (
            PaymentObligation.objects.filter(pk=obligation.pk, status=ObligationStatus.PENDING)
            .exclude(last_reminder_sent_on=today)
            .update(last_reminder_sent_on=today)
        )
        if not claimed:
            continue
        obligation.last_reminder_sent_on = today
        try:
            payment_reminder_due.send(sender=PaymentObligation, obligation=obligation, days_ahead=days_ahead)
        except Exception:
            logger.exception("Reminder receiver failed for obligation %s", obligation.pk)
        sent += 1

    return {"sent": sent}


def send_payment_reminders(today=None):
    sent = 0
    for days_ahead in settings.PAYMENT_REMINDER_DAYS:
        sent += due_reminders(days_ahead, today=today)["sent"]
    logger.info("Sent %d payment reminders", sent)
    return {"sent": sent}


def expire_ended_leases(today=None):
    from apps.leases.services import LeaseService

    expired = LeaseService.expire_ended(today=today)
    logger.info("Expired %d leases", expired)
    return {"expired": expired}


def activate_ready_leases():
    from apps.leases.services import ActivationCoordinator

    activated = ActivationCoordinator.activate_ready()
    logger.info("Activated %d leases during sweep", activated)
    return {"activated": activated}


def resume_pending_settlements():
    from .services import PaymentExecutor

    counts = PaymentExecutor.resume_pending()
    logger.info(
        "Settlement re-check: %d re-sent, %d checked, %d completed, %d failed",
        counts["resubmitted"],
        counts["checked"],
        counts["completed"],
        counts["failed"],
    )
    return counts


def poll_settlement(obligation_id):
    """Follow one submitted transfer to settlement. Enqueued after initiation."""
    from .services import PaymentExecutor

    result = PaymentExecutor.poll_for_settlement(obligation_id)
    logger.info("Settlement poll for obligation %s: %s", obligation_id, result["status"])
    return result


def run_hourly_sweep(today=None):
    """Run every periodic job in order and return their results."""
    results = {
        "settlements": resume_pending_settlements(),
        "activations": activate_ready_leases(),
        "generated": generate_monthly_obligations(today=today),
        "overdue": mark_overdue(today=today),
        "reminders": send_payment_reminders(today=today),
        "expired": expire_ended_leases(today=today),
    }
    logger.info("Hourly sweep complete")
    return results

from django.dispatch import Signal

# Sent once per obligation per day when a payment reminder is due.
# Receivers get ``obligation`` and ``days_ahead``; delivery is up to them.
payment_reminder_due = Signal()

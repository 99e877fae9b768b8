"""
JSON API for paying obligations.

POST /api/payments/<id>/initiate/ returns as soon as the payment network has
accepted the transfer; settlement is followed by a Django-Q2 task.
"""

import logging

from django.views.decorators.http import require_POST

from apps.accounts.models import UserRole
from apps.core.api import api_error, api_success, api_view, form_error_message, parse_json_body
from apps.core.decorators import login_required_json, manager_required
from apps.core.exceptions import ValidationError

from .forms import InitiateTransferForm
from .models import ObligationStatus
from .services import PaymentExecutor, get_obligation

logger = logging.getLogger(__name__)


def _can_pay(user, obligation):
    if user.role == UserRole.ADMIN:
        return True
    return user.pk in (obligation.tenant_id, obligation.lease.manager_id)


def _enqueue_settlement_poll(obligation_id):
    try:
        from django_q.tasks import async_task

        async_task(
            "apps.billing.tasks.poll_settlement",
            str(obligation_id),
            task_name=f"settle-{obligation_id}",
        )
    except Exception:
        # The hourly sweep re-checks processing transfers.
        logger.warning(
            "Django-Q2 unavailable; settlement of obligation %s left to the sweep.",
            obligation_id,
        )


@require_POST
@login_required_json
@api_view
def payment_initiate(request, pk):
    """
    POST /api/payments/<obligation_id>/initiate/
    Body: {"from_wallet_id": "...", "to_address": "..."}
    """
    form = InitiateTransferForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))

    obligation = get_obligation(pk)
    if not _can_pay(request.user, obligation):
        return api_error("FORBIDDEN", "Access denied.", status=403)

    result = PaymentExecutor.initiate_transfer(
        obligation.pk,
        from_wallet_id=form.cleaned_data["from_wallet_id"],
        to_address=form.cleaned_data["to_address"],
    )
    if result["status"] == ObligationStatus.PROCESSING:
        _enqueue_settlement_poll(obligation.pk)
    return api_success(result, status=202 if result["status"] == ObligationStatus.PROCESSING else 200)


@require_POST
@login_required_json
@api_view
def payment_poll(request, pk):
    obligation = get_obligation(pk)
    if not _can_pay(request.user, obligation):
        return api_error("FORBIDDEN", "Access denied.", status=403)
    return api_success(PaymentExecutor.poll_for_settlement(obligation.pk))


@require_POST
@manager_required
@api_view
def send_reminders(request):
    from .tasks import send_payment_reminders

    return api_success(send_payment_reminders())

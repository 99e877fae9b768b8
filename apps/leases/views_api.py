"""
JSON API for lease generation, signing and termination.

All responses use the envelope from apps.core.api.
"""

import logging

from django.views.decorators.http import require_GET, require_POST

from apps.accounts.models import UserRole
from apps.core.api import api_error, api_success, api_view, form_error_message, parse_json_body
from apps.core.decorators import login_required_json, manager_required
from apps.core.exceptions import ValidationError

from .forms import GenerateLeaseForm, SignLeaseForm, TerminateLeaseForm
from .models import SignerRole
from .services import LeaseService, LeaseStateMachine, get_lease

logger = logging.getLogger(__name__)


def _is_party(user, lease):
    return user.role == UserRole.ADMIN or user.pk in (lease.tenant_id, lease.manager_id)


def _can_manage(user, lease):
    return user.role == UserRole.ADMIN or user.pk == lease.manager_id


def _can_sign_as(user, lease, role):
    if role == SignerRole.LANDLORD:
        return _can_manage(user, lease)
    return user.pk == lease.tenant_id


def _forbidden():
    return api_error("FORBIDDEN", "Access denied.", status=403)


def _client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


@require_POST
@manager_required
@api_view
def lease_create(request):
    """
    POST /api/leases/
    Body: {"tenant": "<uuid>", "property_id": "<uuid>", "monthly_rent": "1500.00",
           "security_deposit": "2000.00", "start_date": "2026-01-01",
           "end_date": "2026-12-31", "rent_due_day": 1}
    """
    form = GenerateLeaseForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))

    lease = LeaseService.generate(
        manager=request.user,
        tenant=form.cleaned_data["tenant"],
        property_id=form.cleaned_data["property_id"],
        terms=form.terms(),
    )
    return api_success(lease.to_dict(), status=201)


@require_GET
@login_required_json
@api_view
def lease_detail(request, pk):
    lease = get_lease(pk)
    if not _is_party(request.user, lease):
        return _forbidden()
    return api_success(lease.to_dict())


@require_GET
@login_required_json
@api_view
def lease_signing_message(request, pk):
    """GET /api/leases/<id>/signing-message/?role=landlord|tenant"""
    role = request.GET.get("role", "")
    if role not in SignerRole.values:
        raise ValidationError("role must be 'landlord' or 'tenant'.")
    lease = get_lease(pk)
    if not _can_sign_as(request.user, lease, role):
        return _forbidden()
    message = LeaseService.signing_message(lease.pk, role)
    return api_success({"lease_id": str(lease.pk), "role": role, "message": message})


@require_POST
@login_required_json
@api_view
def lease_sign(request, pk):
    """
    POST /api/leases/<id>/sign/
    Body: {"signer_role": "tenant", "wallet_id": "...", "signature": "<base64>",
           "message": "<exact signed message>"}
    """
    form = SignLeaseForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))

    role = form.cleaned_data["signer_role"]
    lease = get_lease(pk)
    if not _can_sign_as(request.user, lease, role):
        return _forbidden()

    lease = LeaseStateMachine.sign(
        lease.pk,
        role,
        wallet_id=form.cleaned_data["wallet_id"],
        signature_base64=form.cleaned_data["signature"],
        message=form.cleaned_data["message"],
        signer=request.user,
        ip_address=_client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", ""),
    )
    return api_success(lease.to_dict())


@require_POST
@login_required_json
@api_view
def lease_terminate(request, pk):
    form = TerminateLeaseForm(parse_json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))

    lease = get_lease(pk)
    if not _can_manage(request.user, lease):
        return _forbidden()
    lease = LeaseService.terminate(lease.pk, reason=form.cleaned_data["reason"])
    return api_success(lease.to_dict())


@require_GET
@login_required_json
@api_view
def lease_payment_status(request, pk):
    from apps.billing.services import PaymentGate

    lease = get_lease(pk)
    if not _is_party(request.user, lease):
        return _forbidden()
    return api_success(PaymentGate.status(lease))


@require_POST
@manager_required
@api_view
def generate_monthly(request):
    from apps.billing.tasks import generate_monthly_obligations

    return api_success(generate_monthly_obligations())


@require_POST
@manager_required
@api_view
def mark_overdue(request):
    from apps.billing.tasks import mark_overdue as mark_overdue_task

    return api_success(mark_overdue_task())

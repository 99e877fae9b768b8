import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from apps.core.exceptions import (
    ActivationFailed,
    DuplicateSignature,
    LeaseNotFound,
    LeaseTerminal,
    ValidationError,
)

logger = logging.getLogger(__name__)


def get_lease(lease_id, lock=False):
    from .models import Lease

    qs = Lease.objects.select_for_update() if lock else Lease.objects.all()
    try:
        lease = qs.filter(pk=lease_id).first()
    except (DjangoValidationError, ValueError):
        lease = None
    if lease is None:
        raise LeaseNotFound(lease_id)
    return lease


class LeaseService:
    """Lease generation and end-of-life transitions."""

    @staticmethod
    def generate(manager, tenant, property_id, terms):
        """
        Create a draft lease with an immutable snapshot of its terms.

        ``terms`` holds monthly_rent, security_deposit, start_date, end_date
        and optionally rent_due_day.
        """
        from apps.accounts.models import UserRole

        from .models import Lease

        if not manager.is_manager_user:
            raise ValidationError("Only managers can generate leases.")
        if tenant.role not in (UserRole.PROSPECTIVE_TENANT, UserRole.TENANT):
            raise ValidationError("Lease tenant must be a tenant or prospective tenant.")

        monthly_rent = Decimal(terms["monthly_rent"])
        security_deposit = Decimal(terms["security_deposit"])
        start_date = terms["start_date"]
        end_date = terms["end_date"]
        rent_due_day = terms.get("rent_due_day") or settings.DEFAULT_RENT_DUE_DAY

        if monthly_rent <= 0 or security_deposit <= 0:
            raise ValidationError("Rent and deposit must be greater than zero.")
        if start_date >= end_date:
            raise ValidationError("Lease end date must be after the start date.")
        if not 1 <= rent_due_day <= 28:
            raise ValidationError("Rent due day must be between 1 and 28.")

        lease = Lease.objects.create(
            property_id=property_id,
            tenant=tenant,
            manager=manager,
            monthly_rent=monthly_rent,
            security_deposit=security_deposit,
            start_date=start_date,
            end_date=end_date,
            rent_due_day=rent_due_day,
        )
        logger.info("Lease %s generated by %s for tenant %s", lease.pk, manager, tenant)
        return lease

    @staticmethod
    def signing_message(lease_id, role):
        from apps.core.services.signing import build_signing_message

        from .models import SignerRole

        if role not in SignerRole.values:
            raise ValidationError(f"Unknown signer role: {role}")
        lease = get_lease(lease_id)
        if lease.is_terminal:
            raise LeaseTerminal(lease.pk, lease.status)
        return build_signing_message(role, lease.pk)

    @staticmethod
    def terminate(lease_id, reason=""):
        from .models import LeaseStatus

        with transaction.atomic():
            lease = get_lease(lease_id, lock=True)
            if lease.is_terminal:
                raise LeaseTerminal(lease.pk, lease.status)
            previous = lease.status
            lease.transition_to(LeaseStatus.TERMINATED)
            lease.terminated_at = timezone.now()
            lease.termination_reason = reason
            lease.save(update_fields=["status", "terminated_at", "termination_reason", "updated_at"])

        logger.info("Lease %s terminated (was %s)", lease.pk, previous)
        return lease

    @staticmethod
    def expire_ended(today=None):
        """Move active leases whose end date has passed to expired. Returns the count."""
        from .models import Lease, LeaseStatus

        today = today or timezone.localdate()
        expired = 0
        candidates = Lease.objects.filter(
            status=LeaseStatus.ACTIVE, end_date__lt=today
        ).values_list("pk", flat=True)

        for lease_id in candidates:
            with transaction.atomic():
                lease = get_lease(lease_id, lock=True)
                if lease.status != LeaseStatus.ACTIVE:
                    continue
                lease.transition_to(LeaseStatus.EXPIRED)
                lease.save(update_fields=["status", "updated_at"])
            expired += 1
            logger.info("Lease %s expired", lease_id)
        return expired


class LeaseStateMachine:
    """Records party signatures and derives the signing status."""

    @staticmethod
    def sign(lease_id, role, wallet_id, signature_base64, message, signer=None,
             ip_address=None, user_agent="", verifier=None):
        """
        Verify a wallet signature and record it for ``role``.

        The signature is checked against the claimed wallet and the message
        must name this lease and role. Nothing is written unless the
        signature verifies.
        """
        from apps.core.services.signing import WalletSignatureVerifier, decode_signature

        from .models import SignerRole

        if role not in SignerRole.values:
            raise ValidationError(f"Unknown signer role: {role}")
        if not wallet_id or not signature_base64 or not message:
            raise ValidationError("wallet_id, signature and message are required.")

        lease = get_lease(lease_id)
        if lease.is_terminal:
            raise LeaseTerminal(lease.pk, lease.status)
        if lease.signatures.filter(role=role).exists():
            raise DuplicateSignature(lease.pk, role)

        verifier = verifier or WalletSignatureVerifier()
        verifier.check_message(message, role, lease.pk)
        verifier.verify(message, decode_signature(signature_base64), wallet_id)

        return LeaseStateMachine.record_signature(
            lease.pk,
            role,
            {
                "wallet_id": wallet_id,
                "signature_base64": signature_base64,
                "message": message,
                "signer_user": signer,
                "ip_address": ip_address,
                "user_agent": user_agent,
            },
        )

    @staticmethod
    def record_signature(lease_id, role, signature):
        """
        Store a verified signature and recompute the lease status.

        Raises DuplicateSignature if ``role`` has already signed; an existing
        signature is never overwritten. When both parties have signed, the
        payment obligations are created in the same transaction and
        activation is attempted once it commits.
        """
        from apps.billing.services import PaymentGate

        from .models import LeaseSignature, LeaseStatus, SignerRole, status_for_signatures

        with transaction.atomic():
            lease = get_lease(lease_id, lock=True)
            if lease.is_terminal:
                raise LeaseTerminal(lease.pk, lease.status)
            if LeaseSignature.objects.filter(lease=lease, role=role).exists():
                raise DuplicateSignature(lease.pk, role)
            if lease.status == LeaseStatus.ACTIVE:
                raise LeaseTerminal(lease.pk, lease.status)

            try:
                with transaction.atomic():
                    LeaseSignature.objects.create(
                        lease=lease,
                        role=role,
                        wallet_id=signature["wallet_id"],
                        signature_base64=signature["signature_base64"],
                        message=signature["message"],
                        signed_at=signature.get("signed_at") or timezone.now(),
                        signer_user=signature.get("signer_user"),
                        ip_address=signature.get("ip_address"),
                        user_agent=signature.get("user_agent") or "",
                    )
            except IntegrityError:
                raise DuplicateSignature(lease.pk, role)

            roles = lease.signed_roles()
            target = status_for_signatures(SignerRole.LANDLORD in roles, SignerRole.TENANT in roles)
            if target != lease.status:
                lease.transition_to(target)
                lease.save(update_fields=["status", "updated_at"])

            if target == LeaseStatus.FULLY_SIGNED:
                PaymentGate.ensure_obligations(lease)

        logger.info("Lease %s signed by %s; status %s", lease.pk, role, lease.status)

        if lease.status == LeaseStatus.FULLY_SIGNED:
            try:
                ActivationCoordinator.try_activate(lease.pk)
            except ActivationFailed:
                logger.exception("Activation after signing failed for lease %s", lease.pk)

        lease.refresh_from_db()
        return lease


class ActivationCoordinator:
    """Activates a fully signed, fully paid lease and promotes its tenant."""

    @staticmethod
    def try_activate(lease_id):
        """
        Activate the lease if it is fully signed and its payments are complete.

        Safe to call any number of times from any path. Returns
        {"activated": bool}. Transient database errors retry the whole
        transaction; ActivationFailed is raised once retries run out.
        """
        retries = settings.ACTIVATION_MAX_RETRIES
        for attempt in range(retries + 1):
            try:
                return ActivationCoordinator._activate_once(lease_id)
            except OperationalError as e:
                logger.warning(
                    "Activation of lease %s hit a database error (attempt %d/%d): %s",
                    lease_id,
                    attempt + 1,
                    retries + 1,
                    e,
                )

        logger.error("Activation of lease %s failed after %d attempts", lease_id, retries + 1)
        raise ActivationFailed(f"Could not activate lease {lease_id}.", lease_id=lease_id)

    @staticmethod
    def _activate_once(lease_id):
        from apps.accounts.models import RoleChangeLog, User, UserRole
        from apps.billing.services import PaymentGate

        from .models import LeaseStatus

        with transaction.atomic():
            lease = get_lease(lease_id, lock=True)
            if lease.status != LeaseStatus.FULLY_SIGNED:
                return {"activated": False, "status": lease.status}
            if not PaymentGate.satisfied(lease):
                return {"activated": False, "status": lease.status}

            lease.transition_to(LeaseStatus.ACTIVE)
            lease.activated_at = timezone.now()
            lease.save(update_fields=["status", "activated_at", "updated_at"])

            tenant = User.objects.select_for_update().get(pk=lease.tenant_id)
            promoted = False
            if tenant.role == UserRole.PROSPECTIVE_TENANT:
                tenant.role = UserRole.TENANT
                tenant.save(update_fields=["role"])
                RoleChangeLog.objects.create(
                    user=tenant,
                    from_role=UserRole.PROSPECTIVE_TENANT,
                    to_role=UserRole.TENANT,
                    lease=lease,
                )
                promoted = True

        logger.info("Lease %s activated (tenant promoted: %s)", lease.pk, promoted)
        return {"activated": True, "status": LeaseStatus.ACTIVE, "role_promoted": promoted}

    @staticmethod
    def activate_ready():
        """Retry activation for every fully signed lease. Returns the number activated."""
        from .models import Lease, LeaseStatus

        activated = 0
        for lease_id in Lease.objects.filter(status=LeaseStatus.FULLY_SIGNED).values_list("pk", flat=True):
            try:
                if ActivationCoordinator.try_activate(lease_id)["activated"]:
                    activated += 1
            except ActivationFailed:
                logger.exception("Activation sweep failed for lease %s", lease_id)
        return activated

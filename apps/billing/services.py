import logging
import time
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.exceptions import (
    ActivationFailed,
    ExternalProviderError,
    InsufficientBalance,
    InvalidAmount,
    ObligationAlreadySettled,
    ObligationNotFound,
    ValidationError,
)
from apps.core.services.payments.base import TransferState

logger = logging.getLogger(__name__)


def get_obligation(obligation_id):
    from .models import PaymentObligation

    try:
        obligation = PaymentObligation.objects.filter(pk=obligation_id).first()
    except (DjangoValidationError, ValueError):
        obligation = None
    if obligation is None:
        raise ObligationNotFound(obligation_id)
    return obligation


class PaymentGate:
    """Which payments a lease needs before it can become active."""

    @staticmethod
    def satisfied(lease):
        """True iff a completed deposit and a completed rent payment exist."""
        from .models import ObligationKind, ObligationStatus, PaymentObligation

        completed = set(
            PaymentObligation.objects.filter(
                lease=lease, status=ObligationStatus.COMPLETED
            ).values_list("kind", flat=True)
        )
        return {ObligationKind.SECURITY_DEPOSIT, ObligationKind.RENT} <= completed

    @staticmethod
    def ensure_rent(lease, period, due_date):
        """Get or create the rent obligation for ``period``. Returns (obligation, created)."""
        from .models import ObligationKind, PaymentObligation

        lookup = {"lease": lease, "kind": ObligationKind.RENT, "period": period}
        defaults = {"tenant_id": lease.tenant_id, "amount_due": lease.monthly_rent, "due_date": due_date}
        try:
            with transaction.atomic():
                return PaymentObligation.objects.get_or_create(**lookup, defaults=defaults)
        except IntegrityError:
            return PaymentObligation.objects.get(**lookup), False

    @staticmethod
    def ensure_deposit(lease):
        from .models import ObligationKind, PaymentObligation

        lookup = {"lease": lease, "kind": ObligationKind.SECURITY_DEPOSIT}
        defaults = {
            "tenant_id": lease.tenant_id,
            "amount_due": lease.security_deposit,
            "due_date": lease.start_date,
        }
        try:
            with transaction.atomic():
                return PaymentObligation.objects.get_or_create(**lookup, defaults=defaults)
        except IntegrityError:
            return PaymentObligation.objects.get(**lookup), False

    @staticmethod
    def ensure_obligations(lease):
        """
        Create the security deposit and first month's rent for a lease.

        Both are due on the lease start date. Repeated calls return the
        existing rows without creating more.
        """
        deposit, deposit_created = PaymentGate.ensure_deposit(lease)
        rent, rent_created = PaymentGate.ensure_rent(
            lease, lease.start_date.replace(day=1), lease.start_date
        )
        if deposit_created or rent_created:
            logger.info(
                "Created payment obligations for lease %s (deposit=%s, rent=%s)",
                lease.pk,
                deposit.amount_due,
                rent.amount_due,
            )
        return [deposit, rent]

    @staticmethod
    def status(lease):
        obligations = lease.obligations.order_by("due_date", "kind")
        return {
            "lease_id": str(lease.pk),
            "lease_status": lease.status,
            "satisfied": PaymentGate.satisfied(lease),
            "obligations": [o.to_dict() for o in obligations],
        }


class PaymentExecutor:
    """Submits stablecoin transfers and follows them to settlement."""

    @staticmethod
    def initiate_transfer(obligation_id, from_wallet_id, to_address, gateway=None):
        """
        Start a transfer for an obligation and return without waiting.

        The obligation is claimed by moving it to processing with a single
        conditional update, so only one caller can submit a transfer for it.
        The idempotency key sent to the network is stored on the obligation
        and reused after a transport error; only an explicit rejection moves
        the next attempt to a new key.
        Returns {"status": "processing", "provisional_ref": ...}.
        """
        from apps.core.services.payments.factory import get_transfer_gateway

        from .models import PAYABLE_STATUSES, ObligationStatus, PaymentObligation

        if not from_wallet_id or not to_address:
            raise ValidationError("from_wallet_id and to_address are required.")

        obligation = get_obligation(obligation_id)
        amount = obligation.amount_due
        if amount <= 0 or amount > settings.MAX_TRANSFER_AMOUNT:
            raise InvalidAmount(
                f"Transfer amount {amount} is outside the permitted range.",
                amount=amount,
                maximum=settings.MAX_TRANSFER_AMOUNT,
            )

        previous = obligation.status
        if previous not in PAYABLE_STATUSES:
            raise ObligationAlreadySettled(obligation.pk, previous)

        gateway = gateway or get_transfer_gateway()
        balance = gateway.get_wallet_balance(from_wallet_id)
        if balance < amount:
            raise InsufficientBalance(
                f"Wallet {from_wallet_id} holds {balance}, transfer needs {amount}.",
                balance=balance,
                amount=amount,
            )

        with transaction.atomic():
            claimed = PaymentObligation.objects.filter(
                pk=obligation.pk, status__in=PAYABLE_STATUSES
            ).update(
                status=ObligationStatus.PROCESSING,
                source_wallet_id=from_wallet_id,
                destination_address=to_address,
                provider_transfer_id=None,
                failure_reason="",
                updated_at=timezone.now(),
            )
            if not claimed:
                obligation.refresh_from_db(fields=["status"])
                raise ObligationAlreadySettled(obligation.pk, obligation.status)

            obligation.refresh_from_db()
            if not obligation.idempotency_key:
                PaymentExecutor._next_key(obligation)

        try:
            return PaymentExecutor._submit(obligation, gateway)
        except ExternalProviderError as e:
            if not e.rejected:
                PaymentExecutor._release(obligation, previous)
            raise

    @staticmethod
    def _next_key(obligation):
        from .models import PaymentObligation

        obligation.transfer_attempts += 1
        obligation.idempotency_key = f"{obligation.pk}:{obligation.transfer_attempts}"
        PaymentObligation.objects.filter(pk=obligation.pk).update(
            transfer_attempts=obligation.transfer_attempts,
            idempotency_key=obligation.idempotency_key,
        )

    @staticmethod
    def _submit(obligation, gateway):
        """Send the claimed obligation's stored transfer request to the network."""
        from .models import ObligationStatus, PaymentObligation

        try:
            result = gateway.submit_transfer(
                from_wallet_id=obligation.source_wallet_id,
                to_address=obligation.destination_address,
                amount=obligation.amount_due,
                idempotency_key=obligation.idempotency_key,
                metadata={
                    "obligation_id": str(obligation.pk),
                    "lease_id": str(obligation.lease_id),
                    "kind": obligation.kind,
                },
            )
        except ExternalProviderError as e:
            logger.warning("Transfer for obligation %s not submitted: %s", obligation.pk, e.message)
            raise
        except Exception as e:
            logger.exception("Unexpected error submitting transfer for obligation %s", obligation.pk)
            raise ExternalProviderError(f"Transfer submission failed: {e}") from e

        if result.state.is_terminal and result.state != TransferState.COMPLETED:
            reason = result.error_message or "Transfer rejected by payment network"
            PaymentExecutor._fail(obligation.pk, reason)
            raise ExternalProviderError(
                f"Payment network rejected the transfer: {reason}",
                rejected=True,
                obligation_id=obligation.pk,
            )

        PaymentObligation.objects.filter(
            pk=obligation.pk, status=ObligationStatus.PROCESSING
        ).update(provider_transfer_id=result.transfer_id, updated_at=timezone.now())
        logger.info(
            "Transfer %s submitted for obligation %s (key %s)",
            result.transfer_id,
            obligation.pk,
            obligation.idempotency_key,
        )

        if result.state == TransferState.COMPLETED:
            return PaymentExecutor._settle(obligation.pk, result)

        return {
            "obligation_id": str(obligation.pk),
            "status": ObligationStatus.PROCESSING,
            "provisional_ref": result.transfer_id,
        }

    @staticmethod
    def poll_for_settlement(obligation_id, attempts=None, interval=None, gateway=None):
        """
        Poll the payment network until the transfer settles or attempts run out.

        No database lock is held while waiting. Transport errors count as
        inconclusive attempts. If no terminal answer arrives the obligation
        stays processing for a later re-check.
        """
        from apps.core.services.payments.factory import get_transfer_gateway

        from .models import ObligationStatus

        obligation = get_obligation(obligation_id)
        if obligation.status != ObligationStatus.PROCESSING or not obligation.provider_transfer_id:
            return PaymentExecutor._stored_result(obligation)

        attempts = attempts if attempts is not None else settings.SETTLEMENT_POLL_ATTEMPTS
        interval = interval if interval is not None else settings.SETTLEMENT_POLL_INTERVAL
        gateway = gateway or get_transfer_gateway()
        transfer_id = obligation.provider_transfer_id

        for attempt in range(1, attempts + 1):
            try:
                result = gateway.get_transfer(transfer_id)
            except ExternalProviderError as e:
                logger.warning(
                    "Settlement check %d/%d for transfer %s failed: %s",
                    attempt,
                    attempts,
                    transfer_id,
                    e.message,
                )
                result = None

            if result is not None and result.state.is_terminal:
                if result.state == TransferState.COMPLETED:
                    return PaymentExecutor._settle(obligation.pk, result)
                reason = result.error_message or f"Transfer {result.state.value}"
                PaymentExecutor._fail(obligation.pk, reason)
                return PaymentExecutor._stored_result(get_obligation(obligation.pk))

            if attempt < attempts:
                time.sleep(interval)

        logger.info(
            "Transfer %s for obligation %s still unsettled after %d checks",
            transfer_id,
            obligation.pk,
            attempts,
        )
        return PaymentExecutor._stored_result(get_obligation(obligation.pk))

    @staticmethod
    def _settle(obligation_id, result):
        from apps.leases.services import ActivationCoordinator

        from .models import ObligationStatus, PaymentObligation

        updated = PaymentObligation.objects.filter(
            pk=obligation_id, status=ObligationStatus.PROCESSING
        ).update(
            status=ObligationStatus.COMPLETED,
            settled_at=timezone.now(),
            transaction_reference=result.transaction_hash or result.transfer_id,
            updated_at=timezone.now(),
        )
        obligation = get_obligation(obligation_id)
        if not updated:
            return PaymentExecutor._stored_result(obligation)

        logger.info(
            "Obligation %s settled (tx %s)", obligation.pk, obligation.transaction_reference
        )

        response = PaymentExecutor._stored_result(obligation)
        try:
            response["activated"] = ActivationCoordinator.try_activate(obligation.lease_id)["activated"]
        except ActivationFailed:
            logger.exception("Activation after settlement failed for lease %s", obligation.lease_id)
            response["activated"] = False
        return response

    @staticmethod
    def _fail(obligation_id, reason):
        from .models import ObligationStatus, PaymentObligation

        PaymentObligation.objects.filter(
            pk=obligation_id, status=ObligationStatus.PROCESSING
        ).update(
            status=ObligationStatus.FAILED,
            failure_reason=reason,
            idempotency_key="",
            updated_at=timezone.now(),
        )
        logger.warning("Obligation %s transfer failed: %s", obligation_id, reason)

    @staticmethod
    def _release(obligation, previous):
        from .models import ObligationStatus, PaymentObligation

        PaymentObligation.objects.filter(
            pk=obligation.pk, status=ObligationStatus.PROCESSING
        ).update(status=previous, updated_at=timezone.now())

    @staticmethod
    def _stored_result(obligation):
        data = {"obligation_id": str(obligation.pk), "status": obligation.status}
        if obligation.provider_transfer_id:
            data["provisional_ref"] = obligation.provider_transfer_id
        if obligation.transaction_reference:
            data["transaction_reference"] = obligation.transaction_reference
        if obligation.failure_reason:
            data["failure_reason"] = obligation.failure_reason
        return data

    @staticmethod
    def resubmit_stale(gateway=None):
        """
        Re-send claimed transfers that never got a transfer id back.

        A worker that dies between the claim and the network's answer leaves
        the obligation processing without a provisional reference. Once the
        claim is older than STALE_SUBMISSION_MINUTES the stored request is
        sent again under the same idempotency key, so a transfer the network
        had already accepted is returned rather than duplicated.
        """
        from apps.core.services.payments.factory import get_transfer_gateway

        from .models import ObligationStatus, PaymentObligation

        cutoff = timezone.now() - timedelta(minutes=settings.STALE_SUBMISSION_MINUTES)
        stale = PaymentObligation.objects.filter(
            status=ObligationStatus.PROCESSING,
            provider_transfer_id__isnull=True,
            updated_at__lt=cutoff,
        ).exclude(source_wallet_id="")

        resubmitted = 0
        for obligation in stale:
            gateway = gateway or get_transfer_gateway()
            if not obligation.idempotency_key:
                PaymentExecutor._next_key(obligation)
            logger.warning(
                "Re-sending interrupted transfer for obligation %s (key %s)",
                obligation.pk,
                obligation.idempotency_key,
            )
            try:
                PaymentExecutor._submit(obligation, gateway)
            except ExternalProviderError as e:
                if not e.rejected:
                    PaymentExecutor._release(obligation, ObligationStatus.PENDING)
                continue
            resubmitted += 1
        return resubmitted

    @staticmethod
    def resume_pending(gateway=None):
        """
        Re-send interrupted submissions, then re-check every processing
        transfer once. Returns a status count.
        """
        from .models import ObligationStatus, PaymentObligation

        counts = {"resubmitted": PaymentExecutor.resubmit_stale(gateway=gateway)}
        counts.update(checked=0, completed=0, failed=0)
        pending = PaymentObligation.objects.filter(
            status=ObligationStatus.PROCESSING, provider_transfer_id__isnull=False
        ).values_list("pk", flat=True)

        for obligation_id in pending:
            counts["checked"] += 1
            try:
                result = PaymentExecutor.poll_for_settlement(
                    obligation_id, attempts=1, interval=0, gateway=gateway
                )
            except Exception:
                logger.exception("Settlement re-check failed for obligation %s", obligation_id)
                continue
            if result["status"] == ObligationStatus.COMPLETED:
                counts["completed"] += 1
            elif result["status"] == ObligationStatus.FAILED:
                counts["failed"] += 1
        return counts

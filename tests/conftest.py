"""
Pytest fixtures for the RentFlow test suite.

Provides:
- Users in each role
- Wallets with real Ed25519 keys, plus a custodial wallet
- A draft lease and helpers to sign and pay it
- A scripted payment network gateway (tests/fakes.py)
"""

import base64
import uuid
from datetime import date
from decimal import Decimal

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from apps.accounts.models import User, UserRole, Wallet
from apps.core.services.payments.base import TransferResult
from apps.core.services.signing import build_signing_message, custodial_signature

from .fakes import FakeGateway, completed

LEASE_TERMS = {
    "monthly_rent": Decimal("1500.00"),
    "security_deposit": Decimal("2000.00"),
    "start_date": date(2026, 11, 1),
    "end_date": date(2027, 10, 31),
    "rent_due_day": 1,
}


class SigningKey:
    """A registered self-custody wallet and the private key behind it."""

    def __init__(self, wallet, private_key):
        self.wallet = wallet
        self.private_key = private_key

    @property
    def wallet_id(self):
        return self.wallet.wallet_id

    def sign(self, message):
        return base64.b64encode(self.private_key.sign(message.encode())).decode()


class CustodialKey:
    def __init__(self, wallet):
        self.wallet = wallet

    @property
    def wallet_id(self):
        return self.wallet.wallet_id

    def sign(self, message):
        return base64.b64encode(custodial_signature(self.wallet.wallet_id, message)).decode()


def _make_user(username, role):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
        role=role,
    )


def _make_signing_key(owner, wallet_id):
    private_key = Ed25519PrivateKey.generate()
    raw = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    wallet = Wallet.objects.create(
        wallet_id=wallet_id,
        owner=owner,
        kind=Wallet.Kind.ED25519,
        public_key=base64.b64encode(raw).decode(),
        address=f"addr-{wallet_id}",
    )
    return SigningKey(wallet, private_key)


@pytest.fixture
def manager(db):
    return _make_user("manager", UserRole.MANAGER)


@pytest.fixture
def admin_account(db):
    return _make_user("admin", UserRole.ADMIN)


@pytest.fixture
def prospect(db):
    return _make_user("prospect", UserRole.PROSPECTIVE_TENANT)


@pytest.fixture
def outsider(db):
    return _make_user("outsider", UserRole.TENANT)


@pytest.fixture
def landlord_key(manager):
    return _make_signing_key(manager, "wallet-landlord")


@pytest.fixture
def tenant_key(prospect):
    return _make_signing_key(prospect, "wallet-tenant")


@pytest.fixture
def custodial_key(prospect):
    wallet = Wallet.objects.create(
        wallet_id="wallet-custodial",
        owner=prospect,
        kind=Wallet.Kind.CUSTODIAL,
        address="addr-custodial",
    )
    return CustodialKey(wallet)


@pytest.fixture
def lease(manager, prospect):
    from apps.leases.services import LeaseService

    return LeaseService.generate(
        manager=manager,
        tenant=prospect,
        property_id=uuid.uuid4(),
        terms=dict(LEASE_TERMS),
    )


@pytest.fixture
def sign():
    """sign(lease, role, key) -> Lease, signing a freshly built message."""
    from apps.leases.services import LeaseStateMachine

    def _sign(lease, role, key):
        message = build_signing_message(role, lease.pk)
        return LeaseStateMachine.sign(
            lease.pk,
            role,
            wallet_id=key.wallet_id,
            signature_base64=key.sign(message),
            message=message,
        )

    return _sign


@pytest.fixture
def fully_signed_lease(lease, sign, landlord_key, tenant_key):
    sign(lease, "landlord", landlord_key)
    return sign(lease, "tenant", tenant_key)


@pytest.fixture
def obligations(fully_signed_lease):
    from apps.billing.models import ObligationKind

    rows = {o.kind: o for o in fully_signed_lease.obligations.all()}
    return rows[ObligationKind.SECURITY_DEPOSIT], rows[ObligationKind.RENT]


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def pay():
    """pay(obligation) -> result, settling the obligation through a fake gateway."""
    from apps.billing.services import PaymentExecutor

    def _pay(obligation):
        transfer_id = f"tr_{obligation.pk}"
        gateway = FakeGateway(
            submit_results=[TransferResult(transfer_id=transfer_id)],
            status_results=[completed(transfer_id)],
        )
        PaymentExecutor.initiate_transfer(obligation.pk, "wallet-tenant", "addr-landlord", gateway=gateway)
        return PaymentExecutor.poll_for_settlement(obligation.pk, gateway=gateway)

    return _pay

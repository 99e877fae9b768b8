"""
Wallet signature verification for lease signing.

Each signing attempt signs a fresh message:

    LANDLORD - I agree to the terms of this residential lease agreement - lease <id> - <UTC ISO>#<nonce>

The role tag and nonce keep the payload unique, so one wallet may sign as
both landlord and tenant without the signing provider treating the second
request as a replay.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from django.conf import settings
from django.utils import timezone

from apps.core.exceptions import InvalidSignature

logger = logging.getLogger(__name__)

AGREEMENT_TEMPLATE = "I agree to the terms of this residential lease agreement"
SEPARATOR = " - "
ROLE_TAGS = {"landlord": "LANDLORD", "tenant": "TENANT"}
CLOCK_SKEW = timedelta(minutes=1)


@dataclass(frozen=True)
class SigningMessage:
    role: str
    lease_id: str
    timestamp: datetime
    nonce: str


def build_signing_message(role, lease_id, now=None):
    tag = ROLE_TAGS.get(role)
    if tag is None:
        raise ValueError(f"Unknown signer role: {role}")
    now = now or timezone.now()
    nonce = secrets.token_hex(8)
    return SEPARATOR.join([tag, AGREEMENT_TEMPLATE, f"lease {lease_id}", f"{now.isoformat()}#{nonce}"])


def parse_signing_message(message):
    """Split a signing message into its parts. Raises InvalidSignature('malformed_message')."""
    parts = message.split(SEPARATOR) if isinstance(message, str) else []
    if len(parts) != 4 or parts[1] != AGREEMENT_TEMPLATE or not parts[2].startswith("lease "):
        raise InvalidSignature("malformed_message")

    tag, _, lease_part, stamp = parts
    roles = {v: k for k, v in ROLE_TAGS.items()}
    if tag not in roles:
        raise InvalidSignature("malformed_message")

    raw_time, _, nonce = stamp.partition("#")
    if not nonce:
        raise InvalidSignature("malformed_message")
    try:
        timestamp = datetime.fromisoformat(raw_time)
    except ValueError:
        raise InvalidSignature("malformed_message")
    if timezone.is_naive(timestamp):
        raise InvalidSignature("malformed_message")

    return SigningMessage(
        role=roles[tag],
        lease_id=lease_part[len("lease "):],
        timestamp=timestamp,
        nonce=nonce,
    )


def custodial_signature(wallet_id, message, secret=None):
    """HMAC-SHA256 the provider computes for its custodial wallets."""
    key = secret if secret is not None else settings.WALLET_SIGNING_SECRET
    return hmac.new(key.encode(), f"{wallet_id}:{message}".encode(), hashlib.sha256).digest()


def decode_signature(signature_base64):
    try:
        return base64.b64decode(signature_base64, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise InvalidSignature("malformed_signature")


class WalletSignatureVerifier:
    """Checks that a message was signed by the claimed wallet. Never writes."""

    def __init__(self, secret=None, max_age_minutes=None):
        self.secret = secret if secret is not None else settings.WALLET_SIGNING_SECRET
        if max_age_minutes is None:
            max_age_minutes = settings.SIGNATURE_MAX_AGE_MINUTES
        self.max_age = timedelta(minutes=max_age_minutes)

    def verify(self, message, signature_bytes, claimed_wallet_id):
        from apps.accounts.models import Wallet

        if not message or not signature_bytes or not claimed_wallet_id:
            raise InvalidSignature("missing_fields")

        wallet = Wallet.objects.filter(wallet_id=claimed_wallet_id, is_active=True).first()
        if wallet is None:
            raise InvalidSignature("unknown_wallet")

        if wallet.kind == Wallet.Kind.ED25519:
            self._verify_ed25519(wallet, message, signature_bytes)
        else:
            self._verify_custodial(wallet, message, signature_bytes)
        return True

    def _verify_ed25519(self, wallet, message, signature_bytes):
        try:
            key = Ed25519PublicKey.from_public_bytes(base64.b64decode(wallet.public_key))
        except (binascii.Error, ValueError):
            logger.error("Wallet %s has an unusable public key", wallet.wallet_id)
            raise InvalidSignature("unknown_wallet")
        try:
            key.verify(signature_bytes, message.encode())
        except CryptoInvalidSignature:
            raise InvalidSignature("signature_mismatch")

    def _verify_custodial(self, wallet, message, signature_bytes):
        if not self.secret:
            logger.error("WALLET_SIGNING_SECRET is not configured; custodial signatures cannot be checked")
            raise InvalidSignature("signing_unavailable")
        expected = custodial_signature(wallet.wallet_id, message, self.secret)
        if not hmac.compare_digest(expected, bytes(signature_bytes)):
            raise InvalidSignature("signature_mismatch")

    def check_message(self, message, role, lease_id, now=None):
        """Confirm the message was built for this role and lease, and is fresh."""
        parsed = parse_signing_message(message)
        if parsed.role != role:
            raise InvalidSignature("role_mismatch")
        if parsed.lease_id != str(lease_id):
            raise InvalidSignature("lease_mismatch")

        now = now or timezone.now()
        if parsed.timestamp > now + CLOCK_SKEW:
            raise InvalidSignature("message_from_future")
        if now - parsed.timestamp > self.max_age:
            raise InvalidSignature("message_expired")
        return parsed

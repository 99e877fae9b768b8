import hashlib
import logging
from decimal import Decimal

from .base import TransferGateway, TransferResult, TransferState

logger = logging.getLogger(__name__)

DEFAULT_BALANCE = Decimal("10000.00")


class SimulatedGateway(TransferGateway):
    """
    Stand-in payment network for development and demos.

    Transfers are accepted as pending and complete on the first status check,
    with a deterministic transaction hash derived from the transfer id. The
    transfer id is derived from the idempotency key, so resubmitting a key
    returns the same transfer like the real network. Every wallet holds
    ``config["balance"]`` (default 10000.00).
    """

    def submit_transfer(self, from_wallet_id, to_address, amount, idempotency_key, metadata):
        transfer_id = f"sim_{hashlib.sha256(idempotency_key.encode()).hexdigest()[:32]}"
        logger.info(
            "Simulated transfer %s: %s -> %s amount=%s",
            transfer_id,
            from_wallet_id,
            to_address,
            amount,
        )
        return TransferResult(transfer_id=transfer_id, state=TransferState.PENDING)

    def get_transfer(self, transfer_id):
        tx_hash = hashlib.sha256(transfer_id.encode()).hexdigest()
        return TransferResult(
            transfer_id=transfer_id,
            state=TransferState.COMPLETED,
            transaction_hash=f"0x{tx_hash}",
        )

    def get_wallet_balance(self, wallet_id):
        return Decimal(str(self.config.get("balance", DEFAULT_BALANCE)))

    def test_connection(self):
        return True, "Simulated payment network"

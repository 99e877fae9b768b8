from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransferState(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"

    @property
    def is_terminal(self):
        return self is not TransferState.PENDING


@dataclass
class TransferResult:
    transfer_id: str
    state: TransferState = TransferState.PENDING
    transaction_hash: Optional[str] = None
    error_message: Optional[str] = None


class TransferGateway(ABC):
    """Client for a stablecoin payment network.

    ``submit_transfer`` returns a TransferResult for any answer the network
    gives, including an explicit rejection (state REJECTED). Transport
    failures and unreadable responses raise ExternalProviderError, which
    means the outcome is unknown and the transfer may be retried.
    """

    def __init__(self, config):
        self.config = config

    @abstractmethod
    def submit_transfer(
        self,
        from_wallet_id: str,
        to_address: str,
        amount: Decimal,
        idempotency_key: str,
        metadata: dict,
    ) -> TransferResult:
        ...

    @abstractmethod
    def get_transfer(self, transfer_id: str) -> TransferResult:
        ...

    @abstractmethod
    def get_wallet_balance(self, wallet_id: str) -> Decimal:
        """USD balance available in ``wallet_id``."""
        ...

    def test_connection(self) -> tuple:
        """Test if gateway credentials are valid. Returns (success, message)."""
        return False, "Not implemented"

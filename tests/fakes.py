"""Test doubles for the payment network."""

from decimal import Decimal

from apps.core.services.payments.base import TransferGateway, TransferResult, TransferState


class FakeGateway(TransferGateway):
    """
    Scripted payment network.

    ``submit_results`` and ``status_results`` are consumed in order; an
    exception instance is raised instead of returned. Every wallet holds
    ``balance``.
    """

    def __init__(self, submit_results=None, status_results=None, balance=Decimal("1000000.00")):
        super().__init__({})
        self.submit_results = list(submit_results or [])
        self.status_results = list(status_results or [])
        self.balance = balance
        self.submitted = []
        self.status_checks = []
        self.balance_checks = []

    def submit_transfer(self, from_wallet_id, to_address, amount, idempotency_key, metadata):
        self.submitted.append({
            "from_wallet_id": from_wallet_id,
            "to_address": to_address,
            "amount": amount,
            "idempotency_key": idempotency_key,
            "metadata": metadata,
        })
        if self.submit_results:
            result = self.submit_results.pop(0)
        else:
            result = TransferResult(transfer_id=f"tr_{len(self.submitted)}")
        if isinstance(result, BaseException):
            raise result
        return result

    def get_transfer(self, transfer_id):
        self.status_checks.append(transfer_id)
        if self.status_results:
            result = self.status_results.pop(0)
        else:
            result = TransferResult(transfer_id=transfer_id)
        if isinstance(result, BaseException):
            raise result
        return result

    def get_wallet_balance(self, wallet_id):
        self.balance_checks.append(wallet_id)
        if isinstance(self.balance, BaseException):
            raise self.balance
        return self.balance


class KeyedNetwork(FakeGateway):
    """
    Fake network that deduplicates by idempotency key.

    A submission in ``lose_responses`` is accepted by the network but the
    caller sees the scripted exception instead of the answer.
    """

    def __init__(self, lose_responses=None, **kwargs):
        super().__init__(**kwargs)
        self.lose_responses = list(lose_responses or [])
        self.transfers = {}

    def submit_transfer(self, from_wallet_id, to_address, amount, idempotency_key, metadata):
        self.submitted.append({"idempotency_key": idempotency_key, "from_wallet_id": from_wallet_id})
        transfer_id = self.transfers.setdefault(idempotency_key, f"tr_{len(self.transfers) + 1}")
        if self.lose_responses:
            raise self.lose_responses.pop(0)
        return TransferResult(transfer_id=transfer_id)


def completed(transfer_id, tx_hash="0xabc123"):
    return TransferResult(transfer_id=transfer_id, state=TransferState.COMPLETED, transaction_hash=tx_hash)

import logging
from decimal import Decimal, InvalidOperation

import requests

from apps.core.exceptions import ExternalProviderError

from .base import TransferGateway, TransferResult, TransferState

logger = logging.getLogger(__name__)

# Circle transfer status / transaction state -> our state
STATE_MAP = {
    "pending": TransferState.PENDING,
    "queued": TransferState.PENDING,
    "sent": TransferState.PENDING,
    "initiated": TransferState.PENDING,
    "complete": TransferState.COMPLETED,
    "completed": TransferState.COMPLETED,
    "confirmed": TransferState.COMPLETED,
    "failed": TransferState.FAILED,
    "cancelled": TransferState.FAILED,
    "denied": TransferState.REJECTED,
    "rejected": TransferState.REJECTED,
}

# Client errors that say nothing about whether the network accepted the transfer
RETRYABLE_CLIENT_STATUSES = (408, 409, 425, 429)


class CircleGateway(TransferGateway):
    """USDC transfers through the Circle transfers API."""

    def __init__(self, config):
        super().__init__(config)
        self.base_url = config.get("url", "").rstrip("/")
        self.api_key = config.get("api_key", "")
        self.chain = config.get("chain", "SOL")
        self.timeout = int(config.get("timeout", 15))

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.warning("Circle %s %s failed: %s", method, path, e)
            raise ExternalProviderError(f"Payment network unreachable: {e}")
        return response

    @staticmethod
    def _parse(response):
        try:
            return response.json()
        except ValueError:
            raise ExternalProviderError(
                f"Payment network returned an unreadable response (HTTP {response.status_code})."
            )

    @staticmethod
    def _to_result(data):
        transfer = data.get("data", {}) if isinstance(data, dict) else {}
        raw_state = str(transfer.get("status") or transfer.get("state") or "pending").lower()
        state = STATE_MAP.get(raw_state, TransferState.PENDING)
        return TransferResult(
            transfer_id=str(transfer.get("id", "")),
            state=state,
            transaction_hash=transfer.get("transactionHash") or transfer.get("txHash"),
            error_message=transfer.get("errorCode") or transfer.get("errorReason"),
        )

    def submit_transfer(self, from_wallet_id, to_address, amount, idempotency_key, metadata):
        payload = {
            "idempotencyKey": idempotency_key,
            "source": {"type": "wallet", "id": from_wallet_id},
            "destination": {
                "type": "blockchain",
                "address": to_address,
                "chain": self.chain,
            },
            "amount": {
                "amount": str(Decimal(amount).quantize(Decimal("0.01"))),
                "currency": "USD",
            },
            "metadata": metadata,
        }
        response = self._request("POST", "/v1/transfers", json=payload)

        if response.status_code >= 500 or response.status_code in RETRYABLE_CLIENT_STATUSES:
            raise ExternalProviderError(
                f"Payment network error (HTTP {response.status_code}).",
                status_code=response.status_code,
            )

        data = self._parse(response)
        if response.status_code >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(
                "Circle rejected transfer %s (HTTP %s): %s",
                idempotency_key,
                response.status_code,
                message,
            )
            return TransferResult(
                transfer_id="",
                state=TransferState.REJECTED,
                error_message=message or f"HTTP {response.status_code}",
                )

        result = self._to_result(data)
        if not result.transfer_id:
            raise ExternalProviderError("Transfer submitted but no transfer id returned.")
        return result

    def get_transfer(self, transfer_id):
        response = self._request("GET", f"/v1/transfers/{transfer_id}")
        if response.status_code >= 400:
            raise ExternalProviderError(
                f"Transfer status check failed (HTTP {response.status_code}).",
                status_code=response.status_code,
            )
        return self._to_result(self._parse(response))

    def get_wallet_balance(self, wallet_id):
        response = self._request("GET", f"/v1/wallets/{wallet_id}")
        if response.status_code >= 400:
            raise ExternalProviderError(
                f"Wallet balance lookup failed (HTTP {response.status_code}).",
                status_code=response.status_code,
            )
        data = self._parse(response)
        wallet = data.get("data", {}) if isinstance(data, dict) else {}
        for balance in wallet.get("balances") or []:
            if balance.get("currency") == "USD":
                try:
                    return Decimal(str(balance.get("amount") or "0"))
                except InvalidOperation:
                    raise ExternalProviderError(f"Unreadable wallet balance: {balance.get('amount')!r}")
        return Decimal("0")

    def test_connection(self):
        try:
            response = requests.get(
                f"{self.base_url}/ping", headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            return False, f"Circle unreachable: {e}"
        return True, "Connection successful"

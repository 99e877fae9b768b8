from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from apps.core.exceptions import ExternalProviderError
from apps.core.services.payments.base import TransferState
from apps.core.services.payments.circle import CircleGateway
from apps.core.services.payments.factory import get_transfer_gateway
from apps.core.services.payments.simulated import SimulatedGateway

CONFIG = {"url": "https://api-sandbox.circle.com/", "api_key": "KEY", "chain": "SOL", "timeout": 5}


def response(status_code, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def submit(gateway):
    return gateway.submit_transfer(
        from_wallet_id="wallet-1",
        to_address="addr-1",
        amount=Decimal("2000"),
        idempotency_key="obl:1",
        metadata={"kind": "security_deposit"},
    )


class TestCircleGateway:
    @patch("apps.core.services.payments.circle.requests.request")
    def test_submit_accepted(self, mock_request):
        mock_request.return_value = response(201, {"data": {"id": "tr_123", "status": "pending"}})

        result = submit(CircleGateway(CONFIG))

        assert result.transfer_id == "tr_123"
        assert result.state == TransferState.PENDING
        method, url = mock_request.call_args.args
        payload = mock_request.call_args.kwargs["json"]
        assert (method, url) == ("POST", "https://api-sandbox.circle.com/v1/transfers")
        assert mock_request.call_args.kwargs["headers"]["Authorization"] == "Bearer KEY"
        assert payload["idempotencyKey"] == "obl:1"
        assert payload["amount"] == {"amount": "2000.00", "currency": "USD"}
        assert payload["destination"]["chain"] == "SOL"

    @patch("apps.core.services.payments.circle.requests.request")
    def test_client_error_is_rejection(self, mock_request):
        mock_request.return_value = response(400, {"code": 2, "message": "Insufficient funds"})

        result = submit(CircleGateway(CONFIG))

        assert result.state == TransferState.REJECTED
        assert result.error_message == "Insufficient funds"

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    @patch("apps.core.services.payments.circle.requests.request")
    def test_server_errors_raise(self, mock_request, status_code):
        mock_request.return_value = response(status_code, {})

        with pytest.raises(ExternalProviderError) as exc:
            submit(CircleGateway(CONFIG))
        assert exc.value.rejected is False

    @patch("apps.core.services.payments.circle.requests.request")
    def test_timeout_raises(self, mock_request):
        mock_request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(ExternalProviderError):
            submit(CircleGateway(CONFIG))

    @patch("apps.core.services.payments.circle.requests.request")
    def test_unreadable_body_raises(self, mock_request):
        mock_request.return_value = response(201)

        with pytest.raises(ExternalProviderError):
            submit(CircleGateway(CONFIG))

    @patch("apps.core.services.payments.circle.requests.request")
    def test_get_transfer_complete(self, mock_request):
        mock_request.return_value = response(200, {
            "data": {"id": "tr_123", "status": "complete", "transactionHash": "0xfeed"},
        })

        result = CircleGateway(CONFIG).get_transfer("tr_123")

        assert result.state == TransferState.COMPLETED
        assert result.transaction_hash == "0xfeed"

    @patch("apps.core.services.payments.circle.requests.request")
    def test_get_transfer_failed(self, mock_request):
        mock_request.return_value = response(200, {
            "data": {"id": "tr_123", "status": "failed", "errorCode": "transfer_failed"},
        })

        result = CircleGateway(CONFIG).get_transfer("tr_123")

        assert result.state == TransferState.FAILED
        assert result.error_message == "transfer_failed"

    @patch("apps.core.services.payments.circle.requests.request")
    def test_wallet_balance(self, mock_request):
        mock_request.return_value = response(200, {
            "data": {"walletId": "wallet-1", "balances": [
                {"amount": "3.50", "currency": "EUR"},
                {"amount": "2500.25", "currency": "USD"},
            ]},
        })

        balance = CircleGateway(CONFIG).get_wallet_balance("wallet-1")

        assert balance == Decimal("2500.25")
        assert mock_request.call_args.args == ("GET", "https://api-sandbox.circle.com/v1/wallets/wallet-1")

    @patch("apps.core.services.payments.circle.requests.request")
    def test_wallet_without_usd_is_empty(self, mock_request):
        mock_request.return_value = response(200, {"data": {"balances": []}})
        assert CircleGateway(CONFIG).get_wallet_balance("wallet-1") == Decimal("0")

    @patch("apps.core.services.payments.circle.requests.request")
    def test_wallet_balance_http_error_raises(self, mock_request):
        mock_request.return_value = response(503, {})

        with pytest.raises(ExternalProviderError):
            CircleGateway(CONFIG).get_wallet_balance("wallet-1")

    @patch("apps.core.services.payments.circle.requests.request")
    def test_get_transfer_http_error_raises(self, mock_request):
        mock_request.return_value = response(404, {"message": "not found"})

        with pytest.raises(ExternalProviderError):
            CircleGateway(CONFIG).get_transfer("tr_123")


class TestSimulatedGateway:
    def test_same_key_returns_same_transfer(self):
        first = SimulatedGateway({}).submit_transfer("w", "a", Decimal("1"), "key-sim-1", {})
        second = SimulatedGateway({}).submit_transfer("w", "a", Decimal("1"), "key-sim-1", {})

        assert first.transfer_id == second.transfer_id
        assert first.state == TransferState.PENDING

    def test_different_keys_are_different_transfers(self):
        gateway = SimulatedGateway({})
        first = gateway.submit_transfer("w", "a", Decimal("1"), "key-sim-1", {})
        second = SimulatedGateway({}).submit_transfer("w", "a", Decimal("1"), "key-sim-2", {})

        assert first.transfer_id != second.transfer_id

    def test_wallet_balance(self):
        assert SimulatedGateway({}).get_wallet_balance("w") == Decimal("10000.00")
        assert SimulatedGateway({"balance": "12.00"}).get_wallet_balance("w") == Decimal("12.00")

    def test_completes_on_status_check(self):
        result = SimulatedGateway({}).get_transfer("sim_abc")

        assert result.state == TransferState.COMPLETED
        assert result.transaction_hash.startswith("0x")


class TestFactory:
    def test_simulated_by_default_in_tests(self):
        assert isinstance(get_transfer_gateway(), SimulatedGateway)

    def test_circle_when_configured(self, settings):
        settings.PAYMENT_NETWORK_PROVIDER = "circle"
        settings.PAYMENT_NETWORK_API_KEY = "KEY"

        gateway = get_transfer_gateway()

        assert isinstance(gateway, CircleGateway)
        assert gateway.api_key == "KEY"

    def test_unknown_provider(self, settings):
        settings.PAYMENT_NETWORK_PROVIDER = "carrier-pigeon"

        with pytest.raises(ValueError):
            get_transfer_gateway()

import json
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from apps.billing.models import ObligationStatus
from apps.core.exceptions import ExternalProviderError

from .fakes import FakeGateway

pytestmark = pytest.mark.django_db


def post_json(client, url, payload=None):
    return client.post(url, data=json.dumps(payload or {}), content_type="application/json")


def signing_message(client, lease, role):
    response = client.get(f"/api/leases/{lease.pk}/signing-message/", {"role": role})
    assert response.status_code == 200
    return response.json()["data"]["message"]


def sign_via_api(client, lease, role, key):
    message = signing_message(client, lease, role)
    return post_json(client, f"/api/leases/{lease.pk}/sign/", {
        "signer_role": role,
        "wallet_id": key.wallet_id,
        "signature": key.sign(message),
        "message": message,
    })


class TestAuthentication:
    def test_anonymous_request_gets_401(self, client, lease):
        response = client.get(f"/api/leases/{lease.pk}/")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "AUTHENTICATION_REQUIRED"

    def test_wrong_method(self, client, manager):
        client.force_login(manager)
        assert client.get("/api/leases/mark-overdue/").status_code == 405


class TestLeaseEndpoints:
    def test_manager_generates_lease(self, client, manager, prospect):
        client.force_login(manager)

        response = post_json(client, "/api/leases/", {
            "tenant": str(prospect.pk),
            "property_id": str(uuid.uuid4()),
            "monthly_rent": "1500.00",
            "security_deposit": "2000.00",
            "start_date": "2026-11-01",
            "end_date": "2027-10-31",
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "draft"
        assert data["terms"]["monthly_rent"] == "1500.00"
        assert data["signatures"] == {"landlord": None, "tenant": None}

    def test_tenant_cannot_generate(self, client, prospect):
        client.force_login(prospect)
        response = post_json(client, "/api/leases/", {})
        assert response.status_code == 403

    def test_invalid_terms(self, client, manager, prospect):
        client.force_login(manager)

        response = post_json(client, "/api/leases/", {
            "tenant": str(prospect.pk),
            "property_id": str(uuid.uuid4()),
            "monthly_rent": "1500.00",
            "security_deposit": "2000.00",
            "start_date": "2027-11-01",
            "end_date": "2027-10-31",
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_malformed_json(self, client, manager):
        client.force_login(manager)
        response = client.post("/api/leases/", data="{not json", content_type="application/json")
        assert response.status_code == 400

    def test_detail_for_parties_only(self, client, lease, prospect, outsider):
        client.force_login(prospect)
        assert client.get(f"/api/leases/{lease.pk}/").status_code == 200

        client.force_login(outsider)
        assert client.get(f"/api/leases/{lease.pk}/").status_code == 403

    def test_admin_sees_any_lease(self, client, lease, admin_account):
        client.force_login(admin_account)
        assert client.get(f"/api/leases/{lease.pk}/").status_code == 200

    def test_unknown_lease(self, client, manager):
        client.force_login(manager)

        response = client.get(f"/api/leases/{uuid.uuid4()}/")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "LEASE_NOT_FOUND"

    def test_signing_message_requires_valid_role(self, client, lease, prospect):
        client.force_login(prospect)
        response = client.get(f"/api/leases/{lease.pk}/signing-message/", {"role": "owner"})
        assert response.status_code == 400


class TestSigningEndpoint:
    def test_both_parties_sign(self, client, lease, manager, prospect, landlord_key, tenant_key):
        client.force_login(prospect)
        response = sign_via_api(client, lease, "tenant", tenant_key)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "pending_landlord"

        client.force_login(manager)
        response = sign_via_api(client, lease, "landlord", landlord_key)
        data = response.json()["data"]
        assert data["status"] == "fully_signed"
        assert data["signatures"]["tenant"]["wallet_id"] == tenant_key.wallet_id

    def test_duplicate_is_conflict(self, client, lease, prospect, tenant_key):
        client.force_login(prospect)
        sign_via_api(client, lease, "tenant", tenant_key)

        response = sign_via_api(client, lease, "tenant", tenant_key)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_SIGNATURE"

    def test_bad_signature(self, client, lease, prospect, tenant_key, landlord_key):
        client.force_login(prospect)
        message = signing_message(client, lease, "tenant")

        response = post_json(client, f"/api/leases/{lease.pk}/sign/", {
            "signer_role": "tenant",
            "wallet_id": tenant_key.wallet_id,
            "signature": landlord_key.sign(message),
            "message": message,
        })

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_SIGNATURE"
        assert error["details"]["reason"] == "signature_mismatch"

    def test_tenant_cannot_sign_as_landlord(self, client, lease, prospect, tenant_key):
        client.force_login(prospect)
        response = post_json(client, f"/api/leases/{lease.pk}/sign/", {
            "signer_role": "landlord",
            "wallet_id": tenant_key.wallet_id,
            "signature": "c2ln",
            "message": "m",
        })
        assert response.status_code == 403

    def test_missing_fields(self, client, lease, prospect):
        client.force_login(prospect)
        response = post_json(client, f"/api/leases/{lease.pk}/sign/", {"signer_role": "tenant"})
        assert response.status_code == 400


class TestTerminateEndpoint:
    def test_manager_terminates(self, client, lease, manager):
        client.force_login(manager)

        response = post_json(client, f"/api/leases/{lease.pk}/terminate/", {"reason": "Unit sold"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "terminated"

        response = post_json(client, f"/api/leases/{lease.pk}/terminate/")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "LEASE_TERMINAL"

    def test_tenant_cannot_terminate(self, client, lease, prospect):
        client.force_login(prospect)
        assert post_json(client, f"/api/leases/{lease.pk}/terminate/").status_code == 403


class TestPaymentEndpoints:
    def test_payment_status(self, client, obligations, fully_signed_lease, prospect):
        client.force_login(prospect)

        response = client.get(f"/api/leases/{fully_signed_lease.pk}/payment-status/")

        data = response.json()["data"]
        assert data["satisfied"] is False
        assert len(data["obligations"]) == 2

    def test_initiate_enqueues_settlement_poll(self, client, obligations, prospect):
        deposit, _ = obligations
        client.force_login(prospect)

        with patch("django_q.tasks.async_task") as async_task:
            response = post_json(client, f"/api/payments/{deposit.pk}/initiate/", {
                "from_wallet_id": "wallet-tenant",
                "to_address": "addr-landlord",
            })

        assert response.status_code == 202
        data = response.json()["data"]
        assert data["status"] == "processing"
        assert data["provisional_ref"]
        async_task.assert_called_once()
        assert async_task.call_args.args == ("apps.billing.tasks.poll_settlement", str(deposit.pk))

    def test_second_initiate_is_conflict(self, client, obligations, prospect):
        deposit, _ = obligations
        client.force_login(prospect)
        payload = {"from_wallet_id": "wallet-tenant", "to_address": "addr-landlord"}

        with patch("django_q.tasks.async_task"):
            post_json(client, f"/api/payments/{deposit.pk}/initiate/", payload)
            response = post_json(client, f"/api/payments/{deposit.pk}/initiate/", payload)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "OBLIGATION_ALREADY_SETTLED"
        assert error["details"]["status"] == "processing"

    def test_provider_outage_is_502(self, client, obligations, prospect):
        deposit, _ = obligations
        client.force_login(prospect)
        gateway = FakeGateway(submit_results=[ExternalProviderError("Payment network unreachable")])

        with patch("apps.core.services.payments.factory.get_transfer_gateway", return_value=gateway):
            response = post_json(client, f"/api/payments/{deposit.pk}/initiate/", {
                "from_wallet_id": "wallet-tenant",
                "to_address": "addr-landlord",
            })

        assert response.status_code == 502
        deposit.refresh_from_db()
        assert deposit.status == ObligationStatus.PENDING

    def test_unexpected_error_keeps_json_envelope(self, client, obligations, prospect):
        deposit, _ = obligations
        client.force_login(prospect)

        with patch(
            "apps.core.services.payments.factory.get_transfer_gateway",
            side_effect=ValueError("Unknown payment network provider: carrier-pigeon"),
        ):
            response = post_json(client, f"/api/payments/{deposit.pk}/initiate/", {
                "from_wallet_id": "wallet-tenant",
                "to_address": "addr-landlord",
            })

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INTERNAL_ERROR"
        deposit.refresh_from_db()
        assert deposit.status == ObligationStatus.PENDING

    def test_insufficient_balance_is_400(self, client, obligations, prospect):
        deposit, _ = obligations
        client.force_login(prospect)
        gateway = FakeGateway(balance=Decimal("0.00"))

        with patch("apps.core.services.payments.factory.get_transfer_gateway", return_value=gateway):
            response = post_json(client, f"/api/payments/{deposit.pk}/initiate/", {
                "from_wallet_id": "wallet-tenant",
                "to_address": "addr-landlord",
            })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INSUFFICIENT_BALANCE"

    def test_outsider_cannot_pay(self, client, obligations, outsider):
        deposit, _ = obligations
        client.force_login(outsider)

        response = post_json(client, f"/api/payments/{deposit.pk}/initiate/", {
            "from_wallet_id": "w",
            "to_address": "a",
        })
        assert response.status_code == 403

    def test_poll_settles(self, client, obligations, prospect):
        deposit, _ = obligations
        client.force_login(prospect)
        with patch("django_q.tasks.async_task"):
            post_json(client, f"/api/payments/{deposit.pk}/initiate/", {
                "from_wallet_id": "wallet-tenant",
                "to_address": "addr-landlord",
            })

        response = post_json(client, f"/api/payments/{deposit.pk}/poll/")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"

    def test_unknown_obligation(self, client, prospect):
        client.force_login(prospect)
        response = post_json(client, f"/api/payments/{uuid.uuid4()}/poll/")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "OBLIGATION_NOT_FOUND"


class TestSweepEndpoints:
    def test_manager_runs_sweeps(self, client, manager, obligations):
        client.force_login(manager)

        assert post_json(client, "/api/leases/generate-monthly/").json()["data"] == {"created": 0, "errors": 0}
        assert "updated" in post_json(client, "/api/leases/mark-overdue/").json()["data"]
        assert "sent" in post_json(client, "/api/payments/send-reminders/").json()["data"]

    def test_tenant_cannot_run_sweeps(self, client, prospect):
        client.force_login(prospect)
        assert post_json(client, "/api/leases/generate-monthly/").status_code == 403
        assert post_json(client, "/api/payments/send-reminders/").status_code == 403


class TestHealth:
    def test_health(self, client):
        response = client.get("/health/")

        assert response.status_code == 200
        body = response.json()
        assert body["checks"]["database"] == "connected"
        assert body["checks"]["payment_network"] == "Simulated payment network"

    def test_liveness(self, client):
        assert client.get("/live/").json() == {"status": "alive"}

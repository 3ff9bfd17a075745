"""Тесты webhook endpoint Tally."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from formrelay.config import get_settings
from formrelay.webhook.app import create_app
from formrelay.webhook.auth import compute_tally_signature
from helpers import field, make_payload

WEBHOOK_URL = "/webhook/tally"


@pytest.fixture
def business_payload():
    return make_payload([
        field("Full name", "Ada Lovelace"),
        field("Email", "ada@example.com"),
        field("Company", "Analytical Engines"),
        field("Website", "example.com")
    ])


@pytest.fixture
def client(settings, attio_transport):
    """TestClient с фейковым Attio и настройками из фикстуры."""
    app = create_app(transport=attio_transport)
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client


class TestTallyWebhook:
    """Тесты POST /webhook/tally."""

    def test_success(self, client, fake_attio, business_payload):
        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["personId"] == "person_1"
        assert data["companyId"] == "company_1"
        assert data["dealId"] == "deal_1"
        assert data["dealCreated"] is True
        assert data["companyLink"] == "id"
        assert data["externalId"] == "resp_1"
        assert data["transitions"] == [
            "validated", "company_resolved", "person_resolved", "deal_linked", "responded"
        ]

    def test_replay_returns_existing_deal(self, client, fake_attio, business_payload):
        first = client.post(WEBHOOK_URL, json=business_payload).json()
        second = client.post(WEBHOOK_URL, json=business_payload).json()

        assert second["dealId"] == first["dealId"]
        assert second["dealCreated"] is False
        assert len(fake_attio.deals) == 1

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_wrong_method(self, client, method):
        response = getattr(client, method)(WEBHOOK_URL)
        assert response.status_code == 405

    def test_invalid_json(self, client, fake_attio):
        response = client.post(
            WEBHOOK_URL,
            content=b"{not json",
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert fake_attio.requests == []

    @pytest.mark.parametrize("payload", [
        {},
        {"data": {}},
        {"data": {"fields": "nope"}},
        {"data": None},
        ["not", "an", "object"],
    ])
    def test_missing_fields(self, client, fake_attio, payload):
        response = client.post(WEBHOOK_URL, json=payload)

        assert response.status_code == 400
        assert fake_attio.requests == []

    def test_missing_email_makes_no_calls(self, client, fake_attio):
        response = client.post(WEBHOOK_URL, json=make_payload([
            field("Full name", "Ada Lovelace"),
            field("Company", "Analytical Engines")
        ]))

        assert response.status_code == 400
        assert response.json()["state"] == "rejected_input"
        assert fake_attio.requests == []

    def test_missing_token(self, client, settings, fake_attio, business_payload):
        settings.ATTIO_TOKEN = None

        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 500
        assert fake_attio.requests == []

    def test_person_failure_is_bad_gateway(self, client, fake_attio, business_payload):
        fake_attio.fail("upsert_person", 403)

        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 502
        data = response.json()
        assert data["state"] == "upstream_person_failure"
        assert data["upstream"]["status_code"] == 403
        assert "response" not in data["upstream"]
        assert fake_attio.deals == []

    def test_deal_failure_is_bad_gateway(self, client, fake_attio, business_payload):
        fake_attio.fail("create_deal", 500)

        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 502
        assert response.json()["state"] == "upstream_deal_failure"

    def test_company_failure_still_succeeds(self, client, fake_attio, business_payload):
        fake_attio.fail("upsert_company", 500)

        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["companyId"] is None
        assert data["companyLink"] == "domain"

    def test_debug_echoes_upstream_response(self, client, settings, fake_attio, business_payload):
        settings.DEBUG = True
        fake_attio.fail("upsert_person", 401)

        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 502
        assert response.json()["upstream"]["response"]["message"] == "Simulated failure"

    def test_internal_error(self, client, settings, business_payload, monkeypatch):
        async def explode(self, submission):
            raise RuntimeError("boom")

        monkeypatch.setattr(
            "formrelay.services.relay_service.LeadRelayService.relay", explode
        )

        response = client.post(WEBHOOK_URL, json=business_payload)

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Internal server error"
        assert "detail" not in data

        settings.DEBUG = True
        response = client.post(WEBHOOK_URL, json=business_payload)
        assert response.json()["detail"] == "boom"


class TestSignatureVerification:
    """Тесты подписи Tally-Signature."""

    @pytest.fixture
    def signed_settings(self, settings):
        settings.TALLY_SIGNING_SECRET = "whsec_test"
        return settings

    def test_valid_signature(self, client, signed_settings, business_payload):
        body = json.dumps(business_payload).encode("utf-8")

        response = client.post(
            WEBHOOK_URL,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Tally-Signature": compute_tally_signature(body, "whsec_test")
            }
        )

        assert response.status_code == 200

    def test_invalid_signature(self, client, signed_settings, fake_attio, business_payload):
        body = json.dumps(business_payload).encode("utf-8")

        response = client.post(
            WEBHOOK_URL,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Tally-Signature": compute_tally_signature(body, "other_secret")
            }
        )

        assert response.status_code == 401
        assert fake_attio.requests == []

    def test_missing_signature(self, client, signed_settings, business_payload):
        response = client.post(WEBHOOK_URL, json=business_payload)
        assert response.status_code == 401


class TestServiceEndpoints:
    """Тесты служебных endpoint."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client, settings):
        assert client.get("/health").json()["status"] == "healthy"

        settings.ATTIO_TOKEN = None
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["attio_token"] == "missing"


def test_network_error_is_bad_gateway(settings, business_payload):
    """Сетевые ошибки Attio дают 502."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    app = create_app(transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as client:
        response = client.post(WEBHOOK_URL, json=business_payload)

    assert response.status_code == 502

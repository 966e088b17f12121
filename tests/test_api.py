"""End-to-end tests through the HTTP and websocket surface."""

import asyncio
from types import SimpleNamespace

import pytest
from fastapi import WebSocketDisconnect

from ivas.core.database import async_session_maker
from ivas.schemas.enums import UserRole
from ivas.services.verification_service import NOT_FOUND_REASON
from ivas.utils.clock import utc_now
from tests.factories import auth_headers, create_claim, create_company, create_policy, create_user, token_for

POLICY_PAYLOAD = {
    "holder_name": "Jane Doe",
    "holder_id_number": "A1234567",
    "policy_type": "motor",
    "start_date": "2025-01-01",
    "expiry_date": "2099-01-01",
}


def seed(build):
    """Run ``build(session)`` against the test database outside the app's loop."""

    async def _run():
        async with async_session_maker() as session:
            return await build(session)

    return asyncio.run(_run())


@pytest.fixture
def world(test_client):
    async def build(session):
        company = await create_company(session, name="Acme Insurance", license_number="LIC-0001")
        return SimpleNamespace(
            company=company,
            insurer=await create_user(session, UserRole.INSURER, company),
            regulator=await create_user(session, UserRole.CBL),
            officer=await create_user(session, UserRole.OFFICER),
            insured=await create_user(session, UserRole.INSURED),
        )

    return seed(build)


def _verify(client, user, policy_number):
    return client.post(
        "/api/v1/verifications",
        json={"policy_number": policy_number},
        headers=auth_headers(user),
    )


class TestServiceEndpoints:
    """Root, health and error envelope behaviour."""

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"

    def test_health_reports_database_and_hub(self, test_client):
        response = test_client.get("/api/v1/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["realtime"]["running"] is True

    def test_request_id_is_echoed(self, test_client):
        response = test_client.get("/", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"

    def test_missing_token_is_a_structured_401(self, test_client):
        response = test_client.post("/api/v1/verifications", json={"policy_number": "X"})

        body = response.json()
        assert response.status_code == 401
        assert body["code"] == "AUTHENTICATION_FAILED"
        assert body["instance"] == "/api/v1/verifications"
        assert body["request_id"]

    def test_wrong_role_is_a_403(self, test_client, world):
        response = _verify(test_client, world.insured, "X")

        assert response.status_code == 403
        assert response.json()["code"] == "ACCESS_DENIED"

    def test_invalid_payload_is_a_422(self, test_client, world):
        response = test_client.post(
            "/api/v1/verifications", json={"policy_number": ""}, headers=auth_headers(world.officer)
        )

        body = response.json()
        assert response.status_code == 422
        assert body["code"] == "VALIDATION_ERROR"
        assert "body.policy_number" in body["errors"]


class TestVerificationEndpoints:
    def test_unknown_policy_is_a_normal_result(self, test_client, world):
        response = _verify(test_client, world.officer, "NOPE-1")

        body = response.json()
        assert response.status_code == 200
        assert body["data"]["status"] == "not_found"
        assert body["message"] == NOT_FOUND_REASON

    def test_public_lookup_needs_an_existing_company(self, test_client):
        response = test_client.post("/api/v1/public/verify", json={"policy_number": "X-1", "company_id": 404})

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_public_lookup(self, test_client, world):
        seed(lambda session: create_policy(session, world.company, policy_number="PUB-1"))

        response = test_client.post(
            "/api/v1/public/verify", json={"policy_number": "PUB-1", "company_id": world.company.id}
        )

        data = response.json()["data"]
        assert data["status"] == "valid"
        assert data["policy"]["company_name"] == "Acme Insurance"

    def test_officer_history_only_shows_own_lookups(self, test_client, world):
        other_officer = seed(lambda session: create_user(session, UserRole.OFFICER))
        _verify(test_client, world.officer, "A-1")
        _verify(test_client, other_officer, "B-1")

        response = test_client.get("/api/v1/verifications", headers=auth_headers(world.officer))

        data = response.json()["data"]
        assert data["total"] == 1
        assert data["items"][0]["policy_number"] == "A-1"


class TestPolicyApprovalFlow:
    def test_policy_becomes_valid_once_approved(self, test_client, world):
        submitted = test_client.post("/api/v1/policies", json=POLICY_PAYLOAD, headers=auth_headers(world.insurer))
        assert submitted.status_code == 201
        submission = submitted.json()["data"]
        policy_number = submission["policy"]["policy_number"]
        assert policy_number == f"LIC-0001-{utc_now().year}-00001"

        before = _verify(test_client, world.officer, policy_number).json()["data"]
        decided = test_client.post(
            f"/api/v1/approvals/{submission['approval_id']}/decision",
            json={"decision": "approved"},
            headers=auth_headers(world.regulator),
        )
        after = _verify(test_client, world.officer, policy_number).json()["data"]

        assert before["status"] == "fake"
        assert decided.status_code == 200
        assert decided.json()["data"]["status"] == "approved"
        assert after["status"] == "valid"

    def test_decisions_are_final(self, test_client, world):
        submission = test_client.post(
            "/api/v1/policies", json=POLICY_PAYLOAD, headers=auth_headers(world.insurer)
        ).json()["data"]
        url = f"/api/v1/approvals/{submission['approval_id']}/decision"

        no_reason = test_client.post(url, json={"decision": "declined"}, headers=auth_headers(world.regulator))
        first = test_client.post(
            url, json={"decision": "declined", "reason": "Missing documents"}, headers=auth_headers(world.regulator)
        )
        second = test_client.post(url, json={"decision": "approved"}, headers=auth_headers(world.regulator))

        assert no_reason.status_code == 400
        assert no_reason.json()["code"] == "VALIDATION_ERROR"
        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["code"] == "ALREADY_DECIDED"
        assert second.json()["retryable"] is False

    def test_only_regulators_decide(self, test_client, world):
        submission = test_client.post(
            "/api/v1/policies", json=POLICY_PAYLOAD, headers=auth_headers(world.insurer)
        ).json()["data"]

        response = test_client.post(
            f"/api/v1/approvals/{submission['approval_id']}/decision",
            json={"decision": "approved"},
            headers=auth_headers(world.insurer),
        )

        assert response.status_code == 403

    def test_coverage_rules_are_reported(self, test_client, world):
        response = test_client.post(
            "/api/v1/policies",
            json={**POLICY_PAYLOAD, "coverage_type": "treaty"},
            headers=auth_headers(world.insurer),
        )

        assert response.status_code == 400
        assert "reinsurance" in response.json()["detail"]

    def test_numbering_preview(self, test_client, world):
        response = test_client.get("/api/v1/policies/numbering/next", headers=auth_headers(world.insurer))

        data = response.json()["data"]
        assert data["next_policy_number"] == f"LIC-0001-{utc_now().year}-00001"
        assert data["company_id"] == world.company.id


class TestCompanyEndpoints:
    def test_anonymous_registration_is_pending(self, test_client):
        response = test_client.post(
            "/api/v1/companies", json={"name": "Harbour Mutual", "license_number": "HBR-1"}
        )

        data = response.json()["data"]
        assert response.status_code == 201
        assert data["company"]["registration_status"] == "pending"
        assert data["approval_id"]

    def test_suspension(self, test_client, world):
        url = f"/api/v1/companies/{world.company.id}/suspend"
        body = {"reason": "Solvency breach", "duration_days": 30}

        denied = test_client.post(url, json=body, headers=auth_headers(world.insurer))
        suspended = test_client.post(url, json=body, headers=auth_headers(world.regulator))
        again = test_client.post(url, json=body, headers=auth_headers(world.regulator))

        assert denied.status_code == 403
        assert suspended.status_code == 200
        assert suspended.json()["data"]["registration_status"] == "suspended"
        assert suspended.json()["data"]["suspension_ends_at"] is not None
        assert again.status_code == 409
        assert again.json()["code"] == "INVALID_TRANSITION"

    def test_history_after_suspend_and_reinstate(self, test_client, world):
        base = f"/api/v1/companies/{world.company.id}"
        test_client.post(
            f"{base}/suspend", json={"reason": "Late filing", "duration_days": 5}, headers=auth_headers(world.regulator)
        )
        test_client.post(f"{base}/reinstate", json={}, headers=auth_headers(world.regulator))

        response = test_client.get(f"{base}/approvals", headers=auth_headers(world.insurer))

        statuses = sorted(item["status"] for item in response.json()["data"]["items"])
        assert statuses == ["approved", "declined"]


class TestClaimEndpoints:
    def test_closed_claims_stay_closed(self, test_client, world):
        policy = seed(lambda session: create_policy(session, world.company))
        reported = test_client.post(
            "/api/v1/claims",
            json={"policy_id": policy.id, "description": "Hail damage"},
            headers=auth_headers(world.insurer),
        )
        claim_id = reported.json()["data"]["id"]

        denied = test_client.post(
            f"/api/v1/claims/{claim_id}/deny",
            json={"reason": "insufficient evidence"},
            headers=auth_headers(world.insurer),
        )
        settled = test_client.post(
            f"/api/v1/claims/{claim_id}/settle",
            json={"settlement_amount": "100", "notes": ""},
            headers=auth_headers(world.insurer),
        )

        assert reported.status_code == 201
        assert denied.json()["data"]["status"] == "denied"
        assert settled.status_code == 409
        assert settled.json()["code"] == "INVALID_TRANSITION"

    def test_public_claim(self, test_client, world):
        seed(lambda session: create_policy(session, world.company, policy_number="PUB-2"))

        response = test_client.post(
            "/api/v1/public/claims",
            json={"policy_number": "PUB-2", "company_id": world.company.id, "description": "Burst pipe"},
        )

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "reported"

    def test_company_claim_listing(self, test_client, world):
        async def build(session):
            policy = await create_policy(session, world.company)
            await create_claim(session, policy)

        seed(build)

        response = test_client.get("/api/v1/claims", headers=auth_headers(world.insurer))

        assert response.json()["data"]["total"] == 1


class TestDashboardAndAudit:
    def test_dashboard_counts(self, test_client, world):
        _verify(test_client, world.officer, "NOPE-2")

        response = test_client.get("/api/v1/dashboard/stats", headers=auth_headers(world.regulator))

        data = response.json()["data"]
        assert data["companies"] == {"approved": 1}
        assert data["verifications"] == {"not_found": 1}

    def test_audit_log_records_verifications(self, test_client, world):
        _verify(test_client, world.officer, "NOPE-3")

        response = test_client.get(
            "/api/v1/audit", params={"action": "DOCUMENT_VERIFY"}, headers=auth_headers(world.regulator)
        )

        items = response.json()["data"]["items"]
        assert len(items) == 1
        assert items[0]["user_id"] == world.officer.id


class TestRealtimeChannel:
    def test_missing_token_is_rejected(self, test_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect("/ws"):
                pass

        assert exc_info.value.code == 1008

    def test_invalid_token_is_rejected(self, test_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect("/ws?token=garbage"):
                pass

        assert exc_info.value.code == 1008

    def test_regulator_receives_new_verifications(self, test_client, world):
        with test_client.websocket_connect(f"/ws?token={token_for(world.regulator)}") as websocket:
            hello = websocket.receive_json()
            _verify(test_client, world.officer, "NOPE-4")
            event = websocket.receive_json()

        assert hello["event"] == "connected"
        assert hello["data"]["user_id"] == world.regulator.id
        assert event["event"] == "newVerification"
        assert event["data"]["policy_number"] == "NOPE-4"
        assert event["data"]["status"] == "not_found"


class TestUserEndpoints:
    def test_insurer_adds_a_colleague_for_approval(self, test_client, world):
        response = test_client.post(
            "/api/v1/users",
            json={"username": "colleague", "email": "colleague@example.com", "role": "insurer"},
            headers=auth_headers(world.insurer),
        )

        data = response.json()["data"]
        assert response.status_code == 201
        assert data["user"]["company_id"] == world.company.id
        assert data["user"]["approval_status"] == "pending"
        assert data["approval_id"]

    def test_insured_account_must_hold_the_listed_policies(self, test_client, world):
        seed(lambda session: create_policy(session, world.company, policy_number="HOLD-1"))

        response = test_client.post(
            "/api/v1/users",
            json={
                "username": "holder",
                "email": "holder@example.com",
                "role": "insured",
                "insured_id": "NOT-THE-HOLDER",
                "policy_numbers": ["HOLD-1"],
            },
            headers=auth_headers(world.regulator),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_officers_cannot_create_users(self, test_client, world):
        response = test_client.post(
            "/api/v1/users",
            json={"username": "x", "email": "x@example.com", "role": "officer"},
            headers=auth_headers(world.officer),
        )

        assert response.status_code == 403

    def test_company_user_listing(self, test_client, world):
        response = test_client.get(f"/api/v1/users/company/{world.company.id}", headers=auth_headers(world.insurer))

        data = response.json()["data"]
        assert data["total"] == 1
        assert data["items"][0]["id"] == world.insurer.id

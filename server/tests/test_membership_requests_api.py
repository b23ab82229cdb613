from __future__ import annotations

from datetime import date, timedelta

from app.auth.security import create_access_token
from app.core.config import settings

from conftest import application_payload


def _submit(client, **overrides) -> int:
    resp = client.post("/membership-requests", json=application_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def test_public_submission_and_reviewer_listing(client, authorize, board, moderator_user):
    board(3)
    resp = client.post("/membership-requests", json=application_payload())
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["request_number"] == f"REQ-{date.today().year}-001"

    authorize(moderator_user)
    listing = client.get("/membership-requests", params={"status": "PENDING"})
    assert listing.status_code == 200
    data = listing.json()
    assert data["total"] == 1
    assert data["items"][0]["email"] == "sokha.chan@example.com"
    assert data["items"][0]["country"] == settings.DEFAULT_COUNTRY
    assert data["items"][0]["approval_system"] == "MULTI_BOARD"

    detail = client.get(f"/membership-requests/{body['id']}")
    assert detail.status_code == 200
    assert detail.json()["created_member"] is None


def test_submission_validation(client):
    short = client.post("/membership-requests", json=application_payload(motivation="Too short"))
    assert short.status_code == 422

    future = client.post(
        "/membership-requests",
        json=application_payload(date_of_birth=(date.today() + timedelta(days=1)).isoformat()),
    )
    assert future.status_code == 422

    bad_status = client.post("/membership-requests", json=application_payload(residence_status="TOURIST"))
    assert bad_status.status_code == 422


def test_duplicate_submission_returns_code(client):
    _submit(client)
    resp = client.post("/membership-requests", json=application_payload())
    assert resp.status_code == 400
    assert resp.json()["code"] == "duplicate_application"


def test_board_vote_flow_creates_member(client, authorize, board, moderator_user):
    members = board(3)
    request_id = _submit(client)

    authorize(members[0])
    first = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "APPROVE", "notes": "Met at event"})
    assert first.status_code == 201, first.text
    assert first.json()["outcome"] == "PENDING"
    assert first.json()["vote_counts"]["approvals_required"] == 2

    again = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "REJECT"})
    assert again.status_code == 409
    assert again.json()["code"] == "already_voted"

    status_resp = client.get(f"/membership-requests/{request_id}/votes")
    assert status_resp.status_code == 200
    vote_status = status_resp.json()
    assert vote_status["has_voted"] is True
    assert vote_status["current_user_vote"]["choice"] == "APPROVE"
    assert [user["id"] for user in vote_status["pending_voters"]] == [members[1].id, members[2].id]
    assert vote_status["policy_description"] == "Majority (2 of 3 approvals required)"

    authorize(members[1])
    second = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "APPROVE"})
    assert second.status_code == 201
    result = second.json()
    assert result["outcome"] == "APPROVED"
    assert result["threshold_met"] is True
    assert result["final_status"] == "APPROVED"
    assert result["created_member"]["member_number"].startswith("M")

    authorize(members[2])
    late = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "REJECT"})
    assert late.status_code == 409
    assert late.json()["code"] == "request_closed"

    authorize(moderator_user)
    history = client.get(f"/membership-requests/{request_id}/history").json()
    kinds = [entry["kind"] for entry in history]
    assert kinds.count("vote") == 2
    assert kinds.count("threshold") == 1
    assert "submitted" in kinds
    assert history[-1]["kind"] == "submitted"


def test_non_board_user_cannot_vote(client, authorize, board, outsider_user):
    board(2)
    request_id = _submit(client)
    authorize(outsider_user)
    resp = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "APPROVE"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "not_eligible"


def test_vote_on_unknown_request(client, authorize, board):
    members = board(1)
    authorize(members[0])
    resp = client.post("/membership-requests/999/votes", json={"vote": "APPROVE"})
    assert resp.status_code == 404
    assert resp.json()["code"] == "request_not_found"


def test_invalid_vote_choice_rejected(client, authorize, board):
    members = board(1)
    request_id = _submit(client)
    authorize(members[0])
    resp = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "MAYBE"})
    assert resp.status_code == 422


def test_admin_override_endpoints(client, authorize, board, admin_user, moderator_user):
    board(3)
    request_id = _submit(client)

    authorize(moderator_user)
    forbidden = client.post(f"/membership-requests/{request_id}/override/approve", json={})
    assert forbidden.status_code == 403

    authorize(admin_user)
    resp = client.post(f"/membership-requests/{request_id}/override/reject", json={"reason": "Not resident"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["rejection_reason"] == "Not resident"

    again = client.post(f"/membership-requests/{request_id}/override/approve", json={})
    assert again.status_code == 409

    history = client.get(f"/membership-requests/{request_id}/history").json()
    assert any(entry["kind"] == "override" and entry["changed_by"]["id"] == admin_user.id for entry in history)


def test_manual_update_and_delete(client, authorize, board, admin_user, moderator_user):
    board(1)
    request_id = _submit(client)

    authorize(moderator_user)
    resp = client.patch(f"/membership-requests/{request_id}", json={"status": "UNDER_REVIEW", "admin_notes": "Call"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["reviewed_by_id"] == moderator_user.id

    refused = client.patch(f"/membership-requests/{request_id}", json={"status": "APPROVED"})
    assert refused.status_code == 422

    not_admin = client.delete(f"/membership-requests/{request_id}")
    assert not_admin.status_code == 403

    authorize(admin_user)
    deleted = client.delete(f"/membership-requests/{request_id}")
    assert deleted.status_code == 204
    assert client.get(f"/membership-requests/{request_id}").status_code == 404


def test_resend_email_endpoint(client, authorize, moderator_user):
    request_id = _submit(client)
    authorize(moderator_user)

    resp = client.post(f"/membership-requests/{request_id}/resend-email", json={"email_type": "welcome"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["sent_to"] == ["sokha.chan@example.com"]

    refused = client.post(f"/membership-requests/{request_id}/resend-email", json={"email_type": "approval"})
    assert refused.status_code == 400
    assert refused.json()["code"] == "invalid_transition"


def test_bearer_token_authenticates_voter(client, board):
    members = board(1)
    request_id = _submit(client)
    token = create_access_token(subject=str(members[0].id), roles=["Board"])

    resp = client.post(
        f"/membership-requests/{request_id}/votes",
        json={"vote": "ABSTAIN"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 201, resp.text

    anonymous = client.post(f"/membership-requests/{request_id}/votes", json={"vote": "APPROVE"})
    assert anonymous.status_code == 401


def test_whoami_reports_board_membership(client, authorize, board):
    members = board(1)
    authorize(members[0])
    resp = client.get("/auth/whoami")
    assert resp.status_code == 200
    assert resp.json()["is_board_member"] is True
    assert resp.json()["roles"] == ["Board"]

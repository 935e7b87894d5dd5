"""
Tests for registration, login, token handling and the manager review flow.
"""
from bankdesk.shared.auth import create_access_token
from bankdesk.shared.roles import Role
from conftest import PASSWORD, auth_headers


def _register(client, **overrides):
    payload = {
        "username": "jane_doe",
        "email": "Jane@Example.com",
        "password": "LongEnough1",
        "first_name": "Jane",
        "last_name": "Doe",
        "branch_id": 7,
    }
    payload.update(overrides)
    return client.post("/api/v1/auth/register", json=payload)


class TestRegistrationAndLogin:
    def test_register_starts_pending(self, client):
        r = _register(client)
        assert r.status_code == 201
        user = r.json()["data"]["user"]
        assert user["approval_status"] == "pending"
        assert user["pending_branch_id"] == 7
        assert user["branch_id"] is None
        assert user["role"] == "customer"
        assert user["email"] == "jane@example.com"
        assert "password_hash" not in user

    def test_duplicate_registration(self, client):
        _register(client)
        r = _register(client, email="other@example.com")
        assert r.status_code == 409
        assert r.json()["message"] == "Username already exists"
        r = _register(client, username="someone_else")
        assert r.json()["message"] == "Email already exists"

    def test_register_validation_envelope(self, client):
        r = _register(client, password="short", email="not-an-email")
        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} == {"password", "email"}

    def test_login_by_username_or_email(self, client):
        _register(client)
        for login in ("jane_doe", "jane@example.com"):
            r = client.post("/api/v1/auth/login", json={"login": login, "password": "LongEnough1"})
            assert r.status_code == 200
            data = r.json()["data"]
            assert data["token_type"] == "bearer"
            profile = client.get("/api/v1/auth/profile",
                                 headers={"Authorization": f"Bearer {data['access_token']}"})
            assert profile.json()["data"]["user"]["username"] == "jane_doe"

    def test_wrong_password(self, client):
        _register(client)
        r = client.post("/api/v1/auth/login", json={"login": "jane_doe", "password": "nope"})
        assert r.status_code == 401
        assert r.json() == {"success": False, "message": "Invalid credentials"}

    def test_inactive_user_cannot_login_or_use_token(self, client, make_user):
        user = make_user(is_active=False)
        r = client.post("/api/v1/auth/login", json={"login": user.username, "password": PASSWORD})
        assert r.status_code == 401
        r = client.get("/api/v1/auth/profile", headers=auth_headers(user))
        assert r.status_code == 401


class TestTokens:
    def test_missing_token(self, client):
        r = client.get("/api/v1/auth/profile")
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid token"

    def test_garbage_token(self, client):
        r = client.get("/api/v1/auth/profile", headers={"Authorization": "Bearer not.a.jwt"})
        assert r.status_code == 401

    def test_expired_token(self, client, make_user):
        user = make_user()
        token = create_access_token(user.id, minutes=-5)
        r = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401
        assert r.json()["message"] == "Token has expired"

    def test_token_for_deleted_user(self, client):
        token = create_access_token(9999)
        r = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401
        assert r.json()["message"] == "User not found"


class TestReview:
    def test_manager_approves_pending_user_of_own_branch(self, client, make_user, db_session):
        manager = make_user(role=Role.MANAGER, status="approved", branch_id=7)
        user = make_user(pending_branch_id=7)

        r = client.put(f"/api/v1/auth/users/{user.id}/approve", headers=auth_headers(manager))
        assert r.status_code == 200
        data = r.json()["data"]["user"]
        assert data["approval_status"] == "approved"
        assert data["branch_id"] == 7
        assert data["pending_branch_id"] is None

        gated = client.get("/api/v1/auth/branch-membership", headers=auth_headers(user))
        assert gated.status_code == 200

    def test_decisions_are_terminal(self, client, make_user):
        admin = make_user(role=Role.ADMIN, status="approved")
        user = make_user(pending_branch_id=2)
        assert client.put(f"/api/v1/auth/users/{user.id}/approve", headers=auth_headers(admin)).status_code == 200
        again = client.put(f"/api/v1/auth/users/{user.id}/reject", headers=auth_headers(admin))
        assert again.status_code == 400
        assert again.json()["message"] == "User is not pending approval"

    def test_reject_records_reason(self, client, make_user):
        admin = make_user(role=Role.ADMIN, status="approved")
        user = make_user(pending_branch_id=2)
        r = client.put(f"/api/v1/auth/users/{user.id}/reject", headers=auth_headers(admin),
                       json={"reason": "Blurry ID"})
        assert r.status_code == 200
        assert r.json()["data"]["user"]["rejection_reason"] == "Blurry ID"

        gated = client.get("/api/v1/auth/branch-membership", headers=auth_headers(user))
        assert gated.json()["data"]["rejection_reason"] == "Blurry ID"

    def test_reject_without_reason(self, client, make_user):
        admin = make_user(role=Role.ADMIN, status="approved")
        user = make_user(pending_branch_id=2)
        r = client.put(f"/api/v1/auth/users/{user.id}/reject", headers=auth_headers(admin))
        assert r.json()["data"]["user"]["rejection_reason"] == "No reason provided"

    def test_manager_of_other_branch_cannot_review(self, client, make_user):
        manager = make_user(role=Role.MANAGER, status="approved", branch_id=1)
        user = make_user(pending_branch_id=2)
        r = client.put(f"/api/v1/auth/users/{user.id}/approve", headers=auth_headers(manager))
        assert r.status_code == 403

    def test_customer_cannot_review(self, client, make_user):
        customer = make_user(status="approved", branch_id=2)
        user = make_user(pending_branch_id=2)
        r = client.put(f"/api/v1/auth/users/{user.id}/approve", headers=auth_headers(customer))
        assert r.status_code == 403
        assert r.json()["message"] == "Insufficient permissions"

    def test_review_unknown_user(self, client, make_user):
        admin = make_user(role=Role.ADMIN, status="approved")
        r = client.put("/api/v1/auth/users/4040/approve", headers=auth_headers(admin))
        assert r.status_code == 404

    def test_pending_users_scoped_to_branch(self, client, make_user):
        manager = make_user(role=Role.MANAGER, status="approved", branch_id=1)
        admin = make_user(role=Role.ADMIN, status="approved")
        mine = make_user(pending_branch_id=1)
        make_user(pending_branch_id=2)
        make_user(status="approved", branch_id=1)

        r = client.get("/api/v1/auth/pending-users", headers=auth_headers(manager))
        assert [u["id"] for u in r.json()["data"]["users"]] == [mine.id]

        r = client.get("/api/v1/auth/pending-users", headers=auth_headers(admin))
        assert r.json()["data"]["count"] == 2

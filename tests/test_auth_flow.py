from datetime import timedelta

from app.farmhub.core.security import issue_refresh_token, verify_refresh_token, verify_token
from app.farmhub.db.models import User

from tests.helpers import DEFAULT_PASSWORD, auth_headers, create_mapping, create_store, create_user


def test_login_with_email_returns_token(client, db_session):
    store = create_store(db_session, "S1")
    user = create_user(db_session, "alice", role="store_staff")
    create_mapping(db_session, user, store, "store_manager")

    response = client.post("/auth/login", json={"email": "alice@example.com", "password": DEFAULT_PASSWORD})

    assert response.status_code == 200
    payload = response.json()
    assert payload["token_type"] == "bearer"
    assert payload["expires_in"] == 3600
    assert payload["trace_id"] == response.headers["X-Trace-ID"]
    token_data = verify_token(payload["access_token"])
    assert token_data.sub == user.id
    assert token_data.associated_store_ids == ["S1"]


def test_login_with_username_records_last_login(client, db_session):
    user = create_user(db_session, "alice")

    response = client.post("/auth/login", json={"username_or_email": "alice", "password": DEFAULT_PASSWORD})

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.get(User, user.id).last_login_at is not None


def test_login_invalid_password(client, db_session):
    create_user(db_session, "alice")

    response = client.post("/auth/login", json={"username_or_email": "alice", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_login_unknown_user(client):
    response = client.post("/auth/login", json={"username_or_email": "nobody", "password": "whatever"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_login_inactive_user_is_forbidden(client, db_session):
    create_user(db_session, "alice", is_active=False)

    response = client.post("/auth/login", json={"username_or_email": "alice", "password": DEFAULT_PASSWORD})

    assert response.status_code == 403
    assert response.json()["code"] == "USER_INACTIVE"


def test_login_deleted_user_is_rejected(client, db_session):
    create_user(db_session, "alice", is_deleted=True)

    response = client.post("/auth/login", json={"username_or_email": "alice", "password": DEFAULT_PASSWORD})

    assert response.status_code == 401


def test_login_requires_an_identifier(client):
    response = client.post("/auth/login", json={"password": DEFAULT_PASSWORD})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_oauth2_token_form_login(client, db_session):
    create_user(db_session, "alice")

    response = client.post(
        "/auth/token",
        content=f"username=alice&password={DEFAULT_PASSWORD.replace('!', '%21')}",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"
    assert verify_token(response.json()["access_token"]).username == "alice"


def test_me_returns_identity_and_store_mappings(client, db_session):
    store = create_store(db_session, "S1")
    user = create_user(db_session, "alice", role="viewer")
    create_mapping(db_session, user, store, "store_staff")

    response = client.get("/me", headers=auth_headers(user, [store.id]))

    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == user.id
    assert payload["role"] == "viewer"
    assert payload["is_superadmin"] is False
    assert payload["associated_store_ids"] == ["S1"]
    assert payload["stores"] == [{"store_id": "S1", "role": "store_staff"}]


def test_me_requires_token(client):
    response = client.get("/me")

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_store_permissions_diagnostic(client, db_session):
    store = create_store(db_session, "S1")
    user = create_user(db_session, "alice", role="viewer")
    create_mapping(db_session, user, store, "store_staff")

    response = client.get("/me/stores/S1/permissions", headers=auth_headers(user))

    assert response.status_code == 200
    permissions = {
        (item["resource"], item["action"]): item for item in response.json()["permissions"]
    }
    assert permissions[("orders", "create")]["allowed"] is True
    assert permissions[("orders", "create")]["source"] == "store_mapping"
    assert permissions[("products", "read")]["allowed"] is True
    assert permissions[("products", "delete")]["allowed"] is False


def test_store_permissions_for_unknown_store(client, db_session):
    user = create_user(db_session, "alice")

    response = client.get("/me/stores/nope/permissions", headers=auth_headers(user))

    assert response.status_code == 404
    assert response.json()["code"] == "TENANT_NOT_FOUND"


def test_login_returns_refresh_token(client, db_session):
    user = create_user(db_session, "alice")

    response = client.post("/auth/login", json={"username_or_email": "alice", "password": DEFAULT_PASSWORD})

    assert response.status_code == 200
    assert verify_refresh_token(response.json()["refresh_token"]) == user.id


def test_refresh_token_issues_new_access_token(client, db_session):
    store = create_store(db_session, "S1")
    user = create_user(db_session, "alice")
    refresh = issue_refresh_token(user)
    create_mapping(db_session, user, store, "store_staff")

    response = client.post("/auth/refresh-token", json={"refresh_token": refresh})

    assert response.status_code == 200
    payload = response.json()
    assert payload["expires_in"] == 3600
    token_data = verify_token(payload["access_token"])
    assert token_data.sub == user.id
    assert token_data.associated_store_ids == ["S1"]
    assert verify_refresh_token(payload["refresh_token"]) == user.id
    assert client.get("/me", headers={"Authorization": f"Bearer {payload['access_token']}"}).status_code == 200


def test_refresh_rejects_access_token(client, db_session):
    user = create_user(db_session, "alice")
    access_token = auth_headers(user)["Authorization"].removeprefix("Bearer ")

    response = client.post("/auth/refresh-token", json={"refresh_token": access_token})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_refresh_token_is_not_accepted_as_bearer(client, db_session):
    user = create_user(db_session, "alice")

    response = client.get("/me", headers={"Authorization": f"Bearer {issue_refresh_token(user)}"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_refresh_token(client, db_session):
    user = create_user(db_session, "alice")

    response = client.post(
        "/auth/refresh-token",
        json={"refresh_token": issue_refresh_token(user, expires_delta=timedelta(seconds=-5))},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_refresh_rechecks_user_state(client, db_session):
    inactive = create_user(db_session, "inactive", is_active=False)
    deleted = create_user(db_session, "ghost", is_deleted=True)

    inactive_response = client.post("/auth/refresh-token", json={"refresh_token": issue_refresh_token(inactive)})
    deleted_response = client.post("/auth/refresh-token", json={"refresh_token": issue_refresh_token(deleted)})

    assert inactive_response.status_code == 403
    assert inactive_response.json()["code"] == "USER_INACTIVE"
    assert deleted_response.status_code == 401
    assert deleted_response.json()["code"] == "INVALID_TOKEN"


def test_register_creates_viewer_that_can_login(client, db_session):
    response = client.post(
        "/auth/register",
        json={
            "username": "cashier",
            "email": "cashier@example.com",
            "password": "Sup3rSecret",
            "full_name": "Front Cashier",
        },
    )

    assert response.status_code == 201
    registered = response.json()["user"]
    assert registered["role"] == "viewer"
    assert registered["is_active"] is True
    user = db_session.get(User, registered["id"])
    assert user.is_superadmin is False
    assert user.hashed_password != "Sup3rSecret"

    login = client.post("/auth/login", json={"username_or_email": "cashier", "password": "Sup3rSecret"})
    assert login.status_code == 200
    assert verify_token(login.json()["access_token"]).associated_store_ids == []


def test_register_ignores_privilege_fields(client, db_session):
    response = client.post(
        "/auth/register",
        json={
            "username": "sneaky",
            "email": "sneaky@example.com",
            "password": "Sup3rSecret",
            "role": "admin_global",
            "is_superadmin": True,
        },
    )

    assert response.status_code == 201
    user = db_session.get(User, response.json()["user"]["id"])
    assert user.role == "viewer"
    assert user.is_superadmin is False


def test_register_duplicate_username_or_email_conflicts(client, db_session):
    create_user(db_session, "alice")

    by_username = client.post(
        "/auth/register",
        json={"username": "alice", "email": "other@example.com", "password": "Sup3rSecret"},
    )
    by_email = client.post(
        "/auth/register",
        json={"username": "other", "email": "alice@example.com", "password": "Sup3rSecret"},
    )

    assert by_username.status_code == 409
    assert by_email.status_code == 409
    assert by_email.json()["code"] == "CONFLICT"


def test_register_rejects_short_password(client):
    response = client.post(
        "/auth/register",
        json={"username": "cashier", "email": "cashier@example.com", "password": "short"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_register_can_be_disabled(client, monkeypatch):
    from app.farmhub.routers import auth as auth_router

    monkeypatch.setattr(auth_router.settings, "REGISTRATION_ENABLED", False)

    response = client.post(
        "/auth/register",
        json={"username": "cashier", "email": "cashier@example.com", "password": "Sup3rSecret"},
    )

    assert response.status_code == 403
    assert response.json()["details"] == {"reason": "registration_disabled"}

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from app.farmhub.core.rbac import UserRole

from tests.helpers import auth_headers, create_mapping, create_store, create_user


def _audit_logs(client, store_id, headers):
    return client.get(f"/tenant/{store_id}/audit-logs", headers=headers)


def _registry(client):
    return client.app.state.tenant_registry


def test_missing_token_is_rejected(client, db_session):
    create_store(db_session, "S1")

    response = _audit_logs(client, "S1", headers={})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"
    assert response.json()["trace_id"] == response.headers["X-Trace-ID"]


def test_garbage_token_is_rejected(client, db_session):
    create_store(db_session, "S1")

    response = _audit_logs(client, "S1", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_token_rejected_before_tenant_resolution(client, db_session):
    user = create_user(db_session, "alice", role=UserRole.STORE_MANAGER.value)

    response = _audit_logs(client, "does-not-exist", headers=auth_headers(user, expires_delta=timedelta(seconds=-5)))

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"
    assert _registry(client).connection_stats()["total_connections"] == 0


def test_unknown_store_is_404_for_every_caller(client, db_session):
    viewer = create_user(db_session, "viewer")
    superadmin = create_user(db_session, "root", role="admin_global", is_superadmin=True)

    for user in (viewer, superadmin):
        response = _audit_logs(client, "nope", headers=auth_headers(user))
        assert response.status_code == 404
        assert response.json()["code"] == "TENANT_NOT_FOUND"


def test_existing_store_without_mapping_is_forbidden(client, db_session):
    create_store(db_session, "S1")
    manager = create_user(db_session, "manager", role="store_manager")

    response = _audit_logs(client, "S1", headers=auth_headers(manager))

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"
    assert response.json()["details"] == {"permission": "audit_logs:list"}


def test_mapped_store_role_grants_access(client, db_session):
    store = create_store(db_session, "S1")
    staff = create_user(db_session, "staff", role="store_staff")
    create_mapping(db_session, staff, store, "store_manager")

    response = _audit_logs(client, "S1", headers=auth_headers(staff, [store.id]))

    assert response.status_code == 200
    payload = response.json()
    assert payload["items"] == []
    assert payload["total"] == 0


def test_mapped_role_without_grant_is_forbidden(client, db_session):
    store = create_store(db_session, "S1")
    staff = create_user(db_session, "staff", role="store_staff")
    create_mapping(db_session, staff, store, "store_staff")

    response = _audit_logs(client, "S1", headers=auth_headers(staff, [store.id]))

    assert response.status_code == 403


def test_superadmin_without_mapping_is_allowed(client, db_session):
    create_store(db_session, "S1")
    superadmin = create_user(db_session, "root", role="viewer", is_superadmin=True)

    response = _audit_logs(client, "S1", headers=auth_headers(superadmin))

    assert response.status_code == 200


def test_global_admin_without_mapping_is_allowed(client, db_session):
    create_store(db_session, "S1")
    admin = create_user(db_session, "boss", role="admin_global")

    response = _audit_logs(client, "S1", headers=auth_headers(admin))

    assert response.status_code == 200


def test_deleted_user_token_is_rejected(client, db_session):
    create_store(db_session, "S1")
    user = create_user(db_session, "ghost", role="admin_global", is_deleted=True)

    response = _audit_logs(client, "S1", headers=auth_headers(user))

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_inactive_user_token_is_forbidden(client, db_session):
    create_store(db_session, "S1")
    user = create_user(db_session, "sleepy", role="admin_global", is_active=False)

    response = _audit_logs(client, "S1", headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["code"] == "USER_INACTIVE"


def test_tenant_connection_failure_is_500(client, db_session):
    create_store(db_session, "S1", schema_name="not valid")
    admin = create_user(db_session, "boss", role="admin_global")

    response = _audit_logs(client, "S1", headers=auth_headers(admin))

    assert response.status_code == 500
    assert response.json()["code"] == "TENANT_CONNECTION_FAILED"


def test_repeated_requests_reuse_one_data_source(client, db_session):
    store = create_store(db_session, "S1")
    manager = create_user(db_session, "manager", role="store_manager")
    create_mapping(db_session, manager, store, "store_manager")
    headers = auth_headers(manager, [store.id])

    assert _audit_logs(client, "S1", headers).status_code == 200
    assert _audit_logs(client, "S1", headers).status_code == 200

    stats = _registry(client).connection_stats()
    assert stats["total_connections"] == 1
    assert stats["connections"][0]["access_count"] == 2


def test_denied_request_is_counted_in_metrics(client, db_session):
    create_store(db_session, "S1")
    viewer = create_user(db_session, "viewer")

    _audit_logs(client, "S1", headers=auth_headers(viewer))
    metrics_text = client.get("/metrics").text

    assert 'rbac_denied_total{action="list",resource="audit_logs"}' in metrics_text or (
        'rbac_denied_total{resource="audit_logs",action="list"}' in metrics_text
    )


def test_concurrent_first_requests_share_one_data_source(client, db_session):
    store = create_store(db_session, "S2")
    manager = create_user(db_session, "manager", role="store_manager")
    create_mapping(db_session, manager, store, "store_manager")
    headers = auth_headers(manager, [store.id])
    start = threading.Barrier(2)

    def request():
        start.wait(timeout=5)
        return _audit_logs(client, "S2", headers).status_code

    with ThreadPoolExecutor(max_workers=2) as pool:
        statuses = list(pool.map(lambda _: request(), range(2)))

    assert statuses == [200, 200]
    stats = _registry(client).connection_stats()
    assert stats["total_connections"] == 1
    assert stats["connections"][0]["access_count"] == 2

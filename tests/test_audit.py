import logging

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from app.farmhub.core.deps import AuthorizedRequest, require_permission
from app.farmhub.core.error_catalog import AppError, ErrorCatalog
from app.farmhub.core.rbac import Action
from app.farmhub.db.models import Store
from app.farmhub.repos.audit import AuditRepository

from tests.helpers import auth_headers, create_mapping, create_store, create_user

products_create = require_permission("products", Action.CREATE)
products_update = require_permission("products", Action.UPDATE)
products_read = require_permission("products", Action.READ)


@pytest.fixture()
def client(app):
    @app.post("/tenant/{store_id}/products")
    def create_product(payload: dict, authorized: AuthorizedRequest = Depends(products_create)):
        if payload.get("fail"):
            raise AppError(ErrorCatalog.CONFLICT)
        return {"created": payload.get("name"), "store_id": authorized.context.store_id}

    @app.put("/tenant/{store_id}/products/{product_id}")
    def update_product(product_id: str, payload: dict, authorized: AuthorizedRequest = Depends(products_update)):
        return {"updated": product_id}

    @app.get("/tenant/{store_id}/products/{product_id}")
    def read_product(product_id: str, authorized: AuthorizedRequest = Depends(products_read)):
        return {"id": product_id}

    with TestClient(app) as client:
        yield client


@pytest.fixture()
def manager_headers(db_session):
    store = create_store(db_session, "S1")
    manager = create_user(db_session, "manager", role="store_staff")
    create_mapping(db_session, manager, store, "store_manager")
    return auth_headers(manager, [store.id])


def _audit_items(client, headers, **params):
    response = client.get("/tenant/S1/audit-logs", headers=headers, params=params)
    assert response.status_code == 200
    return response.json()["items"]


def test_mutation_writes_audit_record(client, manager_headers):
    response = client.post("/tenant/S1/products", json={"name": "Seeds"}, headers=manager_headers)

    assert response.status_code == 200
    items = _audit_items(client, manager_headers)
    assert len(items) == 1
    record = items[0]
    assert record["action"] == "create"
    assert record["target_table"] == "products"
    assert record["store_id"] == "S1"
    assert record["username"] == "manager"
    assert record["metadata"]["method"] == "POST"
    assert record["metadata"]["trace_id"] == response.headers["X-Trace-ID"]


def test_audit_record_carries_target_id(client, manager_headers):
    client.put("/tenant/S1/products/p-42", json={"name": "Seeds"}, headers=manager_headers)

    items = _audit_items(client, manager_headers, action="update")

    assert [item["target_id"] for item in items] == ["p-42"]


def test_reads_and_failed_mutations_are_not_audited(client, manager_headers):
    assert client.get("/tenant/S1/products/p-1", headers=manager_headers).status_code == 200
    assert client.post("/tenant/S1/products", json={"fail": True}, headers=manager_headers).status_code == 409

    assert _audit_items(client, manager_headers) == []


def test_denied_mutation_is_not_audited(client, db_session, manager_headers):
    viewer = create_user(db_session, "viewer")
    create_mapping(db_session, viewer, db_session.get(Store, "S1"), "viewer")

    response = client.post("/tenant/S1/products", json={"name": "Seeds"}, headers=auth_headers(viewer, ["S1"]))

    assert response.status_code == 403
    assert _audit_items(client, manager_headers) == []


def test_audit_failure_does_not_break_the_request(client, manager_headers, monkeypatch, caplog):
    def broken_create(self, entity):
        raise RuntimeError("disk full")

    monkeypatch.setattr(AuditRepository, "create", broken_create)

    with caplog.at_level(logging.ERROR, logger="app.farmhub.services.audit"):
        response = client.post("/tenant/S1/products", json={"name": "Seeds"}, headers=manager_headers)

    assert response.status_code == 200
    assert response.json()["created"] == "Seeds"
    assert "Failed to write audit event" in caplog.text
    failures = [
        line for line in client.get("/metrics").text.splitlines() if line.startswith("audit_write_failures_total ")
    ]
    assert failures and float(failures[0].split()[1]) >= 1

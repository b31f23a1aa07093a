import importlib
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["METRICS_ENABLED"] = "true"
os.environ["SUPERADMIN_PASSWORD"] = ""


def _setup_app(database_url: str, tenant_database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["TENANT_DATABASE_URL"] = tenant_database_url

    import app.farmhub.core.config as config
    import app.farmhub.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


@pytest.fixture()
def app(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'global.db'}"
    tenant_database_url = f"sqlite+pysqlite:///{tmp_path}/tenant_{{schema}}.db"
    app, session = _setup_app(database_url, tenant_database_url)
    yield app
    session.engine.dispose()


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def db_session(client):
    from app.farmhub.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

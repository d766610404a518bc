# conftest.py
import os

# settings are read at import time
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("DB_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "dev")

import pytest
from fastapi.testclient import TestClient

from bistro.main import app


@pytest.fixture(scope="session")
def base_url():
    return ""


@pytest.fixture(scope="session")
def client():
    # entering the context runs the startup hook (tables, hub, dispatcher)
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="session")
def auth_headers(client, base_url):
    r = client.get(f"{base_url}/healthz")
    assert r.status_code == 200, f"/healthz failed: {r.text}"

    # seed dev data
    r = client.post(f"{base_url}/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"
    boot = r.json()

    r = client.post(f"{base_url}/auth/login", json={"email": boot["admin_email"], "password": boot["admin_password"]})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    tok = r.json()["access_token"]
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture(scope="session")
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))

import os

# boto3 needs credentials and a region before wallet_api.db.dynamo is imported
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from wallet_api.core.config import settings
from wallet_api.db import dynamo
from wallet_api.main import app


@pytest.fixture(autouse=True)
def dynamodb_tables(monkeypatch):
    """
    Fresh moto-backed tables for every test, bound into the dynamo module.
    """
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)
        monkeypatch.setattr(dynamo, "dynamodb", resource)
        monkeypatch.setattr(dynamo, "users_table", resource.Table(settings.DYNAMO_USERS_TABLE))
        monkeypatch.setattr(dynamo, "transactions_table", resource.Table(settings.DYNAMO_TRANSACTIONS_TABLE))
        monkeypatch.setattr(dynamo, "blacklist_table", resource.Table(settings.DYNAMO_BLACKLIST_TABLE))
        dynamo.ensure_tables()
        yield resource


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth_header():
    def _header(token):
        return {"Authorization": f"Bearer {token}"}

    return _header


@pytest.fixture
def register_user(client):
    def _register(email="jane@example.com", password="secret123", name="Jane"):
        response = client.post(
            "/api/users/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def registered(register_user):
    return register_user()


@pytest.fixture
def headers(registered, auth_header):
    return auth_header(registered["accessToken"])

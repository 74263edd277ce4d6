"""
Shared fixtures: settings, an in-memory warehouse gateway and the app.

The fake gateway records every query it is asked to run and serves canned
rows keyed by query name, so services and routes run end to end without
BigQuery.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from analytics_api.core.config import Settings
from analytics_api.main import create_app
from analytics_api.services.cache import ResponseCache

from fakes import FakeGateway

API_KEY = "test-api-key"


@pytest.fixture
def settings():
    return Settings(project_id="test-project", api_key=API_KEY)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cache():
    return ResponseCache()


@pytest.fixture
def app(settings, gateway, cache):
    return create_app(settings=settings, gateway=gateway, cache=cache)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    return {"x-api-key": API_KEY}


@pytest.fixture
def window_params():
    return {"organizationId": "org-1", "startDate": "2024-01-01", "endDate": "2024-01-31"}


@pytest.fixture
def fixed_today():
    return date(2024, 6, 15)

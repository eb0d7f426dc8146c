import pytest
from fastapi.testclient import TestClient

from tangohub.app.core.config import Settings
from tangohub.app.main import create_app


@pytest.fixture
def app_settings():
    return Settings(debug=True, cache_default_ttl=60)


@pytest.fixture
def app(app_settings):
    return create_app(app_settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def components(app):
    return app.state.components

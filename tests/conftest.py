"""Shared fixtures: every test gets a fresh in-memory backend."""

import pytest
from fastapi.testclient import TestClient

from app.config.settings import Settings
from app.core.dependencies import Services, build_services
from app.database.backends import Backend, create_backend
from app.main import create_app
from tests.helpers import make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def backend(settings: Settings) -> Backend:
    return create_backend(settings)


@pytest.fixture
def store(backend: Backend):
    return backend.store


@pytest.fixture
def directory(backend: Backend):
    return backend.directory


@pytest.fixture
def services(backend: Backend, settings: Settings) -> Services:
    return build_services(backend, settings)


@pytest.fixture
def client(settings: Settings, backend: Backend) -> TestClient:
    return TestClient(create_app(settings=settings, backend=backend))

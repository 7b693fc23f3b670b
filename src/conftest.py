"""Shared pytest fixtures and factories for asset tracker tests."""

import pytest

from django.conf import settings

settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test.

    Prevents rate-limit counters (django_ratelimit) and cached
    dashboard stats from bleeding across tests.
    """
    from django.core.cache import cache

    cache.clear()


from assets.factories import (  # noqa: E402
    AssetFactory,
    AssetTypeFactory,
    EmployeeFactory,
    UserFactory,
)

# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def user(db, password):
    return UserFactory(
        username="testuser",
        email="test@example.com",
        password=password,
        display_name="Test User",
        role="employee",
    )


@pytest.fixture
def admin_user(db, password):
    return UserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        role="admin",
        is_staff=True,
        is_superuser=True,
    )


@pytest.fixture
def verifier_user(db, password):
    return UserFactory(
        username="verifier",
        email="verifier@example.com",
        password=password,
        display_name="Vera Verifier",
        role="verifier",
    )


@pytest.fixture
def client_logged_in(client, user, password):
    client.login(username=user.username, password=password)
    return client


@pytest.fixture
def admin_client(client, admin_user, password):
    client.login(username=admin_user.username, password=password)
    return client


@pytest.fixture
def verifier_client(client, verifier_user, password):
    client.login(username=verifier_user.username, password=password)
    return client


# --- Core model fixtures ---


@pytest.fixture
def asset_type(db):
    return AssetTypeFactory(
        name="Laptop",
        schema=[
            {"name": "RAM", "type": "number", "required": True},
            {"name": "OS", "type": "select", "options": ["Linux", "Windows"]},
        ],
    )


@pytest.fixture
def asset(asset_type):
    return AssetFactory(
        asset_type=asset_type,
        serial_number="SN-1001",
        specifications={"RAM": 16, "OS": "Linux"},
    )


@pytest.fixture
def second_asset(asset_type):
    return AssetFactory(
        asset_type=asset_type,
        serial_number="SN-1002",
        specifications={"RAM": 8},
    )


@pytest.fixture
def employee(db):
    return EmployeeFactory(
        emp_id="EMP001",
        name="Jane Doe",
        email="jane.doe@example.com",
    )


@pytest.fixture
def second_employee(db):
    return EmployeeFactory(
        emp_id="EMP002",
        name="John Roe",
        email="john.roe@example.com",
    )


@pytest.fixture
def email_settings(db):
    from assets.factories import EmailSettingsFactory

    return EmailSettingsFactory()

"""Tests for the admin-only user management API."""

import json

import pytest

from django.contrib.auth import get_user_model

from assets.factories import UserFactory, VerificationFactory
from assets.models import AuditLog

User = get_user_model()

LIST_URL = "/api/auth/users/"


def send_json(client, method, url, data):
    return getattr(client, method)(
        url, data=json.dumps(data), content_type="application/json"
    )


@pytest.fixture
def role_admin(db, password):
    """An admin by role alone: no staff or superuser flags."""
    return UserFactory(username="roleadmin", password=password, role="admin")


@pytest.fixture
def role_admin_client(client, role_admin, password):
    client.login(username=role_admin.username, password=password)
    return client


class TestUserAccess:
    def test_requires_login(self, client, db):
        assert client.get(LIST_URL).status_code == 401

    def test_employee_forbidden(self, client_logged_in):
        assert client_logged_in.get(LIST_URL).status_code == 403

    def test_verifier_forbidden(self, verifier_client):
        response = send_json(
            verifier_client,
            "post",
            LIST_URL,
            {"username": "x", "password": "Brand-new-pass9"},
        )
        assert response.status_code == 403
        assert not User.objects.filter(username="x").exists()

    def test_role_admin_without_staff_can_manage(self, role_admin_client, user):
        response = role_admin_client.get(LIST_URL)
        assert response.status_code == 200
        usernames = [u["username"] for u in response.json()]
        assert usernames == ["roleadmin", "testuser"]


class TestUserCreate:
    def test_create(self, admin_client):
        response = send_json(
            admin_client,
            "post",
            LIST_URL,
            {
                "username": "newbie",
                "password": "Brand-new-pass9",
                "role": "verifier",
                "displayName": "New Bie",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "verifier"
        assert data["isActive"] is True
        assert "password" not in data
        created = User.objects.get(username="newbie")
        assert created.check_password("Brand-new-pass9")
        assert created.password != "Brand-new-pass9"
        entry = AuditLog.objects.get(action="Create User")
        assert entry.entity_id == created.pk

    def test_defaults_to_employee_role(self, admin_client):
        response = send_json(
            admin_client,
            "post",
            LIST_URL,
            {"username": "plain", "password": "Brand-new-pass9"},
        )
        assert response.json()["role"] == "employee"

    def test_duplicate_username(self, admin_client, user):
        response = send_json(
            admin_client,
            "post",
            LIST_URL,
            {"username": "testuser", "password": "Brand-new-pass9"},
        )
        assert response.status_code == 400
        assert response.json()["field"] == "username"

    def test_password_required(self, admin_client):
        response = send_json(
            admin_client, "post", LIST_URL, {"username": "nopass"}
        )
        assert response.status_code == 400
        assert response.json()["field"] == "password"

    def test_weak_password(self, admin_client):
        response = send_json(
            admin_client,
            "post",
            LIST_URL,
            {"username": "weak", "password": "123"},
        )
        assert response.status_code == 400
        assert response.json()["field"] == "password"
        assert not User.objects.filter(username="weak").exists()


class TestUserUpdate:
    def test_password_is_hashed(self, admin_client, user):
        response = send_json(
            admin_client,
            "patch",
            f"{LIST_URL}{user.pk}/",
            {"password": "Another-pass-42"},
        )
        assert response.status_code == 200
        user.refresh_from_db()
        assert user.check_password("Another-pass-42")
        assert user.role == User.ROLE_EMPLOYEE
        entry = AuditLog.objects.get(action="Update User")
        assert entry.details == {"changed": ["password"]}

    def test_partial_update_keeps_password(self, admin_client, user, password):
        response = send_json(
            admin_client,
            "patch",
            f"{LIST_URL}{user.pk}/",
            {"role": "verifier", "displayName": "Renamed"},
        )
        assert response.status_code == 200
        user.refresh_from_db()
        assert user.role == User.ROLE_VERIFIER
        assert user.display_name == "Renamed"
        assert user.check_password(password)

    def test_cannot_remove_own_admin_role(self, role_admin_client, role_admin):
        response = send_json(
            role_admin_client,
            "patch",
            f"{LIST_URL}{role_admin.pk}/",
            {"role": "employee"},
        )
        assert response.status_code == 409
        role_admin.refresh_from_db()
        assert role_admin.role == User.ROLE_ADMIN

    def test_cannot_deactivate_self(self, admin_client, admin_user):
        response = send_json(
            admin_client,
            "patch",
            f"{LIST_URL}{admin_user.pk}/",
            {"isActive": False},
        )
        assert response.status_code == 409
        admin_user.refresh_from_db()
        assert admin_user.is_active

    def test_unknown_user(self, admin_client):
        response = send_json(
            admin_client, "patch", f"{LIST_URL}99999/", {"role": "admin"}
        )
        assert response.status_code == 404


class TestUserDelete:
    def test_delete(self, admin_client, user):
        response = admin_client.delete(f"{LIST_URL}{user.pk}/")
        assert response.status_code == 204
        assert not User.objects.filter(pk=user.pk).exists()
        assert AuditLog.objects.filter(action="Delete User").exists()

    def test_cannot_delete_self(self, admin_client, admin_user):
        response = admin_client.delete(f"{LIST_URL}{admin_user.pk}/")
        assert response.status_code == 409
        assert User.objects.filter(pk=admin_user.pk).exists()

    def test_user_with_verifications(self, admin_client, verifier_user):
        VerificationFactory(verifier=verifier_user)
        response = admin_client.delete(f"{LIST_URL}{verifier_user.pk}/")
        assert response.status_code == 409
        assert User.objects.filter(pk=verifier_user.pk).exists()

"""Tests for management commands."""

from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command

User = get_user_model()


class TestEnsureAdmin:
    def test_creates_admin(self, db):
        out = StringIO()
        call_command(
            "ensure_admin",
            "--username=root@example.com",
            "--password=S3cure-pass!",
            stdout=out,
        )
        admin = User.objects.get(username="root@example.com")
        assert admin.is_superuser
        assert admin.role == User.ROLE_ADMIN
        assert admin.email == "root@example.com"
        assert admin.must_change_password
        assert admin.check_password("S3cure-pass!")
        assert "Initial password" not in out.getvalue()

    def test_generates_password(self, db):
        out = StringIO()
        call_command(
            "ensure_admin", "--username=boss", "--password=", stdout=out
        )
        admin = User.objects.get(username="boss")
        assert admin.email == ""
        printed = out.getvalue().split("Initial password: ")[1].strip()
        assert admin.check_password(printed)

    def test_noop_when_admin_exists(self, admin_user):
        out = StringIO()
        call_command("ensure_admin", "--username=second", stdout=out)
        assert not User.objects.filter(username="second").exists()
        assert "already exists" in out.getvalue()

    def test_role_admin_counts_as_admin(self, db):
        User.objects.create_user(
            username="lead", password="x", role=User.ROLE_ADMIN
        )
        call_command("ensure_admin", "--username=other", stdout=StringIO())
        assert User.objects.count() == 1

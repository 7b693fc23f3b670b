"""Management command to seed the default administrator account."""

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db.models import Q
from django.utils.crypto import get_random_string


class Command(BaseCommand):
    help = "Create the default admin user unless an administrator exists"

    def add_arguments(self, parser):
        parser.add_argument(
            "--username",
            default=settings.DEFAULT_ADMIN_USERNAME,
            help="Username (and email, if it looks like one) of the admin",
        )
        parser.add_argument(
            "--password",
            default=settings.DEFAULT_ADMIN_PASSWORD,
            help="Initial password; a random one is printed if omitted",
        )

    def handle(self, *args, **options):
        User = get_user_model()
        if User.objects.filter(
            Q(is_superuser=True) | Q(role=User.ROLE_ADMIN)
        ).exists():
            self.stdout.write("An administrator already exists.")
            return

        username = options["username"]
        password = options["password"]
        generated = not password
        if generated:
            password = get_random_string(16)

        User.objects.create_superuser(
            username=username,
            email=username if "@" in username else "",
            password=password,
            role=User.ROLE_ADMIN,
            display_name="Administrator",
            must_change_password=True,
        )
        self.stdout.write(
            self.style.SUCCESS(f"Created administrator '{username}'.")
        )
        if generated:
            self.stdout.write(f"Initial password: {password}")

"""Factory Boy factories for asset tracker test data generation."""

import factory
from factory.django import DjangoModelFactory


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    display_name = factory.Faker("name")
    role = "employee"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class AssetTypeFactory(DjangoModelFactory):
    """Factory for AssetType model."""

    class Meta:
        model = "assets.AssetType"

    name = factory.Sequence(lambda n: f"Asset Type {n}")
    description = factory.Faker("sentence")
    schema = factory.LazyFunction(list)


class AssetFactory(DjangoModelFactory):
    """Factory for Asset model. Serial numbers are stored upper-cased."""

    class Meta:
        model = "assets.Asset"

    asset_type = factory.SubFactory(AssetTypeFactory)
    serial_number = factory.Sequence(lambda n: f"SN-{n:05d}")
    status = "Available"
    specifications = factory.LazyFunction(dict)


class EmployeeFactory(DjangoModelFactory):
    """Factory for Employee model."""

    class Meta:
        model = "assets.Employee"

    emp_id = factory.Sequence(lambda n: f"EMP{n:04d}")
    name = factory.Faker("name")
    email = factory.LazyAttribute(lambda o: f"{o.emp_id.lower()}@example.com")
    branch = "Head Office"
    department = "Operations"
    designation = "Analyst"
    status = "Active"


class AllocationFactory(DjangoModelFactory):
    """Factory for an Active Allocation.

    Creates the row only; it does not move the asset to Allocated.
    Use services.allocations.allocate() for a consistent pair.
    """

    class Meta:
        model = "assets.Allocation"

    asset = factory.SubFactory(AssetFactory, status="Allocated")
    employee = factory.SubFactory(EmployeeFactory)
    status = "Active"


class VerificationFactory(DjangoModelFactory):
    class Meta:
        model = "assets.Verification"

    asset = factory.SubFactory(AssetFactory)
    verifier = factory.SubFactory(UserFactory, role="verifier")
    status = "Pending"


class EmailSettingsFactory(DjangoModelFactory):
    class Meta:
        model = "assets.EmailSettings"

    host = "smtp.example.com"
    port = 587
    use_tls = True
    use_ssl = False
    username = "mailer"
    password = "secret"
    from_email = "assets@example.com"

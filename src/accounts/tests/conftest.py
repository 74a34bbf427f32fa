import pytest

from accounts import schema


@pytest.fixture
def valid_register_payload() -> schema.RegisterUserSchema:
    return schema.RegisterUserSchema(
        email="new.buyer@example.com",
        name="New Buyer",
        password1="a-Strong-passw0rd!",
        password2="a-Strong-passw0rd!",
    )

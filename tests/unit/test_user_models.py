"""Unit tests for user models and validation."""

import pytest
from pydantic import ValidationError

from userstore.errors import InvalidArgumentError
from userstore.models.user import User, UserFilter, UserUpdate, validate_user


def valid_user(**overrides: object) -> User:
    fields: dict[str, object] = {"name": "Bob Smith", "email": "bob.smith@test.com"}
    fields.update(overrides)
    return User(**fields)  # type: ignore[arg-type]


def test_new_user_defaults() -> None:
    user = User()

    assert user.id == 0
    assert user.name == ""
    assert user.password is None
    assert user.created_at is None
    assert user.updated_at is None


def test_password_hidden_from_repr() -> None:
    user = valid_user(password="hunter2")

    assert "hunter2" not in repr(user)
    assert "hunter2" not in repr(UserUpdate(password="hunter2"))


def test_validate_accepts_unsaved_user() -> None:
    validate_user(valid_user())
    validate_user(valid_user(password="password"))


@pytest.mark.parametrize(
    ("user", "message"),
    [
        (valid_user(name=""), "name is required"),
        (valid_user(email=""), "email is required"),
        (valid_user(password=""), "password cannot be empty if provided"),
    ],
)
def test_validate_rejects_invalid_fields(user: User, message: str) -> None:
    with pytest.raises(InvalidArgumentError, match=message):
        validate_user(user)


def test_validate_require_id() -> None:
    with pytest.raises(InvalidArgumentError, match="id is required"):
        validate_user(valid_user(), require_id=True)

    validate_user(valid_user(id=3), require_id=True)


def test_validate_require_password_profile() -> None:
    with pytest.raises(InvalidArgumentError, match="password is required"):
        validate_user(valid_user(), require_password=True)

    validate_user(valid_user(password="password"), require_password=True)


def test_validate_rejects_missing_name_after_patch() -> None:
    user = valid_user(id=1).model_copy(update={"name": None})

    with pytest.raises(InvalidArgumentError, match="name is required"):
        validate_user(user, require_id=True)


def test_filter_defaults_unbounded() -> None:
    filters = UserFilter()

    assert (filters.id, filters.name, filters.email) == (None, None, None)
    assert filters.limit == 0
    assert filters.offset == 0


def test_update_tracks_present_fields() -> None:
    assert UserUpdate().present_fields() == {}
    assert UserUpdate(name="X").present_fields() == {"name": "X"}
    assert UserUpdate(password=None).present_fields() == {"password": None}


def test_update_has_no_id() -> None:
    with pytest.raises(ValidationError):
        UserUpdate(id=3)  # type: ignore[call-arg]

from app.core.errors import (
    ConstraintViolation,
    Forbidden,
    InvalidTransition,
    MissingRequiredInput,
    NotFound,
    PersistenceError,
    ReviewConflict,
    ValidationFailed,
    field_errors_from,
)


def test_status_codes() -> None:
    assert ValidationFailed("x").status_code == 400
    assert MissingRequiredInput("x").status_code == 400
    assert InvalidTransition("x").status_code == 400
    assert Forbidden("x").status_code == 403
    assert NotFound("x").status_code == 404
    assert ConstraintViolation("x").status_code == 409
    assert ReviewConflict("x").status_code == 409
    assert PersistenceError("x").status_code == 500


def test_field_errors_default_to_empty() -> None:
    assert ValidationFailed("Bad input").field_errors == {}


def test_field_errors_from_pydantic_errors() -> None:
    errors = [
        {"loc": ("body", "surname"), "msg": "Field required"},
        {"loc": ("recipient_email",), "msg": "Value error, Recipient email is required"},
        {"loc": ("body", "surname"), "msg": "second message is dropped"},
        {"loc": (), "msg": "Whole payload is wrong"},
    ]
    assert field_errors_from(errors) == {
        "surname": "Field required",
        "recipient_email": "Recipient email is required",
        "__all__": "Whole payload is wrong",
    }

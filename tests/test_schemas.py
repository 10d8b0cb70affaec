"""RequestValidator: request-shape checks reported one field at a time."""
import uuid

import pytest
from marshmallow import Schema, ValidationError, fields

from models.schemas.auth import RequestValidator, first_error


@pytest.fixture
def validator():
    return RequestValidator()


class TestRequestValidator:

    def test_valid_register_payload(self, validator):
        data = validator.validate(
            "register", {"username": "alice", "password": "Abcd123!", "email": " a@x.com "}
        )
        assert data == {"username": "alice", "password": "Abcd123!", "email": "a@x.com"}

    def test_unknown_fields_are_dropped(self, validator):
        data = validator.validate("validate", {"access_token": "t", "extra": 1})
        assert data == {"access_token": "t"}

    @pytest.mark.parametrize(
        "name,payload,message",
        [
            ("register", {"password": "x", "email": "a@x.com"}, "Field is required: username"),
            ("register", {"username": "al", "password": "x", "email": "a@x.com"},
             "Field is below minimum length: username"),
            ("register", {"username": "a" * 65, "password": "x", "email": "a@x.com"},
             "Field exceeds maximum length: username"),
            ("register", {"username": "alice", "password": "x", "email": "nope"}, "Invalid format: email"),
            ("login", {"username": "alice"}, "Field is required: password"),
            ("refresh", {"access_token": "a"}, "Field is required: refresh_token"),
            ("refresh", {"access_token": "", "refresh_token": "r"}, "Field is below minimum length: access_token"),
            ("new_session", {"user_id": "not-a-uuid"}, "Invalid format: user_id"),
            ("revoke", {}, "Field is required: user_id"),
        ],
    )
    def test_first_error_is_reported(self, validator, name, payload, message):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name, payload)
        assert exc_info.value.messages == [message]

    def test_user_id_is_loaded_as_uuid(self, validator):
        user_id = uuid.uuid4()
        assert validator.validate("revoke", {"user_id": str(user_id)}) == {"user_id": user_id}

    def test_non_object_payload(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("login", ["alice"])
        assert exc_info.value.messages == ["Unknown validation error: _schema"]

    def test_validators_are_independent(self):
        class StrictLogin(Schema):
            username = fields.String(required=True, error_messages={"required": "Field is required"})
            otp = fields.String(required=True, error_messages={"required": "Field is required"})

        strict = RequestValidator({"login": StrictLogin()})
        with pytest.raises(ValidationError):
            strict.validate("login", {"username": "alice"})
        assert RequestValidator().validate("login", {"username": "alice", "password": "p"})


def test_first_error_with_unexpected_shape():
    assert first_error({"field": ["Something odd."]}) == "Unknown validation error: field"
    assert first_error([]) == "Unknown validation error"

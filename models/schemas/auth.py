"""
Request-shape schemas for the auth verbs.

Only structure is checked here; password strength is enforced by the
session lifecycle itself.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping

from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, validate

ERR_INVALID_FORMAT = "Invalid format"
ERR_FIELD_REQUIRED = "Field is required"
ERR_FIELD_EXCEEDS_MAX_LEN = "Field exceeds maximum length"
ERR_FIELD_BELOW_MIN_LEN = "Field is below minimum length"
ERR_UNKNOWN_VALIDATION = "Unknown validation error"

KNOWN_ERRORS = {
    ERR_INVALID_FORMAT,
    ERR_FIELD_REQUIRED,
    ERR_FIELD_EXCEEDS_MAX_LEN,
    ERR_FIELD_BELOW_MIN_LEN,
}

FIELD_ERRORS = {
    "required": ERR_FIELD_REQUIRED,
    "null": ERR_FIELD_REQUIRED,
    "invalid": ERR_INVALID_FORMAT,
    "invalid_uuid": ERR_INVALID_FORMAT,
}


class BoundedLength(validate.Length):
    """Length check that says which bound was crossed, even when both are set."""

    def __call__(self, value):
        length = len(value)
        if self.min is not None and length < self.min:
            raise ValidationError(ERR_FIELD_BELOW_MIN_LEN)
        if self.max is not None and length > self.max:
            raise ValidationError(ERR_FIELD_EXCEEDS_MAX_LEN)
        return value


def _string(min_len: int = 1, max_len: int | None = None) -> fields.String:
    return fields.String(
        required=True,
        validate=BoundedLength(min=min_len, max=max_len),
        error_messages=FIELD_ERRORS,
    )


class RequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class RegisterSchema(RequestSchema):
    username = _string(3, 64)
    password = _string(1, 256)
    email = fields.Email(required=True, validate=BoundedLength(max=255), error_messages=FIELD_ERRORS)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = dict(data, email=data["email"].strip())
        return data


class LoginSchema(RequestSchema):
    username = _string(1, 64)
    password = _string(1, 256)


class ValidateSchema(RequestSchema):
    access_token = _string()


class NewSessionSchema(RequestSchema):
    user_id = fields.UUID(required=True, error_messages=FIELD_ERRORS)


class RevokeSchema(RequestSchema):
    user_id = fields.UUID(required=True, error_messages=FIELD_ERRORS)


class RefreshSchema(RequestSchema):
    access_token = _string()
    refresh_token = _string()


class RequestValidator:
    """
    Owns one schema per verb. Built explicitly and handed to whoever needs it,
    so tests can construct their own with different schemas.
    """

    def __init__(self, schemas: Mapping[str, Schema] | None = None):
        self._schemas: Dict[str, Schema] = dict(schemas or {
            "register": RegisterSchema(),
            "login": LoginSchema(),
            "validate": ValidateSchema(),
            "new_session": NewSessionSchema(),
            "revoke": RevokeSchema(),
            "refresh": RefreshSchema(),
        })

    def validate(self, name: str, payload: Any) -> Dict[str, Any]:
        """Load payload with the named schema; ValidationError names only the first bad field."""
        schema = self._schemas[name]
        try:
            return schema.load(payload)
        except ValidationError as err:
            raise ValidationError(first_error(err.messages)) from err


def first_error(messages: Any) -> str:
    """Collapse marshmallow's error dict into "<reason>: <field>"."""
    if isinstance(messages, dict) and messages:
        field, errors = next(iter(messages.items()))
        reason = errors[0] if isinstance(errors, list) and errors else errors
        if reason not in KNOWN_ERRORS:
            reason = ERR_UNKNOWN_VALIDATION
        return f"{reason}: {field}"
    return ERR_UNKNOWN_VALIDATION


def error_message(err: ValidationError) -> str:
    """One "<reason>: <field>" line for a ValidationError from any schema."""
    messages = err.messages
    if isinstance(messages, list) and messages:
        return str(messages[0])
    return first_error(messages)

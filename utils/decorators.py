from __future__ import annotations
from functools import wraps
from flask import request, current_app
from marshmallow import ValidationError

from models.schemas.auth import error_message
from services.errors import InvalidArgument


def validated_body(schema_name: str):
    """
    Load the JSON body through the app's RequestValidator and pass the
    result to the view as ``data``. Shape errors become InvalidArgument.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            payload = request.get_json(silent=True)
            if payload is None:
                payload = {}
            validator = current_app.extensions["request_validator"]
            try:
                data = validator.validate(schema_name, payload)
            except ValidationError as err:
                raise InvalidArgument(error_message(err))
            return fn(*args, data=data, **kwargs)

        return wrapper

    return decorator

"""
Failures surfaced by the session lifecycle.

Messages are deliberately generic: they never say whether a user exists,
whether a password or a token was the problem, or whether a token expired
rather than failed its signature check. Details go to the local log only.
"""

ERR_UNKNOWN = "try it a little later or check the data you entered"
ERR_USER_EXISTS = "user already exists"
ERR_USER_NOT_FOUND = "user not found"
ERR_INVALID_CREDENTIALS = "invalid username or password"
ERR_NOT_AUTHORIZED = "not authorized"
ERR_SESSION_NOT_FOUND = "refresh token not found"
ERR_ROTATION_CONFLICT = "session was refreshed concurrently"


class SessionError(Exception):
    code = "INTERNAL_ERROR"
    status = 500
    default_message = ERR_UNKNOWN

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(SessionError):
    code = "VALIDATION_ERROR"
    status = 422
    default_message = "invalid request"


class PolicyViolation(SessionError):
    code = "POLICY_VIOLATION"
    status = 400
    default_message = "password does not meet the policy"


class AlreadyExists(SessionError):
    code = "ALREADY_EXISTS"
    status = 409
    default_message = ERR_USER_EXISTS


class NotFound(SessionError):
    code = "NOT_FOUND"
    status = 404
    default_message = ERR_USER_NOT_FOUND


class Unauthenticated(SessionError):
    code = "UNAUTHENTICATED"
    status = 401
    default_message = ERR_NOT_AUTHORIZED


class Conflict(SessionError):
    code = "CONFLICT"
    status = 409
    default_message = ERR_ROTATION_CONFLICT


class Internal(SessionError):
    pass

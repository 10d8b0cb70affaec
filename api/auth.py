"""
Session endpoints, mounted at /api/v1/auth:

    register   create a user (password policy enforced)
    login      password check, then a fresh token pair; replaces any live session
    validate   access token must verify and its user must still hold a session
    sessions   token pair for an existing user id, no password involved
    revoke     drop the user's session; a no-op when there is none
    refresh    rotate the refresh token; the old one stops working immediately

Bodies are checked by the app's RequestValidator before a view runs.
"""
from __future__ import annotations

from flask import Blueprint, jsonify, current_app

from services.sessions import SessionLifecycle
from utils.decorators import validated_body
from utils.tokens import TokenPair

bp = Blueprint("auth", __name__)


def _lifecycle() -> SessionLifecycle:
    return current_app.extensions["session_lifecycle"]


def _token_response(tokens: TokenPair, status: int):
    return jsonify(
        {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "token_type": "bearer",
            "expires_in": int(_lifecycle().tokens.access_ttl.total_seconds()),
        }
    ), status


@bp.post("/register")
@validated_body("register")
def register(data):
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            password: { type: string }
            email: { type: string }
          required: [username, password, email]
    responses:
      201:
        description: Created
      400:
        description: Password does not meet the policy
      409:
        description: Username already taken
      422:
        description: Validation error
    """
    user_id = _lifecycle().register(data["username"], data["password"], data["email"])
    return jsonify({"data": {"user_id": str(user_id)}}), 201


@bp.post("/login")
@validated_body("login")
def login(data):
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Unauthorized
      404:
        description: Unknown user
    """
    tokens = _lifecycle().login(data["username"], data["password"])
    return _token_response(tokens, 200)


@bp.post("/validate")
@validated_body("validate")
def validate(data):
    """
    Validate an access token against the live session of its user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             access_token: { type: string }
    responses:
      200:
        description: OK (returns user_id)
      401:
        description: Unauthorized
    """
    user_id = _lifecycle().validate(data["access_token"])
    return jsonify({"data": {"user_id": str(user_id)}}), 200


@bp.post("/sessions")
@validated_body("new_session")
def new_session(data):
    """
    Issue a token pair for an existing user (service-to-service).
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             user_id: { type: string, format: uuid }
           required: [user_id]
    responses:
      201:
        description: Created (returns tokens)
      404:
        description: Unknown user
    """
    tokens = _lifecycle().issue_for_identity(data["user_id"])
    return _token_response(tokens, 201)


@bp.post("/revoke")
@validated_body("revoke")
def revoke(data):
    """
    Revoke: delete the user's session. Succeeds when there is none.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             user_id: { type: string, format: uuid }
           required: [user_id]
    responses:
      204:
        description: ""
    """
    _lifecycle().revoke(data["user_id"])
    return ("", 204)


@bp.post("/refresh")
@validated_body("refresh")
def refresh(data):
    """
    Use the refresh token to obtain new access and refresh tokens (rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             access_token: { type: string }
             refresh_token: { type: string }
           required: [access_token, refresh_token]
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Unauthorized
      404:
        description: No session
      409:
        description: Refreshed concurrently
    """
    tokens = _lifecycle().refresh(data["access_token"], data["refresh_token"])
    return _token_response(tokens, 200)

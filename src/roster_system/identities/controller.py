from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import Container
from ..core.enums import Role
from ..common.validators import optional_int
from ..core.exceptions import AuthenticationError, ValidationError
from .boundary import issue_token, request_principal
from .model import identity_view


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register(app: Flask, container: Container) -> None:
    auth = container.auth_service

    @app.route("/api/auth/register", methods=["POST"], endpoint="auth_register")
    def register_identity():
        data = _json_body()
        identity = auth.register(
            email=data.get("email", ""),
            password=data.get("password", ""),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
        )
        return jsonify({"token": issue_token(identity), "user": identity_view(identity)}), 201

    @app.route("/api/auth/identities", methods=["POST"], endpoint="auth_create_member")
    def create_member_identity():
        """Admin creates a member login linked to a roster record."""

        principal = request_principal(auth)
        if principal is None:
            raise AuthenticationError("Not authenticated")
        container.guard.policy_for(principal).check_create()

        data = _json_body()
        identity = auth.register(
            email=data.get("email", ""),
            password=data.get("password", ""),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            role=Role.MEMBER,
            person_id=optional_int(data.get("person_id"), "person_id"),
        )
        return jsonify({"user": identity_view(identity)}), 201

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def login():
        data = _json_body()
        identity = auth.authenticate(data.get("email", ""), data.get("password", ""))
        return jsonify({"token": issue_token(identity), "user": identity_view(identity)})

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    def me():
        principal = request_principal(auth)
        if principal is None:
            raise AuthenticationError("Not authenticated")
        return jsonify({"user": identity_view(auth.current_identity(principal.identity_id))})

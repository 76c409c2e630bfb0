from __future__ import annotations

from typing import Optional

from flask import g
from flask_jwt_extended import create_access_token, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import ExpiredSignatureError, PyJWTError

from ..core.exceptions import AuthenticationError
from .model import IdentityRecord, Principal
from .service import AuthService, principal_for


def issue_token(identity: IdentityRecord) -> str:
    principal = principal_for(identity)
    return create_access_token(
        identity=str(principal.identity_id),
        additional_claims={
            "email": principal.email,
            "role": principal.role.value,
            "person_ref": principal.person_ref,
        },
    )


def current_principal(auth_service: AuthService) -> Optional[Principal]:
    """Verify the bearer token of the current request.

    Returns ``None`` when no token was sent; raises AuthenticationError for a
    bad, expired or orphaned token.
    """

    try:
        verify_jwt_in_request(optional=True)
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except (JWTExtendedException, PyJWTError):
        raise AuthenticationError("Invalid token")

    subject = get_jwt_identity()
    if subject is None:
        return None

    try:
        identity_id = int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token")

    return principal_for(auth_service.current_identity(identity_id))


def request_principal(auth_service: AuthService) -> Optional[Principal]:
    """Principal of the current request, resolved once per request."""

    if "principal" not in g:
        g.principal = current_principal(auth_service)
    return g.principal

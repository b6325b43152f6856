"""Scoped bearer tokens for the import admin API.

The operator account may run imports and clear what they created; the viewer
account can only list sessions, tracked ids and documents.
"""

import hmac
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tracked_import.config import settings
from tracked_import.exceptions import ForbiddenError, UnauthorizedError

READ_SCOPE = "imports:read"
RUN_SCOPE = "imports:run"
CLEAR_SCOPE = "imports:clear"

OPERATOR_SCOPES = (READ_SCOPE, RUN_SCOPE, CLEAR_SCOPE)
VIEWER_SCOPES = (READ_SCOPE,)

TOKEN_ISSUER = "tracked-import"

_bearer = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    subject: str
    scopes: tuple[str, ...]

    def require(self, scope: str) -> None:
        if scope not in self.scopes:
            raise ForbiddenError(f"'{self.subject}' lacks the {scope} scope")


def _matches(given: str, expected: str) -> bool:
    return bool(expected) and hmac.compare_digest(given.encode(), expected.encode())


def authenticate(username: str, password: str) -> Principal:
    """Map login credentials to the account's scopes."""
    if not settings.jwt_secret:
        raise UnauthorizedError("Authentication is not configured")
    accounts = [
        (settings.auth_username, settings.auth_password, OPERATOR_SCOPES),
        (settings.viewer_username, settings.viewer_password, VIEWER_SCOPES),
    ]
    for account, expected_password, scopes in accounts:
        if username == account and _matches(password, expected_password):
            return Principal(subject=username, scopes=scopes)
    raise UnauthorizedError("Invalid credentials")


def issue_token(principal: Principal) -> tuple[str, int]:
    expires_in = settings.jwt_expire_minutes * 60
    payload = {
        "iss": TOKEN_ISSUER,
        "sub": principal.subject,
        "scopes": list(principal.scopes),
        "exp": datetime.now(UTC) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256"), expires_in


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer),  # noqa: B008
) -> Principal:
    if not settings.jwt_secret:
        raise UnauthorizedError("Authentication is not configured")
    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=TOKEN_ISSUER,
            options={"require": ["exp", "sub", "iss"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired") from None
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token") from None
    return Principal(subject=claims["sub"], scopes=tuple(claims.get("scopes", ())))


def require_scope(scope: str):
    async def _check(principal: Principal = Depends(verify_token)) -> Principal:  # noqa: B008
        principal.require(scope)
        return principal

    return _check

# provisioning/authorization.py
import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from provisioning import config
from provisioning.entities import AccessToken, Profile
from provisioning.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger("provisioning.auth")


class RoleResolver(Protocol):
    def resolve_role(self, token: str) -> Optional[str]:
        """Return the role bound to the credential, or None when the credential is unknown or expired."""


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def parse_bearer(authorization_header: Optional[str]) -> str:
    if not authorization_header or not authorization_header.strip():
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization_header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Authorization header must be 'Bearer <token>'")
    return token


class SqlRoleResolver:
    """
    Looks the credential up server-side (access_tokens -> profiles) with the
    service session; any role claim carried by the request itself is ignored.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.Session = session_factory

    def resolve_role(self, token: str) -> Optional[str]:
        session = self.Session()
        try:
            row = (
                session.query(AccessToken, Profile.role)
                .join(Profile, Profile.user_id == AccessToken.user_id)
                .filter(AccessToken.token_hash == hash_token(token))
                .one_or_none()
            )
        finally:
            session.close()

        if row is None:
            return None
        access_token, role = row
        if access_token.revoked:
            return None
        if access_token.expires_at is not None:
            expires_at = access_token.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                return None
        return role


class AuthorizationGate:
    def __init__(self, resolver: RoleResolver, allowed_roles: Iterable[str] = config.ALLOWED_ROLES):
        self.resolver = resolver
        self.allowed_roles = frozenset(allowed_roles)

    def admit(self, authorization_header: Optional[str]) -> str:
        """
        Admit the caller or raise. Returns the resolved role.

        AuthenticationError: header missing/malformed, or credential unknown.
        AuthorizationError: role lookup failed, or role not in allowed_roles.
        """
        token = parse_bearer(authorization_header)

        try:
            role = self.resolver.resolve_role(token)
        except Exception as e:
            logger.warning("[auth] role lookup failed: %s", e)
            raise AuthorizationError("Unable to verify caller role") from e

        if role is None:
            logger.info("[auth] rejected: unknown or expired credential")
            raise AuthenticationError("Unauthorized")

        if role not in self.allowed_roles:
            logger.info("[auth] rejected: role=%s not in %s", role, sorted(self.allowed_roles))
            raise AuthorizationError("Admin access required")

        logger.info("[auth] admitted role=%s", role)
        return role

"""Bearer token verification: resolves the calling actor from a signed JWT."""

from __future__ import annotations

from dataclasses import dataclass

from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey

from writeflow_service.core.exceptions import AuthenticationError, ValidationError
from writeflow_service.models import Role, parse_enum


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class TokenValidator:
    """Verifies HS256 tokens issued by the external auth service."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._key = OctKey.import_key(secret)
        self._algorithm = algorithm
        self._claims_registry = jwt.JWTClaimsRegistry(
            sub={"essential": True},
            role={"essential": True},
        )

    def validate(self, token: str) -> Actor:
        """
        Verify signature, expiry and required claims.

        Raises:
            AuthenticationError: UNAUTHORIZED for any malformed, forged,
                expired or incomplete token.
        """
        if not token:
            raise AuthenticationError("UNAUTHORIZED", "Bearer token must not be empty")

        try:
            decoded = jwt.decode(token, self._key, algorithms=[self._algorithm])
            self._claims_registry.validate(decoded.claims)
        except (JoseError, ValueError) as exc:
            raise AuthenticationError("UNAUTHORIZED", "Invalid or expired token") from exc

        claims = decoded.claims
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("UNAUTHORIZED", "Token subject is missing")

        try:
            role = parse_enum(Role, claims.get("role"), "role")
        except ValidationError as exc:
            raise AuthenticationError("UNAUTHORIZED", "Token role is not recognised") from exc

        return Actor(user_id=subject, role=role)

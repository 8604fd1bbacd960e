"""
Bearer token verification.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from jose import jwk, jwt
from jose.constants import ALGORITHMS
from jose.exceptions import JOSEError

from shared.errors import (
    AccessLayerException,
    AuthenticationError,
    MalformedTokenError,
    MissingTokenError,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..jwks.client import KeyCache


GROUPS_CLAIM = "cognito:groups"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, decoded once from verified claims."""
    subject: str
    username: Optional[str] = None
    groups: FrozenSet[str] = field(default_factory=frozenset)

    def in_group(self, group: str) -> bool:
        return group in self.groups

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Principal":
        groups = claims.get(GROUPS_CLAIM) or []
        if isinstance(groups, str):
            groups = [groups]
        return cls(
            subject=claims["sub"],
            username=claims.get("username") or claims.get("cognito:username"),
            groups=frozenset(str(group) for group in groups),
        )


def expected_issuer(region: str, user_pool_id: Optional[str], override: Optional[str] = None) -> str:
    """Issuer every accepted token must carry."""
    if override:
        return override.rstrip("/")
    if not user_pool_id:
        raise ValueError("user_pool_id or an explicit issuer must be configured")
    return f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"


def extract_token(authorization: Optional[str]) -> str:
    """Split ``"<scheme> <value>"`` and return the value."""
    parts = (authorization or "").split(" ", 1)
    token = parts[1].strip() if len(parts) == 2 else ""
    if not token:
        raise MissingTokenError()
    if parts[0].lower() != "bearer":
        raise MalformedTokenError(details={"reason": "unsupported scheme", "scheme": parts[0]})
    return token


class TokenVerifier:
    """Validates signed tokens from one issuer against its published keys.

    Only ``RS256`` is accepted: the key is always built as an RSA public key
    for that algorithm and the decoder is given no other algorithm, so
    ``none`` and HMAC tokens fail regardless of their claims.
    """

    ALGORITHM = ALGORITHMS.RS256

    def __init__(self, key_cache: KeyCache, issuer: str, metrics: Optional[MetricsCollector] = None):
        self.key_cache = key_cache
        self.issuer = issuer
        self.metrics = metrics
        self.logger = get_logger("media.token_verifier")

    async def verify(self, authorization: Optional[str]) -> Principal:
        """Verify an ``Authorization`` header value and return the caller."""
        try:
            token = extract_token(authorization)
            claims = await self._verify_token(token)
            principal = Principal.from_claims(claims)
        except MissingTokenError:
            self._count("missing")
            raise
        except AccessLayerException as e:
            raise self._rejection(e.message, e.details) from None
        except (JOSEError, KeyError, TypeError, ValueError) as e:
            raise self._rejection(type(e).__name__, {"error": str(e)}) from None

        self._count("valid")
        self.logger.debug("Token verified", sub=principal.subject)
        return principal

    async def _verify_token(self, token: str) -> Dict[str, Any]:
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if not kid:
            raise MalformedTokenError(details={"reason": "token missing key id"})

        key_data = await self.key_cache.resolve_key(self.issuer, kid)
        if key_data.get("kty") != "RSA":
            raise MalformedTokenError(details={"reason": "signing key is not RSA", "kid": kid})
        public_key = jwk.construct(key_data, algorithm=self.ALGORITHM)

        return jwt.decode(
            token,
            public_key,
            algorithms=[self.ALGORITHM],
            issuer=self.issuer,
            options={
                "verify_aud": False,
                "require_exp": True,
                "require_iss": True,
                "require_sub": True,
            },
        )

    def _rejection(self, reason: str, details: Dict[str, Any]) -> AuthenticationError:
        # The client only ever sees the generic message
        self._count("invalid")
        self.logger.warning("Token verification failed", reason=reason, details=details)
        return AuthenticationError()

    def _count(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("token_validations_total", status=status)

"""
Authentication dependencies for the media routes.
"""

from fastapi import Depends, Request

from shared.errors import AuthorizationError
from shared.logging import get_logger, set_user_context
from ..validation.token_validator import Principal, TokenVerifier


class AuthMiddleware:
    """Turns the request's bearer token into a ``Principal``."""

    def __init__(self, verifier: TokenVerifier):
        self.verifier = verifier
        self.logger = get_logger("media.auth_middleware")

    async def authenticate_request(self, request: Request) -> Principal:
        """Verify the ``Authorization`` header; failures raise ``AuthenticationError``."""
        principal = await self.verifier.verify(request.headers.get("Authorization"))

        request.state.principal = principal
        set_user_context(principal.subject)
        self.logger.debug("Request authenticated", user_id=principal.subject)
        return principal

    def require_group(self, group: str):
        """Dependency that additionally requires membership of ``group``."""

        async def dependency(principal: Principal = Depends(self.authenticate_request)) -> Principal:
            if not principal.in_group(group):
                self.logger.warning("Group membership required", user_id=principal.subject, group=group)
                raise AuthorizationError("Admin privileges required", details={"group": group})
            return principal

        return dependency

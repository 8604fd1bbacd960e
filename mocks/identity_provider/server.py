"""
Mock identity provider publishing a key set and issuing RS256 access tokens.

Point the media service at it for local development:

    MEDIA_ISSUER=http://localhost:9229/local_pool python -m service_media.app.main
"""

from typing import Optional
from fastapi import FastAPI, HTTPException, Query
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import get_logger
from shared.test_helpers import MockTokenIssuer, MockUser


class MockIdentityProvider:
    """Mock user pool with a freshly generated signing key."""

    def __init__(self, port: int = 9229, pool_id: str = "local_pool"):
        self.port = port
        self.pool_id = pool_id
        self.logger = get_logger("mock.identity_provider")
        self.app = FastAPI(title="Mock Identity Provider", version="1.0.0")

        self.issuer = f"http://localhost:{port}/{pool_id}"
        self.signer = MockTokenIssuer(issuer=self.issuer, kid="local-key-1")

        # Password is the username for every mock user
        self.users = {
            "alice": MockUser(user_id="6f1c2a7e-0000-4000-8000-000000000001", username="alice"),
            "bob": MockUser(user_id="6f1c2a7e-0000-4000-8000-000000000002", username="bob"),
            "admin": MockUser(
                user_id="6f1c2a7e-0000-4000-8000-0000000000ad",
                username="admin",
                groups=["admin-users"]
            ),
        }

        self._setup_routes()

    def _check_pool(self, pool_id: str):
        if pool_id != self.pool_id:
            raise HTTPException(status_code=404, detail="User pool not found")

    def _setup_routes(self):
        """Set up mock identity provider routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-identity-provider",
                "issuer": self.issuer,
                "users": sorted(self.users),
            }

        @self.app.get("/{pool_id}/.well-known/jwks.json")
        async def jwks_endpoint(pool_id: str):
            """Key set discovery endpoint."""
            self._check_pool(pool_id)
            return self.signer.jwks

        @self.app.post("/{pool_id}/token")
        async def token_endpoint(
            pool_id: str,
            username: str = Query(...),
            password: str = Query(...),
            expires_in: Optional[int] = Query(3600)
        ):
            """Password grant returning a signed access token."""
            self._check_pool(pool_id)

            user = self.users.get(username)
            if user is None or password != username:
                raise HTTPException(status_code=401, detail="Incorrect username or password")

            self.logger.info("Issued token", username=username)
            return {
                "access_token": self.signer.issue(user, expires_in=expires_in),
                "expires_in": expires_in,
                "token_type": "Bearer",
            }


def create_app():
    """Create mock identity provider application."""
    server = MockIdentityProvider()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=9229)

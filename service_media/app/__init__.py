"""
Media Lifecycle service package.

Exposes the FastAPI application for uploading media objects, tracking
their processing state and handing out time-limited object links.

- app.main: Application entrypoint that wires routes and lifecycle.
- app.jwks: Per-issuer cache of the identity provider's signing keys.
- app.validation: Bearer token verification and the ``Principal`` type.
- app.domain: Request authentication and group guards.
- app.persistence: Durable record stores (in-memory, DynamoDB).
- app.cache: Status cache backends.
- app.media: Record models, lifecycle transitions and link issuing.

Module import must not perform network calls; every client is created
lazily or in the service constructor and injected where it is used.
"""

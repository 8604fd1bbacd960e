"""
Token validation package.

Verifies bearer tokens issued by the upstream identity provider and turns
the verified claim set into a fixed ``Principal`` (subject, username,
groups). Signature checks use keys from ``app.jwks``; every failure reaches
the client as the same generic 401 while the specific reason is logged.
"""

"""
Key set package.

Retrieves and caches the identity provider's JSON Web Key Sets used to
verify token signatures. Key sets are cached per issuer for the life of
the process; an unknown key id triggers at most one refetch per cooldown
window so a rotated signing key is picked up without a restart.
"""

from .client import KeyCache

__all__ = ["KeyCache"]

from .static_identity_provider import StaticIdentityProvider

__all__ = ["StaticIdentityProvider"]

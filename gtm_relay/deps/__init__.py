"""FastAPI dependencies for auth and security."""

from gtm_relay.deps.security import (
    SupabaseIdentityProvider,
    get_current_user,
    get_identity_provider,
    require_admin_token,
    require_callback_secret,
)

__all__ = [
    "SupabaseIdentityProvider",
    "get_current_user",
    "get_identity_provider",
    "require_admin_token",
    "require_callback_secret",
]

"""Security dependencies for FastAPI routes.

Provides:
- Admin token authentication (constant-time compare)
- End-user identity via Supabase Auth bearer tokens
- Shared-secret authentication for workflow callbacks
"""

import hmac
import os
from functools import lru_cache
from typing import Optional
from uuid import UUID

import httpx
import structlog
from fastapi import Depends, Header, HTTPException, Request, status

from gtm_relay.config import get_settings
from gtm_relay.core.errors import Unauthorized
from gtm_relay.jobs.models import AuthenticatedUser
from gtm_relay.services.webhooks.callbacks import verify_shared_secret

logger = structlog.get_logger(__name__)


# =============================================================================
# Admin Token Authentication
# =============================================================================


def require_admin_token(request: Request) -> bool:
    """
    Require valid admin token for destination and lead job management.

    Returns 401 for a missing token and 403 for an invalid one. There is no
    bypass: without ADMIN_TOKEN configured every admin call is refused.
    """
    admin_token = os.environ.get("ADMIN_TOKEN")

    if not admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN_TOKEN not configured. Contact system administrator.",
        )

    provided_token = request.headers.get("X-Admin-Token")
    if not provided_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin token required. Provide X-Admin-Token header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(provided_token.encode(), admin_token.encode()):
        logger.warning(
            "invalid_admin_token",
            path=request.url.path,
            client=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token",
        )

    return True


# =============================================================================
# Supabase session authentication
# =============================================================================


class SupabaseIdentityProvider:
    """Resolves a Supabase access token to the user it belongs to."""

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.supabase_url = supabase_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def get_user(self, token: str) -> AuthenticatedUser:
        """Validate ``token`` against Supabase Auth.

        Raises:
            Unauthorized: token rejected or Auth unreachable
        """
        headers = {"apikey": self._api_key, "Authorization": f"Bearer {token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{self.supabase_url}/auth/v1/user", headers=headers
                )
        except httpx.HTTPError as e:
            logger.warning("auth_validation_failed", error=str(e))
            raise Unauthorized("Authentication failed") from e

        if response.status_code != 200:
            logger.info("auth_token_rejected", status=response.status_code)
            raise Unauthorized("Invalid or expired token")

        data = response.json()
        try:
            return AuthenticatedUser(id=UUID(data["id"]), email=data.get("email"))
        except (KeyError, TypeError, ValueError) as e:
            raise Unauthorized("Invalid authorization") from e


@lru_cache
def get_identity_provider() -> SupabaseIdentityProvider:
    """Process-wide identity provider built from settings."""
    settings = get_settings()
    return SupabaseIdentityProvider(
        settings.supabase_url,
        settings.auth_api_key,
        timeout=settings.auth_timeout,
    )


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
) -> AuthenticatedUser:
    """Resolve the calling user from ``Authorization: Bearer <token>``."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Missing authorization header")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise Unauthorized("Missing authorization header")
    return await provider.get_user(token)


# =============================================================================
# Workflow callback authentication
# =============================================================================


def extract_callback_secret(
    api_key_header: Optional[str], authorization: Optional[str]
) -> Optional[str]:
    """Secret from X-N8N-API-Key, else from a Bearer Authorization header."""
    if api_key_header:
        return api_key_header
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


def require_callback_secret(
    x_n8n_api_key: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> bool:
    """Reject callbacks that do not carry the configured shared secret."""
    provided = extract_callback_secret(x_n8n_api_key, authorization)
    verify_shared_secret(provided, get_settings().n8n_api_key)
    return True

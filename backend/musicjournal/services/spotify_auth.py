"""
Music Journal Backend — Spotify Identity Resolver
===================================================

What:  Turns a Spotify access token into the caller's Spotify profile.
Why:   The OAuth handshake happens elsewhere; this backend only needs to know
       who owns the token. Spotify's GET /v1/me answers exactly that.
How:   httpx.AsyncClient call with tenacity retries on transport errors.
Who:   Used by the get_current_user dependency and by POST /auth/sync.

Response mapping:
    200          → SpotifyProfile (missing email or non-JSON body → IdentityProviderError)
    401 / 403    → AuthenticationError ("Invalid access token"), not retried
    other non-2xx→ IdentityProviderError, not retried
    network error→ retried with exponential backoff, then IdentityProviderError
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from musicjournal.config import settings
from musicjournal.exceptions import AuthenticationError, IdentityProviderError
from musicjournal.schemas.journal import SpotifyProfile

logger = logging.getLogger(__name__)


class SpotifyAuthService:
    """
    Resolves access tokens against the Spotify Web API.

    The httpx client is injectable so tests can hand in one backed by
    httpx.MockTransport. When none is given, one is created lazily and
    closed by aclose().
    """

    def __init__(
        self,
        base_url: str = settings.spotify_api_base_url,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.spotify_timeout_seconds)
        return self._client

    async def fetch_profile(self, access_token: str) -> SpotifyProfile:
        """
        Fetch the profile of the token's owner.

        Raises:
            AuthenticationError: Spotify rejected the token.
            IdentityProviderError: Spotify unreachable or answered unexpectedly.
        """
        if not access_token:
            raise AuthenticationError()

        try:
            response = await self._get_me_with_retry(access_token)
        except httpx.TransportError as e:
            logger.error("Spotify profile lookup failed after retries: %s", str(e))
            raise IdentityProviderError(
                context={"error_type": type(e).__name__, "attempts": settings.retry_max_attempts},
            ) from e

        if response.status_code in (401, 403):
            raise AuthenticationError(message="Invalid access token")
        if response.status_code != 200:
            logger.error("Spotify /me returned HTTP %d", response.status_code)
            raise IdentityProviderError(context={"status_code": response.status_code})

        try:
            return SpotifyProfile.model_validate(response.json())
        except (PydanticValidationError, ValueError) as e:
            # A token without the user-read-email scope gets a profile with no email
            logger.error("Spotify /me returned an unusable profile: %s", type(e).__name__)
            raise IdentityProviderError(
                message="Spotify returned an incomplete profile",
                context={"error_type": type(e).__name__},
            ) from e

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        # wait = min(max_wait, min_wait * 2^attempt) + random(0, 1)
        wait=wait_exponential(
            multiplier=settings.retry_min_wait,
            max=settings.retry_max_wait,
        )
        + wait_random(0, 1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _get_me_with_retry(self, access_token: str) -> httpx.Response:
        return await self.client.get(
            f"{self.base_url}/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

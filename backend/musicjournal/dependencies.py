"""
Music Journal Backend — FastAPI Dependencies
==============================================

What:  Dependency providers for route handlers.
Why:   The store and services are created once in the app lifespan and kept
       on app.state; handlers receive them through Depends() so tests can
       swap them with app.dependency_overrides.

Authentication:
    get_current_user() is the authenticated-user resolver. It reads the
    access token from the `accessToken` cookie (set by the OAuth callback)
    or an `Authorization: Bearer` header, asks Spotify who owns it, and
    loads the matching local user. Every journal route scopes by the
    user_id this returns.
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from musicjournal.exceptions import AuthenticationError, NotFoundError
from musicjournal.schemas.journal import UserResponse
from musicjournal.services.identity_service import IdentityService
from musicjournal.services.journal_store import JournalStore
from musicjournal.services.spotify_auth import SpotifyAuthService

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"


def get_store(request: Request) -> JournalStore:
    return request.app.state.store


def get_identity_service(request: Request) -> IdentityService:
    return request.app.state.identity_service


def get_spotify_auth(request: Request) -> SpotifyAuthService:
    return request.app.state.spotify_auth


def extract_access_token(request: Request) -> Optional[str]:
    """Cookie first, then a Bearer Authorization header."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def get_current_user(
    request: Request,
    auth: SpotifyAuthService = Depends(get_spotify_auth),
    store: JournalStore = Depends(get_store),
) -> UserResponse:
    """
    Resolve the request's access token to the local user.

    Raises:
        AuthenticationError: no token, or Spotify rejected it (401).
        NotFoundError: token is valid but the user never synced (404).
    """
    token = extract_access_token(request)
    if not token:
        raise AuthenticationError()

    profile = await auth.fetch_profile(token)
    user = await store.get_user_by_external_id(profile.id)
    if user is None:
        logger.warning("Authenticated Spotify user %s has no local account", profile.id)
        raise NotFoundError(resource="user", message="User not found")
    return user

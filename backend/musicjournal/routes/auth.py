"""
Music Journal Backend — Account Sync Route
============================================

What:  POST /auth/sync, called by the client once the OAuth flow has set
       the access token cookie.
Why:   First login must create the local users row before any journal
       route will accept the token (get_current_user answers 404 otherwise).
How:   Resolve the token with Spotify, then IdentityService.reconcile().
       Safe to call on every login; an existing user is left untouched.
"""

import logging

from fastapi import APIRouter, Depends, Request

from musicjournal.dependencies import (
    extract_access_token,
    get_identity_service,
    get_spotify_auth,
)
from musicjournal.exceptions import AuthenticationError
from musicjournal.schemas.journal import ErrorResponse, SpotifyProfile
from musicjournal.services.identity_service import IdentityService
from musicjournal.services.spotify_auth import SpotifyAuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/sync",
    response_model=SpotifyProfile,
    responses={
        401: {"description": "Missing or invalid access token", "model": ErrorResponse},
        409: {"description": "Spotify id already bound to another email", "model": ErrorResponse},
        502: {"description": "Spotify unreachable", "model": ErrorResponse},
    },
    summary="Create the local user for the authenticated Spotify account",
)
async def sync_user(
    request: Request,
    auth: SpotifyAuthService = Depends(get_spotify_auth),
    identity: IdentityService = Depends(get_identity_service),
) -> SpotifyProfile:
    token = extract_access_token(request)
    if not token:
        raise AuthenticationError()

    profile = await auth.fetch_profile(token)
    return await identity.reconcile(profile)

"""
Music Journal Backend — Track Route Handlers
==============================================

What:  Register a track before journaling about it, and look one up.
Why:   journal_entries.track_id is a foreign key; the client posts the
       currently playing track's metadata here first. Posting a known
       track again is harmless.
"""

import logging

from fastapi import APIRouter, Depends, status

from musicjournal.dependencies import get_current_user, get_store
from musicjournal.exceptions import NotFoundError
from musicjournal.schemas.journal import (
    ErrorResponse,
    MessageResponse,
    TrackCreate,
    TrackResponse,
    UserResponse,
)
from musicjournal.services.journal_store import JournalStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Tracks"])


@router.post(
    "/track",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
    summary="Add a track (no-op if it already exists)",
)
async def add_track(
    track: TrackCreate,
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> MessageResponse:
    await store.add_track(track)
    return MessageResponse(message="Track added")


@router.get(
    "/track/{track_id}",
    response_model=TrackResponse,
    responses={404: {"description": "Unknown track", "model": ErrorResponse}},
    summary="Get a track by Spotify id",
)
async def get_track(
    track_id: str,
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> TrackResponse:
    track = await store.get_track(track_id)
    if track is None:
        raise NotFoundError(resource="track", resource_id=track_id)
    return track

"""
Music Journal Backend — Journal Route Handlers
================================================

What:  CRUD endpoints for journal entries.
How:   Resolve the caller with get_current_user, delegate to JournalStore.
       The owner id always comes from the access token, never from the body
       or path, so one user cannot read or touch another's entries.

Endpoints:
    POST   /api/journal              create an entry (201)
    GET    /api/journal              all of the caller's entries
    GET    /api/journal/{track_id}   the caller's entries for one track
    PUT    /api/journal/{entry_id}   sparse update (404 if not the caller's)
    DELETE /api/journal/{entry_id}   delete (404 if not the caller's)
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status

from musicjournal.dependencies import get_current_user, get_store
from musicjournal.schemas.journal import (
    ErrorResponse,
    JournalEntryCreate,
    JournalEntryCreatedResponse,
    JournalEntryPatch,
    JournalEntryRequest,
    JournalEntryResponse,
    MessageResponse,
    UserResponse,
)
from musicjournal.services.journal_store import JournalStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Journal"])


@router.post(
    "/journal",
    status_code=status.HTTP_201_CREATED,
    response_model=JournalEntryCreatedResponse,
    responses={
        401: {"description": "Missing or invalid access token", "model": ErrorResponse},
        409: {"description": "Unknown track or duplicate entry", "model": ErrorResponse},
    },
    summary="Add a journal entry for a track",
)
async def add_journal_entry(
    body: JournalEntryRequest,
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> JournalEntryCreatedResponse:
    """
    Create an entry owned by the authenticated user.

    The entry id is a fresh uuid4; created_at and updated_at are both
    stamped with the current UTC time. The track must already exist
    (POST /api/track first), otherwise the FK check answers 409.
    """
    entry_id = str(uuid.uuid4())
    await store.add_journal_entry(
        JournalEntryCreate(
            entry_id=entry_id,
            user_id=user.user_id,
            track_id=body.track_id,
            journal_cover=body.journal_cover,
            entry_title=body.entry_title,
            entry_text=body.entry_text,
            image_url=body.image_url,
            created_at=datetime.now(timezone.utc),
        )
    )
    return JournalEntryCreatedResponse(entry_id=entry_id)


@router.get(
    "/journal",
    response_model=List[JournalEntryResponse],
    summary="List all of the caller's journal entries",
)
async def list_journal_entries(
    response: Response,
    newest_first: bool = Query(default=False, description="Most recently added entries first"),
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> List[JournalEntryResponse]:
    entries = await store.get_all_journal_entries(user.user_id, newest_first=newest_first)
    response.headers["X-Total-Count"] = str(len(entries))
    # Decrypted personal content must not sit in shared caches
    response.headers["Cache-Control"] = "private, no-store"
    return entries


@router.get(
    "/journal/{track_id}",
    response_model=List[JournalEntryResponse],
    summary="List the caller's journal entries for a track",
)
async def get_journal_entries_for_track(
    track_id: str,
    response: Response,
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> List[JournalEntryResponse]:
    entries = await store.get_journal_entries_by_track(track_id, user.user_id)
    response.headers["Cache-Control"] = "private, no-store"
    return entries


@router.put(
    "/journal/{entry_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "No fields to update", "model": ErrorResponse},
        404: {"description": "No entry with that ID for this user", "model": ErrorResponse},
    },
    summary="Update some fields of a journal entry",
)
async def update_journal_entry(
    entry_id: str,
    patch: JournalEntryPatch,
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> MessageResponse:
    """
    Sparse update: only the fields present in the body are written.

    Send `"image_url": null` to remove an image; omit it to keep it.
    """
    await store.update_journal_entry(
        entry_id,
        user.user_id,
        patch,
        updated_at=datetime.now(timezone.utc),
    )
    return MessageResponse(message="Journal entry updated")


@router.delete(
    "/journal/{entry_id}",
    response_model=MessageResponse,
    responses={
        404: {"description": "No entry with that ID for this user", "model": ErrorResponse},
    },
    summary="Delete a journal entry",
)
async def delete_journal_entry(
    entry_id: str,
    user: UserResponse = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
) -> MessageResponse:
    await store.delete_journal_entry(entry_id, user.user_id)
    return MessageResponse(message="Journal entry deleted")

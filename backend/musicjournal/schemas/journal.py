"""
Music Journal Backend — Pydantic Schemas
==========================================

What:  Pydantic models for store inputs/outputs and the HTTP API contract.
Why:   The store takes and returns these instead of ORM rows, so plaintext
       (decrypted) data never lives on an ORM object that could be flushed
       back to the database by accident.
How:   *Create models go into the store, *Response models come out of it.
       JournalEntryPatch records which fields the caller actually sent.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

#: Fields of a journal entry that can be patched, in statement order.
PATCHABLE_FIELDS = ("journal_cover", "entry_title", "entry_text", "image_url")

#: Patchable fields that map to NOT NULL columns.
REQUIRED_PATCH_FIELDS = ("entry_title", "entry_text")


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    user_id: str = Field(min_length=1, description="Spotify user id")
    username: str = Field(description="Display name")
    email: str = Field(min_length=1, description="Account email (unique)")


class UserResponse(BaseModel):
    user_id: str
    username: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class SpotifyProfile(BaseModel):
    """
    What:  The subset of Spotify's GET /v1/me payload the backend relies on.
    Why extra="allow": reconciliation hands the profile back unchanged,
           including fields this service does not read (country, images, ...).
    """
    id: str = Field(min_length=1)
    email: str = Field(min_length=1)
    display_name: Optional[str] = None

    model_config = ConfigDict(extra="allow")


# ══════════════════════════════════════════════════════════════════════════
# Tracks
# ══════════════════════════════════════════════════════════════════════════


class TrackCreate(BaseModel):
    spotify_track_id: str = Field(min_length=1)
    track_title: str
    artist: str
    album: str


class TrackResponse(BaseModel):
    spotify_track_id: str
    track_title: str
    artist: str
    album: str

    model_config = ConfigDict(from_attributes=True)


# ══════════════════════════════════════════════════════════════════════════
# Journal Entries
# ══════════════════════════════════════════════════════════════════════════


class JournalEntryCreate(BaseModel):
    """
    What:  A new entry as handed to JournalStore.add_journal_entry().
    Note:  created_at is applied to both created_at and updated_at.
           When omitted the store stamps the current UTC time.
    """
    entry_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    track_id: str = Field(min_length=1)
    journal_cover: Optional[str] = None
    entry_title: str
    entry_text: str
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class JournalEntryPatch(BaseModel):
    """
    What:  A sparse update of an entry's encrypted fields.

    Presence, not value, decides what gets written: a field left out of
    the payload is untouched; a field sent as null clears the column.
    Only journal_cover and image_url may be cleared.

    Examples:
        {"image_url": "https://..."}           → only image_url changes
        {"image_url": null}                    → image removed
        {"entry_text": "hi", "entry_title": "x"} → two fields change
    """
    journal_cover: Optional[str] = None
    entry_title: Optional[str] = None
    entry_text: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "JournalEntryPatch":
        for name in REQUIRED_PATCH_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def present_fields(self) -> Dict[str, Optional[str]]:
        """Field name → value for every field the caller sent, in PATCHABLE_FIELDS order."""
        return {
            name: getattr(self, name)
            for name in PATCHABLE_FIELDS
            if name in self.model_fields_set
        }


class JournalEntryResponse(BaseModel):
    """A journal entry with every encrypted field already decrypted."""
    entry_id: str
    user_id: str
    track_id: str
    journal_cover: Optional[str] = None
    entry_title: str
    entry_text: str
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ══════════════════════════════════════════════════════════════════════════
# Request Bodies
# ══════════════════════════════════════════════════════════════════════════


class JournalEntryRequest(BaseModel):
    """
    What:  Body of POST /api/journal.
    Why no user_id: the owner is always the authenticated user; a user id
           in the body would let one user write into another's journal.
    """
    track_id: str = Field(min_length=1)
    journal_cover: Optional[str] = None
    entry_title: str
    entry_text: str
    image_url: Optional[str] = None


class JournalEntryCreatedResponse(BaseModel):
    message: str = "Journal entry added"
    entry_id: str


class MessageResponse(BaseModel):
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Error / Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "No journal entry found with that ID",
            "request_id": "1a2b3c4d"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float

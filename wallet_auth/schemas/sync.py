"""Bodies for the favorites/history sync endpoint."""

from __future__ import annotations

from typing import Optional

from .auth import CamelModel


class FavoriteItemInput(CamelModel):
    url: Optional[str] = None
    name: Optional[str] = None
    icon_url: Optional[str] = None
    updated_at: Optional[int] = None
    deleted_at: Optional[int] = None


class HistoryItemInput(CamelModel):
    url: Optional[str] = None
    title: Optional[str] = None
    icon_url: Optional[str] = None
    visited_at: Optional[int] = None
    updated_at: Optional[int] = None
    deleted_at: Optional[int] = None


class SyncPayloadInput(CamelModel):
    """Client-side lists to merge. Omitted lists are treated as empty."""

    favorites: Optional[list[FavoriteItemInput]] = None
    favorites_updated_at: Optional[int] = None
    history: Optional[list[HistoryItemInput]] = None
    history_updated_at: Optional[int] = None


class FavoriteItemView(CamelModel):
    url: str
    name: Optional[str] = None
    icon_url: Optional[str] = None
    updated_at: int
    deleted_at: Optional[int] = None


class HistoryItemView(CamelModel):
    url: str
    title: Optional[str] = None
    icon_url: Optional[str] = None
    visited_at: int
    updated_at: int
    deleted_at: Optional[int] = None


class SyncFavoritesView(CamelModel):
    items: list[FavoriteItemView]
    updated_at: int


class SyncHistoryView(CamelModel):
    items: list[HistoryItemView]
    updated_at: int


class SyncPayloadResponse(CamelModel):
    favorites: SyncFavoritesView
    history: SyncHistoryView


__all__ = [
    "FavoriteItemInput",
    "FavoriteItemView",
    "HistoryItemInput",
    "HistoryItemView",
    "SyncFavoritesView",
    "SyncHistoryView",
    "SyncPayloadInput",
    "SyncPayloadResponse",
]

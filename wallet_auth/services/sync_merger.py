"""Last-write-wins reconciliation of synced favorites and history."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from wallet_auth.models.records import (
    FavoriteItem,
    HistoryItem,
    SyncFavorites,
    SyncHistory,
    now_millis,
)
from wallet_auth.utils.auth import blank_to_none, is_blank

ItemT = TypeVar("ItemT", FavoriteItem, HistoryItem)

DEFAULT_MAX_FAVORITES = 500
DEFAULT_MAX_HISTORY = 1000


def url_key(url: str) -> str:
    return url.strip().lower()


class ProfileSyncMerger:
    """Merges client lists into stored lists keyed by normalized URL.

    Newer ``updated_at`` wins and ties go to the incoming item. Tombstones
    (``deleted_at``) are merged like any other field.
    """

    def __init__(
        self,
        max_favorites: int = DEFAULT_MAX_FAVORITES,
        max_history: int = DEFAULT_MAX_HISTORY,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._max_favorites = max(0, max_favorites)
        self._max_history = max(0, max_history)
        self._clock = clock

    def normalize_favorite(self, item: Any) -> Optional[FavoriteItem]:
        if item is None or is_blank(item.url):
            return None
        updated_at = item.updated_at if item.updated_at and item.updated_at > 0 else self._clock()
        return FavoriteItem(
            url=item.url.strip(),
            name=blank_to_none(item.name),
            icon_url=blank_to_none(item.icon_url),
            updated_at=updated_at,
            deleted_at=item.deleted_at,
        )

    def normalize_history(self, item: Any) -> Optional[HistoryItem]:
        if item is None or is_blank(item.url):
            return None
        updated_at = item.updated_at if item.updated_at and item.updated_at > 0 else self._clock()
        visited_at = item.visited_at if item.visited_at and item.visited_at > 0 else updated_at
        return HistoryItem(
            url=item.url.strip(),
            title=blank_to_none(item.title),
            icon_url=blank_to_none(item.icon_url),
            visited_at=visited_at,
            updated_at=updated_at,
            deleted_at=item.deleted_at,
        )

    def merge_favorites(
        self,
        current: SyncFavorites,
        incoming: Optional[Sequence[Any]],
        incoming_updated_at: Optional[int] = None,
    ) -> SyncFavorites:
        items, watermark = self._merge(
            current.items,
            incoming or (),
            current.updated_at,
            incoming_updated_at,
            self.normalize_favorite,
            self._max_favorites,
        )
        return SyncFavorites(items=items, updated_at=watermark)

    def merge_history(
        self,
        current: SyncHistory,
        incoming: Optional[Sequence[Any]],
        incoming_updated_at: Optional[int] = None,
    ) -> SyncHistory:
        items, watermark = self._merge(
            current.items,
            incoming or (),
            current.updated_at,
            incoming_updated_at,
            self.normalize_history,
            self._max_history,
        )
        return SyncHistory(items=items, updated_at=watermark)

    @staticmethod
    def _merge(
        current: Iterable[Any],
        incoming: Iterable[Any],
        current_watermark: int,
        incoming_watermark: Optional[int],
        normalize: Callable[[Any], Optional[ItemT]],
        cap: int,
    ) -> tuple[tuple[ItemT, ...], int]:
        merged: dict[str, ItemT] = {}
        watermark = current_watermark

        for raw in current:
            item = normalize(raw)
            if item is None:
                continue
            merged[url_key(item.url)] = item
            watermark = max(watermark, item.updated_at)

        for raw in incoming:
            item = normalize(raw)
            if item is None:
                continue
            key = url_key(item.url)
            existing = merged.get(key)
            if existing is None or item.updated_at >= existing.updated_at:
                merged[key] = item
            watermark = max(watermark, item.updated_at)

        if incoming_watermark is not None:
            watermark = max(watermark, incoming_watermark)

        # sorted() is stable, so equal timestamps keep first-seen order.
        ordered = sorted(merged.values(), key=lambda entry: entry.updated_at, reverse=True)
        return tuple(ordered[:cap]), watermark


__all__ = ["ProfileSyncMerger", "url_key"]

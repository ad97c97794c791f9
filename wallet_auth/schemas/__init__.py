"""Public schema exports."""

from .auth import (
    AuthCodeResponse,
    BindRequest,
    ExchangeRequest,
    ExchangeResponse,
    MeResponse,
    ProviderBindingView,
    RefreshRequest,
    RefreshResponse,
    TelegramLoginRequest,
    UnbindRequest,
    XStartResponse,
)
from .sync import (
    FavoriteItemInput,
    FavoriteItemView,
    HistoryItemInput,
    HistoryItemView,
    SyncFavoritesView,
    SyncHistoryView,
    SyncPayloadInput,
    SyncPayloadResponse,
)

__all__ = [
    "AuthCodeResponse",
    "BindRequest",
    "ExchangeRequest",
    "ExchangeResponse",
    "FavoriteItemInput",
    "FavoriteItemView",
    "HistoryItemInput",
    "HistoryItemView",
    "MeResponse",
    "ProviderBindingView",
    "RefreshRequest",
    "RefreshResponse",
    "SyncFavoritesView",
    "SyncHistoryView",
    "SyncPayloadInput",
    "SyncPayloadResponse",
    "TelegramLoginRequest",
    "UnbindRequest",
    "XStartResponse",
]

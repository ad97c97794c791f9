"""Service layer exports."""

from .auth_orchestrator import AuthOrchestrator, XCallbackResult
from .identity_providers import IdentityProvider, XAuthorizationProof, XIdentityProvider
from .identity_store import IdentityStore
from .risk_gate import RiskGate
from .sync_merger import ProfileSyncMerger
from .telegram_verifier import TelegramVerifier
from .token_service import AccessTokenClaims, TokenConfigurationError, TokenService

__all__ = [
    "AccessTokenClaims",
    "AuthOrchestrator",
    "IdentityProvider",
    "IdentityStore",
    "ProfileSyncMerger",
    "RiskGate",
    "TelegramVerifier",
    "TokenConfigurationError",
    "TokenService",
    "XAuthorizationProof",
    "XCallbackResult",
    "XIdentityProvider",
]

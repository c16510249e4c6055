"""Services layer - business logic separated from Discord API."""
from .admin_service import AdminService
from .oracle import OracleUnavailable, RelevanceOracleClient, parse_scores, pick_best

__all__ = [
    "AdminService",
    "OracleUnavailable",
    "RelevanceOracleClient",
    "parse_scores",
    "pick_best",
]

"""FastAPI dependencies: authentication, acting user and services."""

from fastapi import Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.logging import get_logger
from ..config.settings import get_settings
from ..services.catalog import CatalogService
from ..services.monitor import (
    AlertHistoryService,
    MonitorRuleService,
    RuleEvaluationEngine,
)
from ..services.notification import build_default_dispatcher
from ..services.watchlist import WatchlistService

logger = get_logger(__name__)

MAX_USER_ID_LENGTH = 64

# Security scheme for Bearer token authentication
security = HTTPBearer()


def verify_auth_token(
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> str:
    """
    Verify the shared API token.

    Raises:
        HTTPException: If the token is missing, wrong or not configured
    """
    expected_token = get_settings().endpoint_auth_token
    if not expected_token:
        logger.error("Endpoint auth token not configured")
        raise HTTPException(status_code=500, detail="ENDPOINT_AUTH_TOKEN not configured")

    if credentials.credentials != expected_token:
        logger.warning(
            "Invalid authentication attempt",
            provided_token_length=len(credentials.credentials),
        )
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    return credentials.credentials


def get_current_user_id(x_user_id: str = Header(None, alias="X-User-Id")) -> str:
    """
    The acting user, as asserted by the authenticating gateway.

    Raises:
        HTTPException: If the header is missing or malformed
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(status_code=400, detail="X-User-Id header too long")
    return user_id


def get_catalog_service() -> CatalogService:
    return CatalogService()


def get_watchlist_service() -> WatchlistService:
    return WatchlistService()


def get_rule_service() -> MonitorRuleService:
    return MonitorRuleService()


def get_alert_history_service() -> AlertHistoryService:
    return AlertHistoryService()


def get_evaluation_engine() -> RuleEvaluationEngine:
    return RuleEvaluationEngine(dispatcher=build_default_dispatcher())

"""FastAPI dependencies for the admin API.

Components are built once by create_app() and kept on app.state; endpoints
receive them through these dependencies so tests can wire in their own.

When ADMIN_API_TOKEN is configured every admin endpoint requires a matching
X-Admin-Token header. Health stays open so supervisors can probe it.
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from .aliases.store import AliasStore
from .config import Settings
from .security.ports import AbuseMitigationPort

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_alias_store(request: Request) -> AliasStore:
    return request.app.state.alias_store


def get_mitigation(request: Request) -> AbuseMitigationPort:
    return request.app.state.mitigation


def require_admin_token(
    settings: Settings = Depends(get_app_settings),
    x_admin_token: Optional[str] = Header(None),
) -> None:
    """Reject the request unless it carries the configured admin token.

    Raises:
        HTTPException 401: If a token is configured and the header does not
            match it
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        return

    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        logger.warning("Rejected admin API request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token",
        )


def require_mitigation(
    mitigation: AbuseMitigationPort = Depends(get_mitigation),
) -> AbuseMitigationPort:
    """The mitigation engine, for endpoints that need it operational.

    Raises:
        HTTPException 503: If the security system is unavailable
    """
    if not mitigation.available:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Security system unavailable",
        )
    return mitigation

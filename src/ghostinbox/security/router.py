"""Security administration endpoints.

Read-mostly view over the IP ledger plus manual ban, unban and the expired
ban sweep. All endpoints answer 503 while the security system is
unavailable.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import require_admin_token, require_mitigation
from .policy import BanTier
from .ports import AbuseMitigationPort
from .schemas import ActionResponse, BanRequest, IPRequest, SecurityStatsResponse

logger = logging.getLogger(__name__)

MANUAL_BAN_REASON = "Manual ban"

router = APIRouter(
    prefix="/security",
    tags=["Security"],
    dependencies=[Depends(require_admin_token)],
)


@router.get(
    "/stats",
    response_model=SecurityStatsResponse,
    summary="Security overview",
    description="Ban counts, top violators, recent events, active bans and recently seen IPs",
)
def get_stats(
    mitigation: AbuseMitigationPort = Depends(require_mitigation),
) -> SecurityStatsResponse:
    stats = mitigation.get_security_stats()
    return SecurityStatsResponse(
        total_banned_ips=stats["total_banned_ips"],
        active_bans=stats["active_bans"],
        recent_events=stats["recent_events"],
        top_violators=stats["top_violators"],
        events=mitigation.list_recent_events(limit=50),
        banned_ips=mitigation.list_active_bans(),
        recent_ips=mitigation.list_recent_ips(),
    )


@router.post("/cleanup", response_model=ActionResponse, summary="Remove expired bans")
def cleanup_expired_bans(
    mitigation: AbuseMitigationPort = Depends(require_mitigation),
) -> ActionResponse:
    removed = mitigation.cleanup_expired_bans()
    return ActionResponse(success=True, message=f"Removed {removed} expired bans")


@router.post("/ban", response_model=ActionResponse, summary="Manually ban an IP")
def ban_ip(
    payload: BanRequest,
    mitigation: AbuseMitigationPort = Depends(require_mitigation),
) -> ActionResponse:
    """Ban an IP at the medium tier.

    Raises:
        HTTPException 400: If the IP is whitelisted
    """
    reason = (payload.reason or "").strip() or MANUAL_BAN_REASON
    if not mitigation.ban_ip(payload.ip, reason, BanTier.MEDIUM):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to ban IP (may be whitelisted)",
        )
    logger.info(f"Manual ban issued for {payload.ip}", extra={"ip": payload.ip})
    return ActionResponse(success=True, message=f"IP {payload.ip} has been banned")


@router.post("/unban", response_model=ActionResponse, summary="Lift a ban")
def unban_ip(
    payload: IPRequest,
    mitigation: AbuseMitigationPort = Depends(require_mitigation),
) -> ActionResponse:
    mitigation.unban_ip(payload.ip)
    return ActionResponse(success=True, message=f"IP {payload.ip} has been unbanned")

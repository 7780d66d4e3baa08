"""Pydantic schemas for security administration endpoints."""

import ipaddress
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SecurityEventResponse(BaseModel):
    id: int
    timestamp: int = Field(..., description="Unix seconds")
    ip: Optional[str] = None
    event_type: str
    details: Optional[str] = None
    action_taken: Optional[str] = None


class BanResponse(BaseModel):
    ip: str
    banned_at: int = Field(..., description="Unix seconds")
    expires_at: Optional[int] = Field(None, description="Unix seconds; null when permanent")
    reason: Optional[str] = None
    duration: int = Field(..., description="Ban duration in seconds")
    remaining: int = Field(0, description="Seconds left on a temporary ban; 0 when permanent")
    is_permanent: bool


class TrackedIPResponse(BaseModel):
    ip: str
    email_count_day: int
    connection_count_hour: int
    violation_count: int
    ban_count: int
    first_seen: int
    last_seen: int


class ViolatorResponse(BaseModel):
    ip: str
    violation_count: int
    ban_count: int
    last_seen: int


class SecurityStatsResponse(BaseModel):
    """Aggregate security state for the dashboard."""
    total_banned_ips: int
    active_bans: int
    recent_events: int = Field(..., description="Security events in the last hour")
    top_violators: List[ViolatorResponse]
    events: List[SecurityEventResponse] = Field(..., description="Most recent events")
    banned_ips: List[BanResponse] = Field(..., description="Currently active bans")
    recent_ips: List[TrackedIPResponse] = Field(..., description="IPs seen in the last day")


class IPRequest(BaseModel):
    ip: str = Field(..., description="IPv4 or IPv6 address")

    @field_validator("ip")
    @classmethod
    def validate_ip(cls, value: str) -> str:
        value = value.strip()
        try:
            ipaddress.ip_address(value)
        except ValueError:
            raise ValueError(f"Invalid IP address: {value}")
        return value


class BanRequest(IPRequest):
    reason: Optional[str] = Field(None, description="Defaults to 'Manual ban'")


class ActionResponse(BaseModel):
    success: bool
    message: str

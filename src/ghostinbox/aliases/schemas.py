"""Pydantic schemas for alias administration endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AliasCreate(BaseModel):
    """Request body for creating an alias. Anything from `@` on is dropped."""
    alias: str = Field(..., description="Alias local part (or full address)")
    note: str = Field("", description="Free-text operator note")

    class Config:
        json_schema_extra = {
            "example": {"alias": "shop", "note": "Online shopping"}
        }


class AliasNoteUpdate(BaseModel):
    note: str = Field("", description="Replacement note")


class AliasResponse(BaseModel):
    """One alias as shown to operators."""
    alias: str = Field(..., description="Alias local part")
    enabled: bool = Field(..., description="False when the alias is blocked")
    notes: Optional[str] = Field(None, description="Operator note")
    last_sender: Optional[str] = Field(None, description="Most recent external correspondent")
    created_at: Optional[datetime] = Field(None, description="Creation time")
    last_used_at: Optional[datetime] = Field(None, description="Last inbound message time")

    class Config:
        json_schema_extra = {
            "example": {
                "alias": "shop",
                "enabled": True,
                "notes": "Online shopping",
                "last_sender": "orders@store.example",
                "created_at": "2025-01-04T12:00:00Z",
                "last_used_at": "2025-01-05T08:30:00Z",
            }
        }


class AliasListResponse(BaseModel):
    aliases: List[AliasResponse] = Field(..., description="All aliases, newest first")
    total: int = Field(..., description="Number of aliases")


class OperationResult(BaseModel):
    success: bool
    message: Optional[str] = None


class WildcardPolicy(BaseModel):
    enabled: bool = Field(..., description="Auto-create unseen aliases on first contact")

"""Alias administration endpoints.

CRUD over the alias table plus the global wildcard toggle. These are the
read/write operations the dashboard consumes; the relay itself never goes
through HTTP.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_alias_store, require_admin_token
from .schemas import (
    AliasCreate,
    AliasListResponse,
    AliasNoteUpdate,
    AliasResponse,
    OperationResult,
    WildcardPolicy,
)
from .store import AliasStore, normalize_alias_name

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/aliases",
    tags=["Aliases"],
    dependencies=[Depends(require_admin_token)],
)
wildcard_router = APIRouter(
    prefix="/wildcard",
    tags=["Aliases"],
    dependencies=[Depends(require_admin_token)],
)


def _not_found(alias: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Alias {alias} not found",
    )


@router.get("", response_model=AliasListResponse, summary="List all aliases")
def list_aliases(store: AliasStore = Depends(get_alias_store)) -> AliasListResponse:
    aliases = [AliasResponse(**alias.to_dict()) for alias in store.list_all()]
    return AliasListResponse(aliases=aliases, total=len(aliases))


@router.post(
    "",
    response_model=OperationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create an alias",
)
def create_alias(
    payload: AliasCreate,
    store: AliasStore = Depends(get_alias_store),
) -> OperationResult:
    """Create an alias explicitly.

    Raises:
        HTTPException 400: If the alias is empty or already exists
    """
    name = normalize_alias_name(payload.alias)
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing alias")

    if not store.create(name, notes=payload.note.strip()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Alias already exists")

    return OperationResult(success=True, message=f"Alias {name} created")


@router.patch("/{alias}", response_model=OperationResult, summary="Update alias note")
def update_alias_note(
    alias: str,
    payload: AliasNoteUpdate,
    store: AliasStore = Depends(get_alias_store),
) -> OperationResult:
    if not store.update_notes(alias, payload.note):
        raise _not_found(alias)
    return OperationResult(success=True)


@router.delete("/{alias}", response_model=OperationResult, summary="Delete an alias")
def delete_alias(alias: str, store: AliasStore = Depends(get_alias_store)) -> OperationResult:
    if not store.delete(alias):
        raise _not_found(alias)
    return OperationResult(success=True)


@router.post("/{alias}/block", response_model=OperationResult, summary="Block an alias")
def block_alias(alias: str, store: AliasStore = Depends(get_alias_store)) -> OperationResult:
    if not store.block(alias):
        raise _not_found(alias)
    return OperationResult(success=True, message=f"Alias {normalize_alias_name(alias)} blocked")


@router.post("/{alias}/unblock", response_model=OperationResult, summary="Unblock an alias")
def unblock_alias(alias: str, store: AliasStore = Depends(get_alias_store)) -> OperationResult:
    if not store.unblock(alias):
        raise _not_found(alias)
    return OperationResult(success=True, message=f"Alias {normalize_alias_name(alias)} unblocked")


@wildcard_router.get("", response_model=WildcardPolicy, summary="Get wildcard policy")
def get_wildcard(store: AliasStore = Depends(get_alias_store)) -> WildcardPolicy:
    return WildcardPolicy(enabled=store.get_wildcard_policy())


@wildcard_router.put("", response_model=WildcardPolicy, summary="Set wildcard policy")
def set_wildcard(
    payload: WildcardPolicy,
    store: AliasStore = Depends(get_alias_store),
) -> WildcardPolicy:
    store.set_wildcard_policy(payload.enabled)
    return WildcardPolicy(enabled=payload.enabled)


@wildcard_router.post("/toggle", response_model=WildcardPolicy, summary="Toggle wildcard policy")
def toggle_wildcard(store: AliasStore = Depends(get_alias_store)) -> WildcardPolicy:
    return WildcardPolicy(enabled=store.toggle_wildcard_policy())

"""Health check endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..aliases.store import AliasStore
from ..dependencies import get_alias_store, get_mitigation
from ..security.ports import AbuseMitigationPort
from .health import (
    HealthStatus,
    check_database_health,
    check_security_health,
    get_overall_health,
)

router = APIRouter(tags=["Observability"])


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Returns health of the alias database and the security system",
    status_code=200,
)
def health_check(
    alias_store: AliasStore = Depends(get_alias_store),
    mitigation: AbuseMitigationPort = Depends(get_mitigation),
):
    """Check health of the relay's components.

    Returns 200 unless the alias database is unreachable (503). An
    unavailable security system only degrades the status, since mail keeps
    flowing without it.
    """
    components = {
        "database": check_database_health(alias_store.session_factory),
        "security": check_security_health(mitigation),
    }
    overall_status = get_overall_health(components)

    response_data = {
        "status": overall_status.value,
        "components": {name: comp.to_dict() for name, comp in components.items()},
    }

    status_code = 200 if overall_status != HealthStatus.UNHEALTHY else 503
    return JSONResponse(content=response_data, status_code=status_code)

"""Admin endpoints."""

from fastapi import APIRouter, Depends

from engagement_hub.core.chat_service import check_providers
from engagement_hub.db.users_repository import UserRecord
from engagement_hub.web.deps import get_current_user, require_admin
from engagement_hub.web.schemas import ProviderHealthResponse, ProviderStatusResponse

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/providers/health", response_model=ProviderHealthResponse)
def providers_health(current: UserRecord = Depends(get_current_user)) -> ProviderHealthResponse:
    """Check each AI provider: key configured and API reachable."""
    require_admin(current)
    providers = [ProviderStatusResponse.model_validate(s) for s in check_providers()]
    return ProviderHealthResponse(
        providers=providers,
        healthy=any(p.available for p in providers),
    )

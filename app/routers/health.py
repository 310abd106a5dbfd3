from fastapi import APIRouter, Depends

from app.core.dependencies import get_status_service
from app.schemas import HealthResponse
from app.services import StatusService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(service: StatusService = Depends(get_status_service)):
    return service.health()

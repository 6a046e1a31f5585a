"""Framework metadata API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from src.api.services import ServiceContainer, get_services
from src.frameworks.schemas import FrameworkDefinition, FrameworkKind, FrameworkSummary

router = APIRouter(prefix="/frameworks", tags=["frameworks"])


@router.get("", response_model=list[FrameworkSummary])
async def list_frameworks(
    kind: Optional[FrameworkKind] = None,
    services: ServiceContainer = Depends(get_services),
) -> list[FrameworkSummary]:
    """List all frameworks in dispatch order."""
    summaries = services.frameworks.list_summaries()
    if kind is not None:
        summaries = [s for s in summaries if s.kind == kind]
    return summaries


@router.get("/keys", response_model=list[str])
async def list_framework_keys(services: ServiceContainer = Depends(get_services)) -> list[str]:
    """List all framework ids."""
    return services.frameworks.list_keys()


@router.get("/count")
async def get_framework_count(services: ServiceContainer = Depends(get_services)) -> dict[str, int]:
    """Get total number of frameworks."""
    return {"count": services.frameworks.count()}


@router.get("/{framework_id}", response_model=FrameworkDefinition)
async def get_framework(
    framework_id: str,
    services: ServiceContainer = Depends(get_services),
) -> FrameworkDefinition:
    """Get the full framework definition, including key authors and publications."""
    framework = services.frameworks.get(framework_id)
    if framework is None:
        raise HTTPException(
            status_code=404,
            detail=f"Framework not found: {framework_id}",
        )
    return framework

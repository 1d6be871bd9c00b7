"""
Element Routes
==============

Read-only access to the element catalog.
"""

from fastapi import APIRouter, Depends, HTTPException

from dsl_playground.api.dependencies import PlaygroundServices, get_services
from dsl_playground.models.schemas import ElementCatalogResponse, ElementDefinition

router = APIRouter(prefix="/api/v1", tags=["Elements"])


@router.get("/elements", response_model=ElementCatalogResponse)
async def list_elements(services: PlaygroundServices = Depends(get_services)) -> ElementCatalogResponse:
    """Every element and modifier in the registry."""
    return ElementCatalogResponse(
        elements=list(services.registry.all()),
        modifiers=list(services.registry.modifiers()),
    )


@router.get("/elements/{name}", response_model=ElementDefinition)
async def get_element(name: str, services: PlaygroundServices = Depends(get_services)) -> ElementDefinition:
    """Definition of a single element."""
    definition = services.registry.lookup(name)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Unknown element '{name}'")
    return definition

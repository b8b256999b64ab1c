"""REST routes.

GET /resources  -- resources a composition's chart render would address.
GET /health     -- liveness.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from chartinspector.api.schemas import ErrorResponse, HealthResponse, ResourceOut
from chartinspector.models.resources import GroupVersionResource
from chartinspector.render.service import InspectionRequest

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    from chartinspector import __version__

    return HealthResponse(status="ok", version=__version__)


@router.get(
    "/resources",
    response_model=list[ResourceOut],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def get_resources(
    request: Request,
    composition_name: str = Query("", alias="compositionName"),
    composition_id: str = Query("", alias="compositionId"),
    composition_namespace: str = Query("", alias="compositionNamespace"),
    composition_definition_name: str = Query("", alias="compositionDefinitionName"),
    composition_definition_namespace: str = Query("", alias="compositionDefinitionNamespace"),
    composition_version: str = Query("", alias="compositionVersion"),
    composition_resource: str = Query("", alias="compositionResource"),
    composition_group: str = Query("", alias="compositionGroup"),
    composition_definition_group: str = Query("", alias="compositionDefinitionGroup"),
    composition_definition_version: str = Query("", alias="compositionDefinitionVersion"),
    composition_definition_resource: str = Query("", alias="compositionDefinitionResource"),
) -> list[ResourceOut] | JSONResponse:
    """List the resources the composition's chart render would address.

    Empty query values count as missing; optional ones fall back to their
    defaults.  The result keeps call order and duplicates.
    """
    required = {
        "compositionName or compositionId": composition_name or composition_id,
        "compositionNamespace": composition_namespace,
        "compositionDefinitionName": composition_definition_name,
        "compositionDefinitionNamespace": composition_definition_namespace,
        "compositionVersion": composition_version,
        "compositionResource": composition_resource,
    }
    missing = [key for key, value in required.items() if not value]
    if missing:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="MISSING_PARAMETERS",
                detail=f"missing required query parameters: {', '.join(missing)}",
            ).model_dump(),
        )

    inspection = InspectionRequest(
        composition_name=composition_name,
        composition_id=composition_id,
        composition_namespace=composition_namespace,
        composition_gvr=GroupVersionResource(
            group=composition_group or "composition.krateo.io",
            version=composition_version,
            resource=composition_resource,
        ),
        composition_definition_name=composition_definition_name,
        composition_definition_namespace=composition_definition_namespace,
        composition_definition_gvr=GroupVersionResource(
            group=composition_definition_group or "core.krateo.io",
            version=composition_definition_version or "v1alpha1",
            resource=composition_definition_resource or "compositiondefinitions",
        ),
    )
    references = await request.app.state.service.inspect(inspection)
    return [ResourceOut.from_reference(ref) for ref in references]

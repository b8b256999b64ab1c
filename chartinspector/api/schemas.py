"""Pydantic response models for the REST API."""

from __future__ import annotations

from pydantic import BaseModel

from chartinspector.models.resources import ResourceReference


class ResourceOut(BaseModel):
    """One object a chart render addressed."""

    group: str
    version: str
    resource: str
    name: str
    namespace: str

    @classmethod
    def from_reference(cls, ref: ResourceReference) -> ResourceOut:
        return cls(**ref.to_dict())


class ErrorResponse(BaseModel):
    """Error envelope shared by every non-2xx response."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str
    version: str

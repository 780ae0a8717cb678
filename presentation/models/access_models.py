#!/usr/bin/env python3

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.entities.artifact import ArtifactDescriptor, DownloadResult


class VersionResponse(BaseModel):
    """Response model for a resolved dataset version"""

    version: str
    publishedOn: Optional[str] = Field(None, description="Publication time, ISO-8601 UTC")
    files: List[Dict[str, Any]] = Field(default_factory=list)
    primaryFileUrl: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_artifact(cls, artifact: ArtifactDescriptor) -> "VersionResponse":
        data = artifact.to_dict()
        return cls(
            version=artifact.version_id,
            publishedOn=data["published_at"],
            files=data["files"],
            primaryFileUrl=artifact.primary_url,
            metadata=artifact.raw_metadata,
        )


class InstanceResponse(BaseModel):
    """Response model for a resolved version instance"""

    instanceId: str
    version: str
    files: List[Dict[str, Any]] = Field(default_factory=list)
    primaryFileUrl: Optional[str] = None
    savedAt: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_artifact(cls, artifact: ArtifactDescriptor) -> "InstanceResponse":
        data = artifact.to_dict()
        return cls(
            instanceId=artifact.instance_id,
            version=artifact.version_id,
            files=data["files"],
            primaryFileUrl=artifact.primary_url,
            savedAt=data["saved_at"],
            metadata=artifact.raw_metadata,
        )


class DownloadResponse(BaseModel):
    """Response model for a local download"""

    message: str = Field(..., description="Download result message")
    path: str
    version: str

    @classmethod
    def from_result(cls, result: DownloadResult) -> "DownloadResponse":
        return cls(
            message="Downloaded successfully",
            path=result.path,
            version=result.artifact.version_id,
        )


class HealthResponse(BaseModel):
    """Response model for the health check"""

    status: str
    record_store: str
    accounting: Dict[str, int]

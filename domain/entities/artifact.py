#!/usr/bin/env python3

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from shared.shared import FILE_SCHEMA_PRECEDENCE, FileSchema
from shared.util import format_timestamp


@dataclass(frozen=True)
class FileDescriptor:
    """A single downloadable file of a version or instance"""

    file_url: str
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict:
        return {**self.extras, "fileUrl": self.file_url}


@dataclass(frozen=True)
class FilesListSchema:
    """Current generation: files is a list of objects carrying fileUrl"""

    entries: Tuple[Dict[str, Any], ...]
    tag = FileSchema.FILES

    def to_descriptors(self) -> List[FileDescriptor]:
        descriptors = []
        for entry in self.entries:
            if isinstance(entry, str) and entry:
                descriptors.append(FileDescriptor(file_url=entry))
            elif isinstance(entry, dict):
                url = entry.get("fileUrl")
                if isinstance(url, str) and url:
                    extras = {k: v for k, v in entry.items() if k != "fileUrl"}
                    descriptors.append(FileDescriptor(file_url=url, extras=extras))
        return descriptors


@dataclass(frozen=True)
class FileUrlsSchema:
    """Legacy generation: flat list of URL strings"""

    urls: Tuple[str, ...]
    tag = FileSchema.FILE_URLS

    def to_descriptors(self) -> List[FileDescriptor]:
        return [FileDescriptor(file_url=url) for url in self.urls if isinstance(url, str) and url]


@dataclass(frozen=True)
class SingleFileUrlSchema:
    """Oldest generation: one fileUrl scalar"""

    url: str
    tag = FileSchema.FILE_URL

    def to_descriptors(self) -> List[FileDescriptor]:
        return [FileDescriptor(file_url=self.url)]


FileSchemaVariant = Union[FilesListSchema, FileUrlsSchema, SingleFileUrlSchema]


def _variant_for(schema: FileSchema, data: Dict[str, Any]) -> Optional[FileSchemaVariant]:
    value = data.get(schema.value)
    if schema == FileSchema.FILES and isinstance(value, (list, tuple)):
        return FilesListSchema(entries=tuple(value))
    if schema == FileSchema.FILE_URLS and isinstance(value, (list, tuple)):
        return FileUrlsSchema(urls=tuple(value))
    if schema == FileSchema.FILE_URL and isinstance(value, str) and value:
        return SingleFileUrlSchema(url=value)
    return None


def normalize_files(data: Dict[str, Any]) -> Tuple[FileSchema, Tuple[FileDescriptor, ...]]:
    """Convert whichever files generation a record carries into descriptors.

    The newest generation yielding at least one usable URL wins.
    """
    for schema in FILE_SCHEMA_PRECEDENCE:
        variant = _variant_for(schema, data)
        if variant is None:
            continue
        descriptors = variant.to_descriptors()
        if descriptors:
            return variant.tag, tuple(descriptors)
    return FileSchema.NONE, ()


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Normalized result describing a resolved version or instance"""

    dataset_id: str
    version_id: str
    files: Tuple[FileDescriptor, ...]
    file_schema: FileSchema
    raw_metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    instance_id: Optional[str] = None
    published_at: Optional[datetime] = None
    saved_at: Optional[datetime] = None

    @property
    def primary_file(self) -> Optional[FileDescriptor]:
        return self.files[0] if self.files else None

    @property
    def primary_url(self) -> Optional[str]:
        primary = self.primary_file
        return primary.file_url if primary else None

    @property
    def file_urls(self) -> List[str]:
        return [f.file_url for f in self.files]

    def to_dict(self) -> dict:
        """Convert to dictionary representation"""
        return {
            "dataset_id": self.dataset_id,
            "version_id": self.version_id,
            "instance_id": self.instance_id,
            "files": [f.to_dict() for f in self.files],
            "file_schema": self.file_schema.value,
            "primary_file_url": self.primary_url,
            "published_at": format_timestamp(self.published_at) if self.published_at else None,
            "saved_at": format_timestamp(self.saved_at) if self.saved_at else None,
            "metadata": self.raw_metadata,
        }


@dataclass(frozen=True)
class DownloadResult:
    """Outcome of saving an artifact's primary file locally"""

    artifact: ArtifactDescriptor
    path: str
    bytes_written: int

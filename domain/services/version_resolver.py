#!/usr/bin/env python3

import logging
from typing import List, Optional, Tuple

from domain.entities.artifact import ArtifactDescriptor, normalize_files
from domain.entities.dataset import Dataset, DatasetInstance, DatasetVersion
from domain.exceptions import DisabledError, NoActiveVersionError, NotFoundError
from domain.repositories.record_store import RecordStore
from shared.shared import instance_path, version_path, versions_collection_path

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD = 5
PUBLISHED_ON_FIELD = "publishedOn"


class VersionResolver:
    """Picks the concrete version or instance record to serve.

    Callers must have passed the access gate for the parent dataset first.
    """

    def __init__(self, record_store: RecordStore, lookahead: int = DEFAULT_LOOKAHEAD):
        if lookahead < 1:
            raise ValueError("lookahead must be at least 1")
        self.record_store = record_store
        self.lookahead = lookahead

    def resolve_latest(self, dataset: Dataset) -> ArtifactDescriptor:
        """Most recently published version that is not disabled.

        Scans the newest `lookahead` versions instead of filtering on
        isDisabled in the store. Datasets whose versions carry no publishedOn
        fall back to the legacy latestVersion pointer.
        """
        window = self._recent_versions(dataset.dataset_id)

        for version in window:
            if version.is_enabled:
                logger.info(
                    f"Resolved latest version {version.version_id} of dataset {dataset.dataset_id}"
                )
                return self._describe_version(version)

        if window:
            logger.warning(
                f"All {len(window)} most recent versions of dataset {dataset.dataset_id} are disabled"
            )
            raise NoActiveVersionError(dataset.dataset_id)

        if dataset.latest_version:
            return self.resolve_version(dataset, dataset.latest_version)

        raise NoActiveVersionError(dataset.dataset_id)

    def resolve_version(self, dataset: Dataset, version_id: str) -> ArtifactDescriptor:
        version = self._get_version(dataset.dataset_id, version_id)
        if version is None:
            raise NotFoundError(f"Version {version_id} not found")
        if version.is_disabled:
            raise DisabledError(dataset.dataset_id, version_id)
        return self._describe_version(version)

    def resolve_instance(
        self, dataset: Dataset, version_id: str, instance_id: str
    ) -> ArtifactDescriptor:
        data = self.record_store.get_document(
            instance_path(dataset.dataset_id, version_id, instance_id)
        )
        if data is None:
            raise NotFoundError(f"Instance {instance_id} not found")

        instance = DatasetInstance.from_document(
            dataset.dataset_id, version_id, instance_id, data
        )
        schema, files = normalize_files(instance.raw)
        return ArtifactDescriptor(
            dataset_id=instance.dataset_id,
            version_id=instance.version_id,
            instance_id=instance.instance_id,
            files=files,
            file_schema=schema,
            saved_at=instance.saved_at,
            raw_metadata=instance.raw,
        )

    def _recent_versions(self, dataset_id: str) -> List[DatasetVersion]:
        rows: List[Tuple[str, dict]] = self.record_store.query(
            versions_collection_path(dataset_id),
            order_by=PUBLISHED_ON_FIELD,
            descending=True,
            limit=self.lookahead,
        )
        return [
            DatasetVersion.from_document(dataset_id, version_id, data)
            for version_id, data in rows
        ]

    def _get_version(self, dataset_id: str, version_id: str) -> Optional[DatasetVersion]:
        data = self.record_store.get_document(version_path(dataset_id, version_id))
        if data is None:
            return None
        return DatasetVersion.from_document(dataset_id, version_id, data)

    @staticmethod
    def _describe_version(version: DatasetVersion) -> ArtifactDescriptor:
        schema, files = normalize_files(version.raw)
        return ArtifactDescriptor(
            dataset_id=version.dataset_id,
            version_id=version.version_id,
            files=files,
            file_schema=schema,
            published_at=version.published_on,
            raw_metadata=version.raw,
        )

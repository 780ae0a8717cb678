#!/usr/bin/env python3

import logging
from typing import Dict, Optional

from domain.entities.artifact import ArtifactDescriptor, DownloadResult
from domain.entities.dataset import Dataset
from domain.exceptions import AuthError, InvalidRequestError, NotFoundError
from domain.repositories.record_store import RecordStore
from domain.services.access_evaluator import AccessEvaluator
from domain.services.usage_ledger import UsageLedger
from domain.services.version_resolver import VersionResolver
from services.accounting_dispatcher import AccountingDispatcher
from services.application.file_transport import FileTransport, ProxiedFile, download_file_name
from shared.shared import PATH_SEPARATOR, dataset_path

logger = logging.getLogger(__name__)


class AccessService:
    """Application service for reading versioned datasets.

    Every read is gated by the access evaluator before any version data is
    touched, and every successful read is accounted for in the background.
    """

    def __init__(
        self,
        record_store: RecordStore,
        resolver: VersionResolver,
        ledger: UsageLedger,
        dispatcher: AccountingDispatcher,
        evaluator: AccessEvaluator = None,
        file_transport: FileTransport = None,
    ):
        self.record_store = record_store
        self.resolver = resolver
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.evaluator = evaluator or AccessEvaluator()
        self.file_transport = file_transport or FileTransport()

    @staticmethod
    def _require(**params: Optional[str]) -> None:
        missing = [name for name, value in params.items() if not value]
        if missing:
            raise InvalidRequestError.missing(missing)
        for name, value in params.items():
            if name != "savePath" and PATH_SEPARATOR in value:
                raise InvalidRequestError(f"Invalid {name} parameter")

    def _authorize(self, dataset_id: str, caller_id: str) -> Dataset:
        """Load the dataset and apply the access gate; absent and denied look the same"""
        record = self.record_store.get_document(dataset_path(dataset_id))
        if not self.evaluator.evaluate(record, caller_id, dataset_id):
            raise AuthError()
        return Dataset.from_document(dataset_id, record)

    def get_latest(self, dataset_id: str, caller_id: str) -> ArtifactDescriptor:
        """Latest enabled version of a dataset"""
        artifact = self._resolve_latest(dataset_id, caller_id)
        self.record_access(caller_id, dataset_id, artifact.version_id)
        return artifact

    def get_by_version(self, dataset_id: str, version_id: str, caller_id: str) -> ArtifactDescriptor:
        """Specific version of a dataset, even if it is not the latest"""
        artifact = self._resolve_version(dataset_id, version_id, caller_id)
        self.record_access(caller_id, dataset_id, artifact.version_id)
        return artifact

    def get_instance(
        self, dataset_id: str, version_id: str, instance_id: str, caller_id: str
    ) -> ArtifactDescriptor:
        """Saved instance nested under a version"""
        self._require(id=dataset_id, version=version_id, instanceId=instance_id, userId=caller_id)
        dataset = self._authorize(dataset_id, caller_id)
        artifact = self.resolver.resolve_instance(dataset, version_id, instance_id)
        self.record_access(caller_id, dataset_id, version_id)
        return artifact

    def download_by_version(
        self, dataset_id: str, version_id: str, caller_id: str, save_path: str
    ) -> DownloadResult:
        """Save the primary file of a version under save_path"""
        self._require(id=dataset_id, version=version_id, userId=caller_id, savePath=save_path)
        artifact = self._resolve_version(dataset_id, version_id, caller_id)
        return self._download(artifact, caller_id, save_path)

    def download_latest(self, dataset_id: str, caller_id: str, save_path: str) -> DownloadResult:
        """Save the primary file of the latest enabled version under save_path"""
        self._require(id=dataset_id, userId=caller_id, savePath=save_path)
        artifact = self._resolve_latest(dataset_id, caller_id)
        return self._download(artifact, caller_id, save_path)

    def open_proxy(self, url: str) -> ProxiedFile:
        """Open a storage URL for relaying to the caller"""
        return self.file_transport.open_stream(url)

    def record_access(self, caller_id: str, dataset_id: str, version_id: str) -> None:
        """Account for an access in the background; never raises"""
        context = {"user_id": caller_id, "dataset_id": dataset_id, "version_id": version_id}
        try:
            self.dispatcher.submit(
                self.ledger.record, caller_id, dataset_id, version_id, context=context
            )
        except Exception as e:
            logger.error(f"Could not schedule accounting for {context}: {e}")

    def health(self) -> Dict:
        store_ok = self.record_store.ping()
        return {
            "status": "healthy" if store_ok else "degraded",
            "record_store": "connected" if store_ok else "unreachable",
            "accounting": self.dispatcher.stats(),
        }

    def _resolve_latest(self, dataset_id: str, caller_id: str) -> ArtifactDescriptor:
        self._require(id=dataset_id, userId=caller_id)
        dataset = self._authorize(dataset_id, caller_id)
        return self.resolver.resolve_latest(dataset)

    def _resolve_version(self, dataset_id: str, version_id: str, caller_id: str) -> ArtifactDescriptor:
        self._require(id=dataset_id, version=version_id, userId=caller_id)
        dataset = self._authorize(dataset_id, caller_id)
        return self.resolver.resolve_version(dataset, version_id)

    def _download(self, artifact: ArtifactDescriptor, caller_id: str, save_path: str) -> DownloadResult:
        url = artifact.primary_url
        if not url:
            raise NotFoundError("No valid file URL found in this version")

        file_name = download_file_name(artifact.dataset_id, artifact.version_id)
        path, written = self.file_transport.download_to_path(url, save_path, file_name)

        self.record_access(caller_id, artifact.dataset_id, artifact.version_id)
        return DownloadResult(artifact=artifact, path=path, bytes_written=written)

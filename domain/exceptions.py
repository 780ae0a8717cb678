#!/usr/bin/env python3

from typing import Dict, Iterable, Optional


class SetaAccessError(Exception):
    """Base error for dataset access and accounting"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(SetaAccessError):
    """A required identity parameter is missing or malformed"""

    status_code = 400

    @classmethod
    def missing(cls, names: Iterable[str]) -> "InvalidRequestError":
        return cls(f"Missing required parameters: {', '.join(names)}")


class AuthError(SetaAccessError):
    """Caller may not see the dataset, or the dataset does not exist"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotFoundError(SetaAccessError):
    """Version or instance does not exist"""

    status_code = 404


class NoActiveVersionError(NotFoundError):
    """No enabled version inside the lookahead window"""

    def __init__(self, dataset_id: str):
        super().__init__(f"No active/enabled versions available for dataset {dataset_id}")
        self.dataset_id = dataset_id


class DisabledError(SetaAccessError):
    """Version exists but has been disabled"""

    status_code = 403

    def __init__(self, dataset_id: str, version_id: str):
        super().__init__(f"Version {version_id} of dataset {dataset_id} has been disabled")
        self.dataset_id = dataset_id
        self.version_id = version_id


class RecordStoreError(SetaAccessError):
    """Record store rejected an operation"""

    status_code = 500


class TransientStoreError(RecordStoreError):
    """Record store unreachable, timed out or too contended"""

    status_code = 503


class UpstreamTransferError(SetaAccessError):
    """File host failed while proxying or downloading"""

    status_code = 502


class AccountingFailure(SetaAccessError):
    """One or more usage ledger steps failed.

    Never surfaced to the caller; carries the per-step errors for operators.
    """

    def __init__(self, context: Dict[str, str], failures: Optional[Dict[str, Exception]] = None):
        self.context = dict(context)
        self.failures = dict(failures or {})
        steps = ", ".join(self.failures) or "unknown"
        super().__init__(f"Accounting failed for {self.context} in steps: {steps}")

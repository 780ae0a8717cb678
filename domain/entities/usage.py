#!/usr/bin/env python3

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shared.shared import VERSION_KEY_PREFIX, VERSION_SEPARATOR


def sanitize_version_key(version_id: str) -> str:
    """Map a dotted version id onto a key safe for nested field paths.

    "1.2.0" -> "v1_2_0"
    """
    if not version_id:
        raise ValueError("version_id is required")
    return f"{VERSION_KEY_PREFIX}{version_id.replace(VERSION_SEPARATOR, '_')}"


@dataclass(frozen=True)
class UsageEvent:
    """One successful access to account for"""

    user_id: str
    dataset_id: str
    version_id: str

    @property
    def version_key(self) -> str:
        return sanitize_version_key(self.version_id)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "dataset_id": self.dataset_id,
            "version_id": self.version_id,
        }


@dataclass
class UserRequestRecord:
    """Per user and dataset request history, keyed by sanitized version"""

    user_id: str
    dataset_id: str
    versions: Dict[str, List[str]] = field(default_factory=dict)
    last_updated: Optional[str] = None

    def append_request(self, version_key: str, timestamp: str) -> None:
        """Append a request timestamp; history only grows"""
        self.versions.setdefault(version_key, []).append(timestamp)
        self.last_updated = timestamp

    def request_count(self, version_key: Optional[str] = None) -> int:
        if version_key is not None:
            return len(self.versions.get(version_key, []))
        return sum(len(times) for times in self.versions.values())

    @classmethod
    def from_document(
        cls, user_id: str, dataset_id: str, data: Optional[Dict[str, Any]]
    ) -> "UserRequestRecord":
        data = data or {}
        versions = data.get("versions")
        if not isinstance(versions, dict):
            versions = {}
        return cls(
            user_id=user_id,
            dataset_id=dataset_id,
            versions={
                key: list(times)
                for key, times in versions.items()
                if isinstance(times, list)
            },
            last_updated=data.get("lastUpdated"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "versions": {key: list(times) for key, times in self.versions.items()},
            "lastUpdated": self.last_updated,
        }


@dataclass
class VersionRequestorRecord:
    """Per version and user aggregate"""

    dataset_id: str
    version_id: str
    user_id: str
    requested_count: int = 0
    requested_time: List[str] = field(default_factory=list)

    @classmethod
    def from_document(
        cls, dataset_id: str, version_id: str, user_id: str, data: Optional[Dict[str, Any]]
    ) -> "VersionRequestorRecord":
        data = data or {}
        times = data.get("requestedTime")
        return cls(
            dataset_id=dataset_id,
            version_id=version_id,
            user_id=user_id,
            requested_count=int(data.get("requestedCount", 0) or 0),
            requested_time=list(times) if isinstance(times, list) else [],
        )

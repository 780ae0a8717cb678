#!/usr/bin/env python3

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from shared.shared import Visibility
from shared.util import to_datetime


def _access_users(data: Dict[str, Any]) -> FrozenSet[str]:
    users = data.get("accessUsers", data.get("access_users"))
    if not isinstance(users, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(u for u in users if isinstance(u, str))


def _request_count(data: Dict[str, Any]) -> int:
    count = data.get("requestCount", 0)
    return count if isinstance(count, int) and not isinstance(count, bool) else 0


@dataclass
class Dataset:
    """Dataset domain entity"""

    dataset_id: str
    visibility: Visibility
    access_users: FrozenSet[str] = frozenset()
    is_public_flag: bool = False
    latest_version: Optional[str] = None
    request_count: int = 0

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC or self.is_public_flag

    def grants_access_to(self, user_id: str) -> bool:
        if self.is_public:
            return True
        return user_id in self.access_users

    @classmethod
    def from_document(cls, dataset_id: str, data: Dict[str, Any]) -> "Dataset":
        latest = data.get("latestVersion")
        return cls(
            dataset_id=dataset_id,
            visibility=Visibility.parse(data.get("visibility")),
            access_users=_access_users(data),
            is_public_flag=data.get("isPublic") is True,
            latest_version=latest if isinstance(latest, str) and latest else None,
            request_count=_request_count(data),
        )


@dataclass
class DatasetVersion:
    """Published snapshot of a dataset's files"""

    dataset_id: str
    version_id: str
    published_on: Optional[datetime]
    is_disabled: bool
    raw: Dict[str, Any] = field(default_factory=dict)
    request_count: int = 0

    @property
    def is_enabled(self) -> bool:
        return not self.is_disabled

    @classmethod
    def from_document(
        cls, dataset_id: str, version_id: str, data: Dict[str, Any]
    ) -> "DatasetVersion":
        return cls(
            dataset_id=dataset_id,
            version_id=version_id,
            published_on=to_datetime(data.get("publishedOn")),
            is_disabled=data.get("isDisabled") is True,
            raw=dict(data),
            request_count=_request_count(data),
        )


@dataclass
class DatasetInstance:
    """Named saved snapshot nested under a version"""

    dataset_id: str
    version_id: str
    instance_id: str
    saved_at: Optional[datetime]
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(
        cls, dataset_id: str, version_id: str, instance_id: str, data: Dict[str, Any]
    ) -> "DatasetInstance":
        return cls(
            dataset_id=dataset_id,
            version_id=version_id,
            instance_id=instance_id,
            saved_at=to_datetime(data.get("savedAt")),
            raw=dict(data),
        )

#!/usr/bin/env python3

import logging
from typing import Any, Mapping, Optional

from domain.entities.dataset import Dataset

logger = logging.getLogger(__name__)


def is_authorized(
    dataset_record: Optional[Mapping[str, Any]],
    caller_id: Optional[str],
    dataset_id: str = "",
) -> bool:
    """Decide whether caller_id may see the dataset described by dataset_record.

    An absent record denies. Public datasets (visibility "Public" or the legacy
    isPublic flag) allow anyone. Otherwise the caller must be listed in
    accessUsers. Anything unexpected while evaluating denies.
    """
    if dataset_record is None:
        return False

    try:
        dataset = Dataset.from_document(dataset_id, dict(dataset_record))
        if dataset.is_public:
            return True
        if not caller_id:
            return False
        return dataset.grants_access_to(caller_id)
    except Exception as e:
        logger.warning(f"Access evaluation failed for dataset {dataset_id!r}, denying: {e}")
        return False


class AccessEvaluator:
    """Gate applied before any version or instance data is read"""

    def evaluate(
        self,
        dataset_record: Optional[Mapping[str, Any]],
        caller_id: Optional[str],
        dataset_id: str = "",
    ) -> bool:
        allowed = is_authorized(dataset_record, caller_id, dataset_id)
        if not allowed:
            logger.info(f"Denied access to dataset {dataset_id} for user {caller_id}")
        return allowed

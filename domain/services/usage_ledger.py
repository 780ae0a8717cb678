#!/usr/bin/env python3

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from domain.entities.usage import UsageEvent, UserRequestRecord
from domain.exceptions import AccountingFailure
from domain.repositories.record_store import Document, RecordStore
from shared.shared import (
    ConsistencyTier,
    dataset_path,
    user_request_path,
    version_path,
    version_requestor_path,
)
from shared.util import utc_now_iso

logger = logging.getLogger(__name__)

REQUEST_COUNT_FIELD = "requestCount"
REQUESTED_COUNT_FIELD = "requestedCount"
REQUESTED_TIME_FIELD = "requestedTime"


@dataclass(frozen=True)
class LedgerStep:
    name: str
    tier: ConsistencyTier
    apply: Callable[[UsageEvent, str], None]


class UsageLedger:
    """Records every successful access into the denormalized usage counters.

    Per-user history is updated transactionally (strict tier); the shared
    version, dataset and requestor counters use atomic store primitives
    (eventual tier) since every user contends on them.
    """

    def __init__(self, record_store: RecordStore, clock: Callable[[], str] = utc_now_iso):
        self.record_store = record_store
        self.clock = clock
        self.steps: List[LedgerStep] = [
            LedgerStep("user_request_history", ConsistencyTier.STRICT, self._append_user_history),
            LedgerStep("version_request_count", ConsistencyTier.EVENTUAL, self._increment_version),
            LedgerStep("dataset_request_count", ConsistencyTier.EVENTUAL, self._increment_dataset),
            LedgerStep("version_requestor", ConsistencyTier.EVENTUAL, self._upsert_requestor),
        ]

    def steps_for(self, tier: ConsistencyTier) -> List[str]:
        return [step.name for step in self.steps if step.tier == tier]

    def record(self, user_id: str, dataset_id: str, version_id: str) -> None:
        """Apply every ledger step for one access.

        All steps are attempted; if any failed an AccountingFailure listing
        them is raised afterwards.
        """
        event = UsageEvent(user_id=user_id, dataset_id=dataset_id, version_id=version_id)
        timestamp = self.clock()
        failures: Dict[str, Exception] = {}

        for step in self.steps:
            try:
                step.apply(event, timestamp)
            except Exception as e:
                logger.warning(
                    f"Usage ledger step {step.name} ({step.tier.value}) failed for "
                    f"user {user_id}, dataset {dataset_id}, version {version_id}: {e}"
                )
                failures[step.name] = e

        if failures:
            raise AccountingFailure(event.to_dict(), failures)

        logger.info(
            f"Stats updated: User {user_id}, Dataset {dataset_id}, Version {version_id}"
        )

    def _append_user_history(self, event: UsageEvent, timestamp: str) -> None:
        version_key = event.version_key

        def update(current: Optional[Document]) -> Document:
            record = UserRequestRecord.from_document(event.user_id, event.dataset_id, current)
            record.append_request(version_key, timestamp)
            merged = dict(current or {})
            merged.update(record.to_document())
            return merged

        self.record_store.run_transaction(
            user_request_path(event.user_id, event.dataset_id), update
        )

    def _increment_version(self, event: UsageEvent, timestamp: str) -> None:
        self.record_store.atomic_increment(
            version_path(event.dataset_id, event.version_id), REQUEST_COUNT_FIELD, 1
        )

    def _increment_dataset(self, event: UsageEvent, timestamp: str) -> None:
        self.record_store.atomic_increment(
            dataset_path(event.dataset_id), REQUEST_COUNT_FIELD, 1
        )

    def _upsert_requestor(self, event: UsageEvent, timestamp: str) -> None:
        self.record_store.atomic_update(
            version_requestor_path(event.dataset_id, event.version_id, event.user_id),
            increments={REQUESTED_COUNT_FIELD: 1},
            array_appends={REQUESTED_TIME_FIELD: [timestamp]},
        )

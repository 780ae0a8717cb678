#!/usr/bin/env python3

import logging

import settings
from domain.repositories.record_store import RecordStore
from domain.services.access_evaluator import AccessEvaluator
from domain.services.usage_ledger import UsageLedger
from domain.services.version_resolver import VersionResolver
from infrastructure.repositories.memory_record_store import MemoryRecordStore
from infrastructure.repositories.redis_record_store import RedisRecordStore
from presentation.controllers.access_controller import AccessController
from services.accounting_dispatcher import AccountingDispatcher
from services.application.access_service import AccessService
from services.application.file_transport import FileTransport

logger = logging.getLogger(__name__)


def create_record_store(backend: str = None) -> RecordStore:
    """Build the configured record store backend"""
    backend = (backend or settings.RECORD_STORE_BACKEND).lower()
    if backend == "redis":
        return RedisRecordStore()
    if backend == "memory":
        logger.warning("Using in-process record store; data is lost on restart")
        return MemoryRecordStore()
    raise ValueError(f"Unknown record store backend: {backend}")


class Container:
    """Dependency injection container"""

    def __init__(
        self,
        record_store: RecordStore = None,
        dispatcher: AccountingDispatcher = None,
        file_transport: FileTransport = None,
    ):
        self._repositories = {}
        self._services = {}
        self._controllers = {}
        self._setup_dependencies(record_store, dispatcher, file_transport)

    def _setup_dependencies(self, record_store, dispatcher, file_transport):
        """Setup all dependencies with proper injection"""

        # Repositories
        self._repositories["record_store"] = record_store or create_record_store()

        # Domain Services
        store = self._repositories["record_store"]
        self._services["evaluator"] = AccessEvaluator()
        self._services["resolver"] = VersionResolver(
            store, lookahead=settings.LATEST_VERSION_LOOKAHEAD
        )
        self._services["ledger"] = UsageLedger(store)
        self._services["dispatcher"] = dispatcher or AccountingDispatcher()

        # Application Services
        self._services["access"] = AccessService(
            record_store=store,
            resolver=self._services["resolver"],
            ledger=self._services["ledger"],
            dispatcher=self._services["dispatcher"],
            evaluator=self._services["evaluator"],
            file_transport=file_transport or FileTransport(),
        )

        # Controllers
        self._controllers["access"] = AccessController(self._services["access"])

    def get_repository(self, name: str):
        """Get repository by name"""
        return self._repositories.get(name)

    def get_service(self, name: str):
        """Get service by name"""
        return self._services.get(name)

    def get_controller(self, name: str):
        """Get controller by name"""
        return self._controllers.get(name)

    def get_all_routers(self):
        """Get all FastAPI routers from controllers"""
        routers = []
        for controller in self._controllers.values():
            if hasattr(controller, "router"):
                routers.append(controller.router)
        return routers

    def shutdown(self) -> bool:
        """Drain background accounting before the process exits"""
        drained = self._services["dispatcher"].shutdown()
        self._repositories["record_store"].close()
        return drained

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional, Set

import sentry_sdk

import settings
from domain.exceptions import AccountingFailure

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[BaseException, Dict[str, str]], None]


def report_accounting_failure(error: BaseException, context: Dict[str, str]) -> None:
    """Operator-facing error channel for detached accounting work"""
    logger.warning(f"Accounting failure {context}: {error}")
    sentry_sdk.capture_exception(error, tags=context)


class AccountingDispatcher:
    """Runs accounting work off the request path.

    Submitted callables execute on a thread pool; their errors go to the
    error reporter and never reach whoever submitted them. drain() waits for
    in-flight work, shutdown() drains then stops accepting new work.
    """

    def __init__(
        self,
        max_workers: int = None,
        drain_timeout: float = None,
        error_reporter: ErrorReporter = report_accounting_failure,
    ):
        self.max_workers = max_workers or settings.ACCOUNTING_MAX_WORKERS
        self.drain_timeout = (
            drain_timeout if drain_timeout is not None else settings.ACCOUNTING_DRAIN_TIMEOUT
        )
        self.error_reporter = error_reporter
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="accounting"
        )
        self._pending: Set[Future] = set()
        self._idle = threading.Condition()
        self._closed = False
        self.submitted_count = 0
        self.completed_count = 0
        self.failure_count = 0

    def submit(
        self,
        fn: Callable[..., None],
        *args,
        context: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> Optional[Future]:
        """Schedule fn(*args, **kwargs); returns None if the dispatcher is closed"""
        context = dict(context or {})
        with self._idle:
            if self._closed:
                self.failure_count += 1
                rejected = True
            else:
                future = self._executor.submit(fn, *args, **kwargs)
                self._pending.add(future)
                self.submitted_count += 1
                rejected = False

        if rejected:
            self._report(
                AccountingFailure(context, {"dispatch": RuntimeError("dispatcher is shut down")}),
                context,
            )
            return None

        future.add_done_callback(lambda f: self._on_done(f, context))
        return future

    def _on_done(self, future: Future, context: Dict[str, str]) -> None:
        error = None if future.cancelled() else future.exception()
        if error is not None:
            self._report(error, context)

        with self._idle:
            if error is not None:
                self.failure_count += 1
            self.completed_count += 1
            self._pending.discard(future)
            self._idle.notify_all()

    def _report(self, error: BaseException, context: Dict[str, str]) -> None:
        try:
            self.error_reporter(error, context)
        except Exception as e:
            logger.error(f"Accounting error reporter failed: {e}")

    @property
    def pending_count(self) -> int:
        with self._idle:
            return len(self._pending)

    def drain(self, timeout: float = None) -> bool:
        """Wait for in-flight work; True when nothing is left pending"""
        timeout = self.drain_timeout if timeout is None else timeout
        with self._idle:
            drained = self._idle.wait_for(lambda: not self._pending, timeout=timeout)
            if not drained:
                logger.warning(
                    f"{len(self._pending)} accounting tasks still running after {timeout}s"
                )
        return drained

    def shutdown(self, timeout: float = None) -> bool:
        with self._idle:
            self._closed = True
        drained = self.drain(timeout)
        self._executor.shutdown(wait=drained)
        logger.info(f"Accounting dispatcher stopped (drained={drained})")
        return drained

    def stats(self) -> Dict[str, int]:
        with self._idle:
            return {
                "submitted": self.submitted_count,
                "completed": self.completed_count,
                "failed": self.failure_count,
                "pending": len(self._pending),
            }

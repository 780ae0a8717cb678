#!/usr/bin/env python3

import logging
import threading
from unittest.mock import patch

from domain.exceptions import AccountingFailure
from services.accounting_dispatcher import AccountingDispatcher, report_accounting_failure


def test_submitted_work_runs_in_background(dispatcher):
    done = []

    future = dispatcher.submit(done.append, "ok", context={"user_id": "u1"})

    assert future is not None
    assert dispatcher.drain() is True
    assert done == ["ok"]
    assert dispatcher.stats() == {"submitted": 1, "completed": 1, "failed": 0, "pending": 0}


def test_submit_returns_before_work_finishes(dispatcher):
    release = threading.Event()

    dispatcher.submit(release.wait, 5)

    assert dispatcher.pending_count == 1
    release.set()
    assert dispatcher.drain() is True
    assert dispatcher.pending_count == 0


def test_failures_go_to_error_channel(dispatcher, reported_errors):
    def fail():
        raise AccountingFailure({"dataset_id": "D1"}, {"dataset_request_count": RuntimeError("x")})

    dispatcher.submit(fail, context={"dataset_id": "D1"})
    dispatcher.drain()

    assert len(reported_errors) == 1
    error, context = reported_errors[0]
    assert isinstance(error, AccountingFailure)
    assert context == {"dataset_id": "D1"}
    assert dispatcher.stats()["failed"] == 1


def test_drain_times_out_on_stuck_work(dispatcher):
    release = threading.Event()
    dispatcher.submit(release.wait, 5)

    assert dispatcher.drain(timeout=0.05) is False
    release.set()
    assert dispatcher.drain() is True


def test_submit_after_shutdown_is_reported(reported_errors):
    instance = AccountingDispatcher(
        max_workers=1,
        error_reporter=lambda error, context: reported_errors.append((error, context)),
    )
    assert instance.shutdown() is True

    assert instance.submit(print, "late", context={"user_id": "u9"}) is None
    assert len(reported_errors) == 1
    assert isinstance(reported_errors[0][0], AccountingFailure)
    assert instance.stats()["failed"] == 1


def test_broken_reporter_does_not_escape():
    def reporter(error, context):
        raise RuntimeError("reporter down")

    instance = AccountingDispatcher(max_workers=1, error_reporter=reporter)
    instance.submit(lambda: 1 / 0)

    assert instance.shutdown(timeout=5.0) is True
    assert instance.stats()["failed"] == 1


def test_default_reporter_sends_to_sentry():
    error = RuntimeError("counter")
    with patch("services.accounting_dispatcher.sentry_sdk.capture_exception") as capture:
        report_accounting_failure(error, {"dataset_id": "D1"})

    capture.assert_called_once_with(error, tags={"dataset_id": "D1"})


def test_default_reporter_sends_one_error_event(caplog):
    error = AccountingFailure({"dataset_id": "D1"}, {"dataset_request_count": RuntimeError("counter")})
    with patch("services.accounting_dispatcher.sentry_sdk.capture_exception") as capture:
        with caplog.at_level(logging.INFO, logger="services.accounting_dispatcher"):
            report_accounting_failure(error, {"dataset_id": "D1"})

    capture.assert_called_once()
    assert [r.levelno for r in caplog.records] == [logging.WARNING]

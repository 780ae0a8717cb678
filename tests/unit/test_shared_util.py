#!/usr/bin/env python3

import unittest
from datetime import datetime, timedelta, timezone

from shared.shared import (
    dataset_path,
    instance_path,
    split_document_path,
    user_request_path,
    version_requestor_path,
    versions_collection_path,
)
from shared.util import format_timestamp, order_key, to_datetime, utc_now_iso


class TestTimestamps(unittest.TestCase):
    """Unit tests for timestamp coercion"""

    def test_iso_strings(self):
        expected = datetime(2024, 2, 1, tzinfo=timezone.utc)
        self.assertEqual(to_datetime("2024-02-01T00:00:00Z"), expected)
        self.assertEqual(to_datetime("2024-02-01T01:00:00+01:00"), expected)
        self.assertEqual(to_datetime("2024-02-01T00:00:00"), expected)

    def test_epoch_seconds_and_millis(self):
        expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(to_datetime(1704067200), expected)
        self.assertEqual(to_datetime(1704067200000), expected)

    def test_exported_timestamp_dicts(self):
        expected = datetime(2024, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc)
        self.assertEqual(to_datetime({"seconds": 1704067200, "nanoseconds": 500000000}), expected)
        self.assertEqual(to_datetime({"_seconds": 1704067200, "_nanoseconds": 500000000}), expected)
        self.assertIsNone(to_datetime({"seconds": "soon"}))

    def test_unorderable_values(self):
        for value in (None, True, "", "yesterday", [2024]):
            self.assertIsNone(to_datetime(value))
            self.assertIsNone(order_key(value))

    def test_format_timestamp(self):
        moment = datetime(2024, 6, 1, 12, 0, 0, 5, tzinfo=timezone.utc)
        self.assertEqual(format_timestamp(moment), "2024-06-01T12:00:00.000005Z")
        offset = moment.astimezone(timezone(timedelta(hours=2)))
        self.assertEqual(format_timestamp(offset), "2024-06-01T12:00:00.000005Z")

    def test_utc_now_is_parseable(self):
        now = utc_now_iso()
        self.assertTrue(now.endswith("Z"))
        self.assertIsNotNone(to_datetime(now))

    def test_order_key_is_comparable_across_formats(self):
        self.assertLess(order_key("2024-01-01T00:00:00Z"), order_key(1706745600000))


class TestDocumentPaths(unittest.TestCase):
    """Unit tests for record store path helpers"""

    def test_builders(self):
        self.assertEqual(dataset_path("D1"), "datasets/D1")
        self.assertEqual(versions_collection_path("D1"), "datasets/D1/versions")
        self.assertEqual(instance_path("D1", "2.0", "i"), "datasets/D1/versions/2.0/instances/i")
        self.assertEqual(
            version_requestor_path("D1", "2.0", "u1"),
            "datasets/D1/versions/2.0/requestedUsers/u1",
        )
        self.assertEqual(user_request_path("u1", "D1"), "Users/u1/requests/D1")

    def test_segments_are_validated(self):
        with self.assertRaises(ValueError):
            dataset_path("a/b")
        with self.assertRaises(ValueError):
            dataset_path("")

    def test_split(self):
        self.assertEqual(split_document_path("datasets/D1/versions/2.0"), ("datasets/D1/versions", "2.0"))
        with self.assertRaises(ValueError):
            split_document_path("datasets/D1/versions")


if __name__ == '__main__':
    unittest.main()

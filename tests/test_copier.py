"""Tests for the batched table copy."""

import logging
import threading

import pytest

from mssql2pg.models.migration import TableStatus
from mssql2pg.services.copier import MAX_LOGGED_ROW_ERRORS, BatchCopier
from tests.fakes import FakeExtractor, FakeLoader, make_rows, make_schema


def copy(extractor, loader, table="Users", **kwargs):
    kwargs.setdefault("batch_size", 1000)
    kwargs.setdefault("skip_existing_rows", True)
    return BatchCopier(extractor, loader).copy_table(make_schema(table), **kwargs)


def test_batches_cover_every_row():
    extractor = FakeExtractor({"Users": make_rows(2500)})
    loader = FakeLoader()

    result = copy(extractor, loader)

    assert [(offset, limit) for _, offset, limit in extractor.fetches] == [(0, 1000), (1000, 1000), (2000, 1000)]
    assert result.rows_total == 2500
    assert result.rows_migrated == 2500
    assert result.batches == 3
    assert result.status == TableStatus.COMPLETED
    assert result.target_table == "users"
    assert loader.rows["users"] == make_rows(2500)


def test_zero_rows_opens_no_transaction():
    extractor = FakeExtractor({"Empty": []})
    loader = FakeLoader()

    result = copy(extractor, loader, table="Empty")

    assert result.rows_total == 0
    assert result.rows_migrated == 0
    assert result.status == TableStatus.COMPLETED
    assert loader.transactions == 0
    assert extractor.fetches == []


def test_failing_row_does_not_abort_batch():
    extractor = FakeExtractor({"Users": make_rows(10)})
    loader = FakeLoader(failing_keys=[4])

    result = copy(extractor, loader, batch_size=10)

    assert result.rows_migrated == 9
    assert result.errors == 1
    assert loader.transactions == 1
    assert [row[0] for row in loader.rows["users"]] == [1, 2, 3, 5, 6, 7, 8, 9, 10]


def test_rerun_skips_existing_rows():
    extractor = FakeExtractor({"Users": make_rows(100)})
    loader = FakeLoader(unique_tables=["users"])

    first = copy(extractor, loader, batch_size=30)
    second = copy(extractor, loader, batch_size=30)

    assert (first.rows_migrated, first.errors) == (100, 0)
    assert (second.rows_migrated, second.errors) == (0, 0)
    assert len(loader.rows["users"]) == 100


def test_rerun_counts_duplicates_without_skip_existing():
    extractor = FakeExtractor({"Users": make_rows(20)})
    loader = FakeLoader(unique_tables=["users"])
    copy(extractor, loader)

    second = copy(extractor, loader, skip_existing_rows=False)

    assert (second.rows_migrated, second.errors) == (0, 20)


def test_commit_failure_fails_table_and_keeps_committed_counts():
    extractor = FakeExtractor({"Users": make_rows(2500)})
    loader = FakeLoader(fail_commit_on=2)

    result = copy(extractor, loader)

    assert result.status == TableStatus.FAILED
    assert "server closed the connection" in result.failure_reason
    assert result.rows_migrated == 1000
    assert result.batches == 1
    assert len(loader.rows["users"]) == 1000


def test_cancellation_keeps_committed_rows_as_completed():
    extractor = FakeExtractor({"Users": make_rows(5000)})
    loader = FakeLoader()
    cancel_event = threading.Event()

    def on_batch(rows_migrated, errors):
        cancel_event.set()

    result = copy(extractor, loader, cancel_event=cancel_event, on_batch=on_batch)

    assert result.status == TableStatus.COMPLETED
    assert result.rows_migrated == 1000
    assert len(extractor.fetches) == 1


def test_callbacks_report_count_and_committed_batches():
    extractor = FakeExtractor({"Users": make_rows(25)})
    loader = FakeLoader(failing_keys=[3, 17])
    counts, batches = [], []

    copy(extractor, loader, batch_size=10, on_count=counts.append,
         on_batch=lambda migrated, errors: batches.append((migrated, errors)))

    assert counts == [25]
    assert batches == [(9, 1), (9, 1), (5, 0)]


def test_short_page_ends_copy():
    extractor = FakeExtractor({"Users": make_rows(5)})
    extractor.count_rows = lambda schema: 8  # rows deleted after counting
    loader = FakeLoader()

    result = copy(extractor, loader, batch_size=5)

    assert result.rows_total == 8
    assert result.rows_migrated == 5
    assert result.status == TableStatus.COMPLETED


def test_only_first_row_errors_are_logged(caplog):
    extractor = FakeExtractor({"Users": make_rows(20)})
    loader = FakeLoader(failing_keys=range(1, 11))

    with caplog.at_level(logging.WARNING, logger="mssql2pg.services.copier"):
        result = copy(extractor, loader, batch_size=5)

    assert result.errors == 10
    row_errors = [r for r in caplog.records if "Error inserting row" in r.getMessage()]
    assert len(row_errors) == MAX_LOGGED_ROW_ERRORS


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        copy(FakeExtractor({"Users": make_rows(1)}), FakeLoader(), batch_size=0)

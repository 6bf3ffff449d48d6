#!/usr/bin/env python3
"""Tests for the two-path ingestion adapter."""
import pytest

from tsfixture.errors import AppendError, CommitError
from tsfixture.generators import gen_series
from tsfixture.ingest import IngestionAdapter, ingest
from tsfixture.metrics import IngestMetrics
from tsfixture.series import SeriesFixture
from tsfixture.storage import MemHead, NO_REF


class RecordingAppender:
    """Stub appender recording every call; fast appends can be forced to fail."""

    def __init__(self, fail_fast=False, fail_full_at=None, fail_commit=False):
        self.fail_fast = fail_fast
        self.fail_full_at = fail_full_at
        self.fail_commit = fail_commit
        self.appended = []
        self.calls = []
        self.commits = 0
        self.refs = {}

    def fast_append(self, ref, t, v):
        self.calls.append(("fast", ref, t))
        if self.fail_fast:
            raise RuntimeError("stale reference")
        self.appended.append((ref, t, v))

    def full_append(self, labels, t, v):
        self.calls.append(("full", labels, t))
        if self.fail_full_at is not None and t == self.fail_full_at:
            raise RuntimeError("out of bounds")
        ref = self.refs.setdefault(labels, len(self.refs) + 1)
        self.appended.append((ref, t, v))
        return ref

    def commit(self):
        self.commits += 1
        if self.fail_commit:
            raise RuntimeError("disk full")

    def rollback(self):
        pass


def test_first_sample_uses_full_append_then_fast():
    fixtures = gen_series(2, 2, 0, 4, seed=1)
    appender = RecordingAppender()

    stats = ingest(appender, fixtures)

    kinds = [c[0] for c in appender.calls]
    assert kinds == ["full", "fast", "fast", "fast"] * 2
    assert stats.samples == 8
    assert stats.full_appends == 2
    assert stats.fast_appends == 6
    assert stats.fallbacks == 0
    assert appender.commits == 1


def test_reference_not_shared_between_series():
    fixtures = gen_series(3, 1, 0, 2)
    appender = RecordingAppender()

    ingest(appender, fixtures)

    fast_refs = [c[1] for c in appender.calls if c[0] == "fast"]
    assert fast_refs == [1, 2, 3]
    assert all(c[1] != NO_REF for c in appender.calls if c[0] == "fast")


def test_fast_append_failure_falls_back_without_loss():
    fixtures = gen_series(3, 2, 10, 20, seed=3)
    appender = RecordingAppender(fail_fast=True)
    metrics = IngestMetrics()

    stats = ingest(appender, fixtures, metrics)

    expected = [(s.t, s.v) for f in fixtures for s in f.samples]
    assert [(t, v) for _, t, v in appender.appended] == expected
    assert stats.samples == 30
    assert stats.full_appends == 30
    assert stats.fast_appends == 0
    assert stats.fallbacks == 27
    assert appender.commits == 1

    assert metrics.value("ingest_appends_total", {"path": "full"}) == 30
    assert metrics.value("ingest_appends_total", {"path": "fast"}) == 0
    assert metrics.value("ingest_fast_append_fallbacks_total") == 27
    assert metrics.value("ingest_commits_total", {"outcome": "ok"}) == 1


def test_full_append_failure_propagates():
    appender = RecordingAppender()
    adapter = IngestionAdapter(appender)
    adapter.append_series(gen_series(1, 1, 0, 5)[0])

    appender.fail_full_at = 0
    with pytest.raises(AppendError) as excinfo:
        adapter.append_series(SeriesFixture.from_points({"labelName": "x"}, [(0, 1.0)]))

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    # Samples appended for earlier series stay appended
    assert len(appender.appended) == 5
    assert appender.commits == 0


def test_commit_failure_is_reported():
    appender = RecordingAppender(fail_commit=True)
    metrics = IngestMetrics()

    with pytest.raises(CommitError):
        ingest(appender, gen_series(1, 1, 0, 3), metrics)

    assert appender.commits == 1
    assert metrics.value("ingest_commits_total", {"outcome": "error"}) == 1


def test_session_commits_once():
    appender = RecordingAppender()
    adapter = IngestionAdapter(appender)
    adapter.ingest(gen_series(1, 1, 0, 2))

    with pytest.raises(CommitError):
        adapter.ingest(gen_series(1, 1, 0, 2))
    assert appender.commits == 1


def test_ingest_into_head():
    head = MemHead()
    fixtures = gen_series(4, 3, 0, 6, seed=5)

    stats = ingest(head.appender(), fixtures)

    assert stats.series == 4
    assert head.num_series == 4
    assert head.num_samples == 24
    assert head.min_time() == 0
    assert head.max_time() == 5
    stored = dict(head.series())
    for f in fixtures:
        assert stored[f.labels] == list(f.samples)


def test_stale_reference_on_real_head_falls_back():
    head = MemHead()
    fixture = SeriesFixture.from_points({"job": "a"}, [(1, 1.0), (2, 2.0)])

    class ForgetfulAppender:
        """Hands out references the head has never issued."""

        def __init__(self, inner):
            self.inner = inner

        def fast_append(self, ref, t, v):
            return self.inner.fast_append(ref, t, v)

        def full_append(self, labels, t, v):
            return self.inner.full_append(labels, t, v) + 1000

        def commit(self):
            self.inner.commit()

        def rollback(self):
            self.inner.rollback()

    stats = ingest(ForgetfulAppender(head.appender()), [fixture])

    assert stats.fallbacks == 1
    assert dict(head.series())[fixture.labels] == list(fixture.samples)


def test_out_of_order_full_append_fails():
    head = MemHead()
    ingest(head.appender(), [SeriesFixture.from_points({"job": "a"}, [(5, 1.0)])])

    with pytest.raises(AppendError):
        ingest(head.appender(), [SeriesFixture.from_points({"job": "a"}, [(3, 1.0)])])

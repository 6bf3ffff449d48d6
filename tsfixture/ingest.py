"""Ingestion of series fixtures through the two-path append protocol."""
import time
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from tsfixture.errors import AppendError, CommitError
from tsfixture.metrics import IngestMetrics
from tsfixture.series import SeriesFixture
from tsfixture.storage import NO_REF, Appender

logger = logging.getLogger(__name__)


@dataclass
class IngestStats:
    """Counts of one ingestion session."""
    series: int = 0
    samples: int = 0
    fast_appends: int = 0
    full_appends: int = 0
    fallbacks: int = 0


class IngestionAdapter:
    """
    Drives an appender with fixtures, one append session per adapter.

    Each series starts without a reference. The first sample goes through
    full_append(), which yields the series reference; later samples try
    fast_append() with it. Any fast-append failure falls back to
    full_append() for that same sample, so no sample is dropped or
    appended twice. full_append() failures and commit failures are raised
    to the caller; nothing is retried or rolled back here.
    """

    def __init__(self, appender: Appender, metrics: Optional[IngestMetrics] = None):
        self.appender = appender
        self.metrics = metrics
        self.stats = IngestStats()
        self.committed = False

    def append_series(self, fixture: SeriesFixture):
        """Append every sample of one fixture in iterator order."""
        ref = NO_REF
        it = fixture.iterator()

        while it.advance():
            t, v = it.current()

            if ref != NO_REF:
                try:
                    self.appender.fast_append(ref, t, v)
                except Exception as e:
                    logger.debug(f"Fast append failed for {fixture.label_key()} at {t}: {e}")
                    self.stats.fallbacks += 1
                    if self.metrics:
                        self.metrics.record_fallback()
                else:
                    self._count("fast")
                    continue

            try:
                ref = self.appender.full_append(fixture.labels, t, v)
            except Exception as e:
                raise AppendError(f"appending {fixture.label_key()} at {t}: {e}") from e
            self._count("full")

        if (err := it.error()) is not None:
            raise AppendError(f"iterating {fixture.label_key()}: {err}") from err

        self.stats.series += 1
        if self.metrics:
            self.metrics.record_series()

    def _count(self, path: str):
        self.stats.samples += 1
        if path == "fast":
            self.stats.fast_appends += 1
        else:
            self.stats.full_appends += 1
        if self.metrics:
            self.metrics.record_append(path)

    def commit(self):
        """Commit the session as one unit."""
        commit_start = time.time()
        try:
            self.appender.commit()
        except Exception as e:
            if self.metrics:
                self.metrics.record_commit("error", time.time() - commit_start)
            raise CommitError(f"committing {self.stats.samples} samples: {e}") from e

        self.committed = True
        if self.metrics:
            self.metrics.record_commit("ok", time.time() - commit_start)

    def ingest(self, fixtures: Iterable[SeriesFixture]) -> IngestStats:
        """Append all fixtures, then commit once."""
        if self.committed:
            raise CommitError("append session already committed")

        for fixture in fixtures:
            self.append_series(fixture)
        self.commit()

        logger.info(
            f"Ingested {self.stats.series} series, {self.stats.samples} samples "
            f"(fast={self.stats.fast_appends}, full={self.stats.full_appends}, "
            f"fallbacks={self.stats.fallbacks})"
        )
        return self.stats


def ingest(appender: Appender, fixtures: Iterable[SeriesFixture], metrics: Optional[IngestMetrics] = None) -> IngestStats:
    """Run one append session over fixtures."""
    return IngestionAdapter(appender, metrics).ingest(fixtures)

"""
Storage collaborator contracts and a minimal reference backend.

The harness only depends on the Protocols below. MemHead, BlockCompactor
and DB implement them with in-memory state and plain JSON block files so
fixtures can be ingested and materialized without a real storage engine.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

from pydantic import BaseModel, Field

from tsfixture.config import DBOptions, HeadOptions
from tsfixture.errors import CompactionError
from tsfixture.series import Labels, Sample, label_key, labels_from_map

logger = logging.getLogger(__name__)

# Reference value meaning "no reference yet, use a full append".
NO_REF = 0

META_FILENAME = "meta.json"
SERIES_FILENAME = "series.json"


class StorageError(Exception):
    """Base class for reference backend failures."""


class UnknownReferenceError(StorageError):
    """A fast append used a reference the buffer does not know."""


class OutOfOrderSampleError(StorageError):
    """A sample is older than the newest sample of its series."""


class AppenderClosedError(StorageError):
    """The appender was already committed or rolled back."""


class Appender(Protocol):
    """Two-path append capability of an ingestion buffer."""

    def fast_append(self, ref: int, t: int, v: float) -> None:
        """Append by cached reference; raises when the reference is not usable."""
        ...

    def full_append(self, labels: Labels, t: int, v: float) -> int:
        """Append by label set; returns the series reference."""
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


class Head(Protocol):
    """Mutable ingestion buffer."""

    def appender(self) -> Appender:
        ...

    def min_time(self) -> Optional[int]:
        ...

    def max_time(self) -> Optional[int]:
        ...

    def series(self) -> Iterator[Tuple[Labels, List[Sample]]]:
        ...


class Compactor(Protocol):
    """Flushes an ingestion buffer into a durable block."""

    def write(self, dest: str, head: Head, mint: int, maxt: int) -> str:
        """Write samples in [mint, maxt) and return the block id."""
        ...


class _MemSeries:
    def __init__(self, ref: int, labels: Labels):
        self.ref = ref
        self.labels = labels
        self.chunks: List[List[Sample]] = []

    @property
    def samples(self) -> List[Sample]:
        return [s for chunk in self.chunks for s in chunk]

    def last_t(self) -> Optional[int]:
        return self.chunks[-1][-1].t if self.chunks else None

    def append(self, sample: Sample, chunk_range: int):
        """Add a sample, cutting a new chunk when it leaves the current window."""
        if not self.chunks or sample.t // chunk_range != self.chunks[-1][0].t // chunk_range:
            self.chunks.append([])
        self.chunks[-1].append(sample)


class MemHead:
    """In-memory ingestion buffer keyed by canonical label sets."""

    def __init__(self, options: Optional[HeadOptions] = None):
        self.options = options or HeadOptions()
        self._by_ref: Dict[int, _MemSeries] = {}
        self._by_labels: Dict[Labels, _MemSeries] = {}
        self._next_ref = 1
        self._min_t: Optional[int] = None
        self._max_t: Optional[int] = None
        self.closed = False

    def appender(self) -> HeadAppender:
        return HeadAppender(self)

    def min_time(self) -> Optional[int]:
        return self._min_t

    def max_time(self) -> Optional[int]:
        return self._max_t

    @property
    def num_series(self) -> int:
        return len(self._by_ref)

    @property
    def num_samples(self) -> int:
        return sum(len(c) for s in self._by_ref.values() for c in s.chunks)

    @property
    def num_chunks(self) -> int:
        return sum(len(s.chunks) for s in self._by_ref.values())

    def chunks(self, labels: Labels) -> List[List[Sample]]:
        """Committed chunks of one series, aligned to chunk_range windows."""
        s = self._by_labels.get(labels)
        return [list(c) for c in s.chunks] if s is not None else []

    def series(self) -> Iterator[Tuple[Labels, List[Sample]]]:
        """Committed series in label order."""
        for labels in sorted(self._by_labels):
            yield labels, list(self._by_labels[labels].samples)

    def get_or_create(self, labels: Labels) -> _MemSeries:
        s = self._by_labels.get(labels)
        if s is None:
            s = _MemSeries(self._next_ref, labels)
            self._next_ref += 1
            self._by_labels[labels] = s
            self._by_ref[s.ref] = s
        return s

    def get_by_ref(self, ref: int) -> Optional[_MemSeries]:
        return self._by_ref.get(ref)

    def apply(self, pending: List[Tuple[_MemSeries, Sample]]):
        """Apply committed samples and widen the head time range."""
        for s, sample in pending:
            s.append(sample, self.options.chunk_range)
            if self._min_t is None or sample.t < self._min_t:
                self._min_t = sample.t
            if self._max_t is None or sample.t > self._max_t:
                self._max_t = sample.t

    def close(self):
        self.closed = True


class HeadAppender:
    """Buffers appends against a MemHead until commit()."""

    def __init__(self, head: MemHead):
        self.head = head
        self._pending: List[Tuple[_MemSeries, Sample]] = []
        self._pending_last: Dict[int, int] = {}
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise AppenderClosedError("appender already committed or rolled back")

    def _add(self, s: _MemSeries, t: int, v: float):
        last = self._pending_last.get(s.ref, s.last_t())
        if last is not None and t < last:
            raise OutOfOrderSampleError(
                f"sample at {t} older than {last} for series {label_key(s.labels)}"
            )
        self._pending.append((s, Sample(t, v)))
        self._pending_last[s.ref] = t

    def fast_append(self, ref: int, t: int, v: float) -> None:
        self._check_open()
        s = self.head.get_by_ref(ref)
        if s is None:
            raise UnknownReferenceError(f"unknown series reference {ref}")
        self._add(s, t, v)

    def full_append(self, labels: Labels, t: int, v: float) -> int:
        self._check_open()
        if isinstance(labels, dict):
            labels = labels_from_map(labels)
        if not labels:
            raise StorageError("empty label set")
        s = self.head.get_or_create(tuple(labels))
        self._add(s, t, v)
        return s.ref

    def commit(self) -> None:
        self._check_open()
        self.head.apply(self._pending)
        logger.debug(f"Committed {len(self._pending)} samples")
        self._pending = []
        self._closed = True

    def rollback(self) -> None:
        self._check_open()
        self._pending = []
        self._closed = True


class BlockStats(BaseModel):
    num_samples: int = 0
    num_series: int = 0


class BlockCompaction(BaseModel):
    level: int = 1
    sources: List[str] = Field(default_factory=list)


class BlockMeta(BaseModel):
    """Contents of a block's meta.json."""
    ulid: str
    min_time: int
    max_time: int
    stats: BlockStats = Field(default_factory=BlockStats)
    compaction: BlockCompaction = Field(default_factory=BlockCompaction)
    version: int = 1


class BlockCompactor:
    """Writes the contents of a head into a block directory."""

    def __init__(self, ranges: Optional[List[int]] = None):
        self.ranges = ranges or [1000000]

    def write(self, dest: str, head: Head, mint: int, maxt: int) -> str:
        """
        Persist every sample with mint <= t < maxt as a new block under dest.

        The block id is derived from the block content, so writing the
        same content twice yields the same block. The span maxt - mint may
        not exceed the largest configured compaction range.

        Returns:
            The block id (name of the block directory)
        """
        if maxt - mint > max(self.ranges):
            raise CompactionError(
                f"block range [{mint}, {maxt}) exceeds largest compaction range {max(self.ranges)}"
            )

        series = []
        for labels, samples in head.series():
            selected = [[s.t, s.v] for s in samples if mint <= s.t < maxt]
            if selected:
                series.append({"labels": dict(labels), "samples": selected})

        if not series:
            raise CompactionError(f"no samples in [{mint}, {maxt}) to compact")

        payload = json.dumps({"min_time": mint, "max_time": maxt, "series": series}, sort_keys=True)
        block_id = hashlib.sha256(payload.encode()).hexdigest()[:26].upper()

        meta = BlockMeta(
            ulid=block_id,
            min_time=mint,
            max_time=maxt,
            stats=BlockStats(
                num_samples=sum(len(s["samples"]) for s in series),
                num_series=len(series),
            ),
            compaction=BlockCompaction(level=1, sources=[block_id]),
        )

        block_dir = os.path.join(dest, block_id)
        if os.path.isdir(block_dir):
            logger.info(f"Block {block_id} already present in {dest}")
            return block_id

        try:
            tmp_dir = tempfile.mkdtemp(prefix=f"{block_id}.tmp-", dir=dest)
            with open(os.path.join(tmp_dir, SERIES_FILENAME), "w") as f:
                json.dump(series, f)
            with open(os.path.join(tmp_dir, META_FILENAME), "w") as f:
                f.write(meta.model_dump_json(indent=2))
            os.rename(tmp_dir, block_dir)
        except OSError as e:
            raise CompactionError(f"writing block {block_id} to {dest}: {e}") from e

        logger.info(
            f"Wrote block {block_id}: {meta.stats.num_series} series, "
            f"{meta.stats.num_samples} samples, [{mint}, {maxt})"
        )
        return block_id


def read_block_meta(block_dir: str) -> BlockMeta:
    """Load the meta.json of a block directory."""
    with open(os.path.join(block_dir, META_FILENAME), "r") as f:
        return BlockMeta.model_validate_json(f.read())


def read_block_series(block_dir: str) -> List[Tuple[Labels, List[Sample]]]:
    """Load the series of a block directory in label order."""
    with open(os.path.join(block_dir, SERIES_FILENAME), "r") as f:
        raw = json.load(f)
    series = [
        (labels_from_map(s["labels"]), [Sample(int(t), float(v)) for t, v in s["samples"]])
        for s in raw
    ]
    return sorted(series, key=lambda item: item[0])


class DB:
    """Storage instance rooted in a directory."""

    def __init__(self, root: str, options: Optional[DBOptions] = None):
        self.dir = root
        self.options = options or DBOptions()
        self.head = MemHead(self.options.head)
        self.closed = False

    def appender(self) -> HeadAppender:
        return self.head.appender()

    def blocks(self) -> List[BlockMeta]:
        """Metas of all blocks under the root, oldest first."""
        metas = []
        for name in os.listdir(self.dir):
            path = os.path.join(self.dir, name)
            if os.path.isfile(os.path.join(path, META_FILENAME)):
                metas.append(read_block_meta(path))
        return sorted(metas, key=lambda m: (m.min_time, m.ulid))

    def close(self):
        if self.closed:
            return
        self.head.close()
        self.closed = True
        logger.info(f"Closed storage at {self.dir}")


def open_db(root: str, options: Optional[DBOptions] = None) -> DB:
    """Open (creating if needed) a storage instance at root."""
    os.makedirs(root, exist_ok=True)
    db = DB(root, options)
    logger.info(f"Opened storage at {root}")
    return db

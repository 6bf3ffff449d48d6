"""Data structures for fixture series and their samples."""
import re
from bisect import bisect_left
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from tsfixture.errors import ConstructionError

Labels = Tuple[Tuple[str, str], ...]

_LABEL_NAME_RE = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


@dataclass(frozen=True)
class Sample:
    """A single timestamped value."""
    t: int
    v: float


def labels_from_map(labels: Mapping[str, str]) -> Labels:
    """Canonical label tuple, sorted by label name."""
    return tuple(sorted(labels.items()))


def validate_label_names(labels: Mapping[str, str]) -> bool:
    """
    Validate label names are Prometheus-safe.

    Label names must match [a-zA-Z_][a-zA-Z0-9_]*
    """
    for name in labels.keys():
        if not _LABEL_NAME_RE.match(name):
            return False

    return True


def label_key(labels) -> str:
    """Generate a stable key from sorted labels."""
    items = labels.items() if isinstance(labels, Mapping) else labels
    return ",".join(f"{k}={v}" for k, v in sorted(items))


class ListSeriesIterator:
    """
    Seekable cursor over a fixed, time-ordered list of samples.

    The cursor starts before the first element; advance() must be called
    before current(). seek() only ever moves forward: it searches the
    remaining window [max(position, 0), len) and never rewinds. Callers
    that need to go back construct a new iterator.
    """

    def __init__(self, samples: Tuple[Sample, ...]):
        self._samples = samples
        self._pos = -1

    @property
    def position(self) -> int:
        return self._pos

    def advance(self) -> bool:
        """Move to the next sample; return whether one exists."""
        if self._pos < len(self._samples):
            self._pos += 1
        return self._pos < len(self._samples)

    def current(self) -> Tuple[int, float]:
        """Return (timestamp, value) at the cursor."""
        if not 0 <= self._pos < len(self._samples):
            raise IndexError(f"iterator not positioned on a sample (position {self._pos})")
        s = self._samples[self._pos]
        return s.t, s.v

    def seek(self, t: int) -> bool:
        """
        Advance to the first sample with timestamp >= t.

        Binary search restricted to the samples at or after the current
        position. A target earlier than the current sample leaves the
        cursor unmoved.

        Returns:
            Whether the cursor now points at a sample.
        """
        lo = max(self._pos, 0)
        self._pos = bisect_left(self._samples, t, lo=lo, key=attrgetter("t"))
        return self._pos < len(self._samples)

    def error(self) -> Optional[Exception]:
        """In-memory iteration cannot fail."""
        return None

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        while self.advance():
            yield self.current()


@dataclass(frozen=True)
class SeriesFixture:
    """One synthetic series: a label set and its ordered samples."""
    labels: Labels
    samples: Tuple[Sample, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if isinstance(self.labels, Mapping):
            object.__setattr__(self, "labels", labels_from_map(self.labels))
        object.__setattr__(self, "samples", tuple(self.samples))

        if not self.labels:
            raise ConstructionError("series fixture needs at least one label")
        names = [name for name, _ in self.labels]
        if len(names) != len(set(names)):
            raise ConstructionError(f"duplicate label names in {names}")
        if not validate_label_names(dict(self.labels)):
            raise ConstructionError(f"invalid label name in {names}")
        for prev, cur in zip(self.samples, self.samples[1:]):
            if cur.t < prev.t:
                raise ConstructionError(
                    f"samples out of order for {label_key(self.labels)}: {cur.t} after {prev.t}"
                )

    def label_map(self) -> Dict[str, str]:
        return dict(self.labels)

    def label_key(self) -> str:
        return label_key(self.labels)

    def iterator(self) -> ListSeriesIterator:
        """Fresh cursor positioned before the first sample."""
        return ListSeriesIterator(self.samples)

    @classmethod
    def from_points(cls, labels: Mapping[str, str], points: Iterable[Tuple[int, float]]) -> "SeriesFixture":
        """Build a fixture from (timestamp, value) pairs."""
        return cls(labels_from_map(labels), tuple(Sample(int(t), float(v)) for t, v in points))

"""Label space generation and cardinality control."""
from typing import List
import hashlib

from tsfixture.series import Labels, SeriesFixture, label_key

DEFAULT_LABEL_NAME = "labelName"
DEFAULT_LABEL_VALUE = "labelValue"


def generate_labels(index: int, label_count: int) -> Labels:
    """
    Build the canonical label set for the series at ``index``.

    The base label carries the series index; the remaining labels are
    named by position (``labelName1``, ``labelName2``, ...) with a fixed
    value, until ``label_count`` distinct names exist. The result depends
    only on the arguments.

    Args:
        index: Series index within the batch
        label_count: Number of distinct label names wanted

    Returns:
        Label pairs sorted by name (empty when label_count <= 0)
    """
    if label_count <= 0:
        return ()

    labels = {DEFAULT_LABEL_NAME: str(index)}
    j = 1
    while len(labels) < label_count:
        labels[f"{DEFAULT_LABEL_NAME}{j}"] = f"{DEFAULT_LABEL_VALUE}{j}"
        j += 1

    return tuple(sorted(labels.items()))


def generate_label_space(total_series: int, label_count: int) -> List[Labels]:
    """Label sets for every series index in [0, total_series)."""
    if total_series <= 0 or label_count <= 0:
        return []
    return [generate_labels(i, label_count) for i in range(total_series)]


def apply_series_cap(
    fixtures: List[SeriesFixture],
    cap: int,
    strategy: str
) -> List[SeriesFixture]:
    """
    Apply series cap using specified sampling strategy.

    Args:
        fixtures: Full list of generated fixtures
        cap: Maximum number of series
        strategy: Sampling strategy ("first_n" or "hash")

    Returns:
        Sampled list of fixtures
    """
    if strategy == "hash":
        # Hash-based sampling for deterministic selection
        def labels_hash(fixture: SeriesFixture) -> int:
            return int(hashlib.md5(label_key(fixture.labels).encode()).hexdigest(), 16)

        return sorted(fixtures, key=labels_hash)[:cap]

    return fixtures[:cap]


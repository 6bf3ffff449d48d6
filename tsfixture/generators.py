"""Synthetic series fixture generation."""
from typing import List, Optional
import logging
import numpy as np

from tsfixture.cardinality import apply_series_cap, generate_label_space
from tsfixture.config import FixtureSpec
from tsfixture.series import Sample, SeriesFixture

logger = logging.getLogger(__name__)


class FixtureGenerator:
    """
    Builds batches of series fixtures with controlled cardinality.

    Labels and timestamps are a pure function of the generate() arguments.
    Sample values come from the generator's random source and are only
    reproducible when a seed is given.
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        # Initialize RNG; an explicit generator lets callers share one value source
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def generate(
        self,
        total_series: int,
        label_count: int,
        min_time: int,
        max_time: int
    ) -> List[SeriesFixture]:
        """
        Generate ``total_series`` fixtures with ``label_count`` labels each.

        Every fixture gets one sample per integer timestamp in
        [min_time, max_time). Zero (or negative) counts give an empty list;
        an empty or inverted time range gives fixtures without samples.
        """
        label_space = generate_label_space(total_series, label_count)
        timestamps = range(min_time, max_time)

        fixtures = []
        for labels in label_space:
            values = self.rng.random(len(timestamps))
            samples = tuple(Sample(t, float(v)) for t, v in zip(timestamps, values))
            fixtures.append(SeriesFixture(labels, samples))

        logger.debug(
            f"Generated {len(fixtures)} series x {len(timestamps)} samples "
            f"({label_count} labels, [{min_time}, {max_time}))"
        )
        return fixtures

    def generate_from_spec(self, spec: FixtureSpec) -> List[SeriesFixture]:
        """Generate a batch described by a validated fixture spec."""
        fixtures = self.generate(spec.total_series, spec.label_count, spec.min_time, spec.max_time)

        if spec.series_cap is not None and len(fixtures) > spec.series_cap:
            fixtures = apply_series_cap(fixtures, spec.series_cap, spec.sampling_strategy)
            logger.info(f"Series cap applied: kept {len(fixtures)} series ({spec.sampling_strategy})")

        return fixtures


def gen_series(
    total_series: int,
    label_count: int,
    min_time: int,
    max_time: int,
    seed: Optional[int] = None
) -> List[SeriesFixture]:
    """Generate series with a given number of labels and samples."""
    return FixtureGenerator(seed).generate(total_series, label_count, min_time, max_time)


def create_generator(spec: FixtureSpec) -> FixtureGenerator:
    """Factory function seeding a generator from a fixture spec."""
    return FixtureGenerator(spec.seed)

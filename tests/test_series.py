#!/usr/bin/env python3
"""Tests for the seekable sample iterator and fixture invariants."""
import pytest

from tsfixture.errors import ConstructionError
from tsfixture.series import ListSeriesIterator, Sample, SeriesFixture, label_key, labels_from_map


def make_iterator(timestamps):
    return ListSeriesIterator(tuple(Sample(t, float(i)) for i, t in enumerate(timestamps)))


def test_advance_visits_every_sample_in_order():
    samples = tuple(Sample(t, t * 1.5) for t in [1, 2, 2, 5, 9])
    it = ListSeriesIterator(samples)

    seen = []
    while it.advance():
        seen.append(it.current())

    assert seen == [(s.t, s.v) for s in samples]
    assert not it.advance()
    assert it.error() is None


def test_current_requires_advance():
    it = make_iterator([1, 2])
    with pytest.raises(IndexError):
        it.current()

    assert it.advance() and it.advance()
    assert not it.advance()
    with pytest.raises(IndexError):
        it.current()


def test_empty_iterator():
    it = make_iterator([])
    assert not it.advance()
    assert not make_iterator([]).seek(0)


def test_seek_from_start():
    it = make_iterator([10, 20, 30, 40])

    assert it.seek(15)
    assert it.current()[0] == 20
    assert it.position == 1


def test_seek_exact_and_before_first():
    it = make_iterator([10, 20, 30])
    assert it.seek(10)
    assert it.position == 0

    it = make_iterator([10, 20, 30])
    assert it.seek(-5)
    assert it.current()[0] == 10


def test_seek_past_end():
    it = make_iterator([10, 20, 30])
    assert not it.seek(31)
    assert not it.advance()


def test_seek_monotonic_targets():
    timestamps = [0, 3, 3, 7, 8, 12, 20, 21]
    it = make_iterator(timestamps)

    last = -1
    for target in [1, 3, 4, 8, 8, 13, 21]:
        assert it.seek(target)
        expected = next(i for i, t in enumerate(timestamps) if t >= target)
        assert it.position == expected
        assert it.position >= last
        last = it.position


def test_seek_keeps_first_of_ties():
    it = make_iterator([1, 4, 4, 4, 6])
    assert it.seek(4)
    assert it.position == 1


def test_seek_backward_does_not_move():
    it = make_iterator([10, 20, 30, 40])
    assert it.seek(30)
    assert it.position == 2

    assert it.seek(5)
    assert it.position == 2
    assert it.current()[0] == 30


def test_seek_then_advance():
    it = make_iterator([10, 20, 30])
    assert it.seek(20)
    assert it.advance()
    assert it.current()[0] == 30


def test_iteration_protocol():
    it = make_iterator([1, 2, 3])
    it.seek(2)
    # Iteration advances from the current position
    assert [t for t, _ in it] == [3]


def test_fixture_iterator_is_fresh():
    fixture = SeriesFixture.from_points({"job": "a"}, [(1, 1.0), (2, 2.0)])

    first = fixture.iterator()
    assert first.seek(2)
    second = fixture.iterator()
    assert second.position == -1
    assert list(second) == [(1, 1.0), (2, 2.0)]


def test_fixture_invariants():
    with pytest.raises(ConstructionError):
        SeriesFixture((), ())

    with pytest.raises(ConstructionError):
        SeriesFixture.from_points({"a": "1"}, [(2, 0.0), (1, 0.0)])

    with pytest.raises(ConstructionError):
        SeriesFixture((("a", "1"), ("a", "2")), ())

    # Ties are allowed
    fixture = SeriesFixture.from_points({"a": "1"}, [(1, 0.0), (1, 1.0)])
    assert len(fixture.samples) == 2


def test_canonical_labels():
    fixture = SeriesFixture({"z": "1", "a": "2"})
    assert fixture.labels == (("a", "2"), ("z", "1"))
    assert fixture.label_key() == "a=2,z=1"
    assert label_key({"z": "1", "a": "2"}) == label_key(labels_from_map({"a": "2", "z": "1"}))


def test_invalid_label_names_rejected():
    with pytest.raises(ConstructionError):
        SeriesFixture({"has-dash": "x"})

    with pytest.raises(ConstructionError):
        SeriesFixture.from_points({"1job": "x"}, [(0, 1.0)])

"""Unit tests for chart decimation."""

from __future__ import annotations

import pytest

from services.sampler import sample, sample_stride


@pytest.mark.parametrize("length", [0, 1, 5, 100, 101, 102, 150, 199, 250, 1000, 10081])
def test_sample_keeps_last_and_respects_bound(length: int) -> None:
    series = list(range(length))

    sampled = sample(series, 100)

    assert len(sampled) <= 101
    if length:
        assert sampled[-1] == series[-1]
        assert sampled[0] == series[0]
    else:
        assert list(sampled) == []


@pytest.mark.parametrize("length", [7, 101, 102, 250, 999, 10081])
def test_sample_is_idempotent(length: int) -> None:
    series = list(range(length))

    once = sample(series, 100)

    assert sample(once, 100) == once
    assert list(sample(list(once), 100)) == list(once)


def test_sample_selects_on_stride_points_plus_tail() -> None:
    sampled = sample(list(range(10)), 3)

    assert sampled.stride == 4
    assert list(sampled) == [0, 4, 8, 9]


def test_sample_even_division_matches_floor_stride() -> None:
    sampled = sample(list(range(1000)), 100)

    assert sampled.stride == 10
    assert list(sampled)[:3] == [0, 10, 20]
    assert list(sampled)[-2:] == [990, 999]
    assert len(sampled) == 101


def test_short_series_is_returned_whole() -> None:
    series = ["a", "b", "c"]

    assert list(sample(series, 100)) == series


def test_sampled_view_is_restartable() -> None:
    sampled = sample(list(range(50)), 10)

    assert list(sampled) == list(sampled)
    assert sampled[1:3] == [sampled[1], sampled[2]]


def test_sample_accepts_generators() -> None:
    sampled = sample((i for i in range(20)), 5)

    assert sampled[-1] == 19


def test_non_positive_max_points_is_rejected() -> None:
    with pytest.raises(ValueError):
        sample_stride(10, 0)


def test_stride_rounds_up_between_one_and_two_windows() -> None:
    assert sample_stride(150, 100) == 2
    assert len(sample(list(range(150)), 100)) == 76

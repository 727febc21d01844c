"""Point-selection decimation of reading series for charts."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Iterable, Iterator, TypeVar, Union, overload

T = TypeVar("T")


def sample_stride(length: int, max_points: int) -> int:
    """Stride that keeps at most ``max_points`` on-stride items.

    A series of up to ``max_points + 1`` items is already within the display
    bound and is kept whole, which also makes resampling a no-op.
    """
    if max_points <= 0:
        raise ValueError("max_points must be positive.")
    if length <= max_points + 1:
        return 1
    # Rounded up: a floor stride can emit close to 2 * max_points items,
    # breaking the max_points + 1 bound.
    return -(-length // max_points)


class SampledSeries(Sequence):
    """Lazy view selecting every ``stride``-th item plus the final one.

    Nothing is copied; indexing maps straight onto the source, so the view
    can be iterated any number of times.
    """

    def __init__(self, series: Sequence[T], max_points: int) -> None:
        self._series = series
        self.max_points = max_points
        self.stride = sample_stride(len(series), max_points)
        length = len(series)
        on_stride = -(-length // self.stride) if length else 0
        self._tail_extra = length > 0 and (length - 1) % self.stride != 0
        self._length = on_stride + (1 if self._tail_extra else 0)

    def __len__(self) -> int:
        return self._length

    @overload
    def __getitem__(self, index: int) -> Any: ...

    @overload
    def __getitem__(self, index: slice) -> list: ...

    def __getitem__(self, index: Union[int, slice]) -> Any:
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(self._length))]
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError("sampled series index out of range")
        if self._tail_extra and index == self._length - 1:
            return self._series[len(self._series) - 1]
        return self._series[index * self.stride]

    def __iter__(self) -> Iterator[Any]:
        for index in range(self._length):
            yield self[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sequence) or isinstance(other, (str, bytes)):
            return NotImplemented
        return len(self) == len(other) and all(a == b for a, b in zip(self, other))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"SampledSeries(stride={self.stride}, points={self._length})"


def sample(series: Iterable[T], max_points: int) -> SampledSeries:
    """Decimate ``series`` to at most ``max_points + 1`` points, always keeping the last."""
    if not isinstance(series, Sequence):
        series = list(series)
    return SampledSeries(series, max_points)

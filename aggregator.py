import logging
import math
import numbers
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional, Union

import numpy as np

from value_types import SampleRejection

Timestamp = Union[float, datetime]


class SampleRejected(ValueError):
    """Raised by a strict aggregator when a sample violates the ``add`` contract."""

    def __init__(self, reason: SampleRejection, sample_time: float, frequency):
        super().__init__(f"{reason} (time={sample_time}, frequency={frequency})")
        self.reason = reason
        self.sample_time = sample_time
        self.frequency = frequency


@dataclass(frozen=True)
class Sample:
    time: float
    frequency: int


def swallow(accumulator: Sample, other: Sample) -> Sample:
    """Merge ``other`` into ``accumulator`` and return the combined sample.

    Frequencies add up. The merged time is the frequency-weighted interpolation
    between both times, so it always lies between them and leans toward the
    heavier sample.
    """
    total = accumulator.frequency + other.frequency
    if total <= 0:
        raise ValueError(f"Cannot merge samples with total frequency {total}")
    weight = other.frequency / total
    return Sample(accumulator.time + weight * (other.time - accumulator.time), total)


@dataclass(frozen=True)
class Window:
    """Bucket layout of the graph as computed by one ``update()`` call."""

    start: float
    end: float
    span: float
    segment_count: int

    @property
    def segment_span(self) -> float:
        if self.segment_count <= 0:
            return 0.0
        return self.span / self.segment_count

    def segment_start(self, index: int) -> float:
        return self.start + self.segment_span * index

    def segment_end(self, index: int) -> float:
        return self.segment_start(index + 1)

    def index_of(self, t: float) -> Optional[int]:
        """Return the bucket holding ``t``, or None when it is outside every bucket."""
        for index in range(self.segment_count):
            if t < self.segment_start(index):
                return None
            if t < self.segment_end(index):
                return index
        return None


def expire(points: list, start: float) -> list:
    """Return the suffix of ``points`` whose times are not earlier than ``start``."""
    index = 0
    while index < len(points) and points[index].time < start:
        index += 1
    return points[index:]


def merge_segments(points: list, window: Window) -> list:
    """Collapse ``points`` to at most one sample per bucket of ``window``.

    ``points`` must be time-ordered and already trimmed to ``window.start``.
    Samples past the last bucket are carried over untouched.
    """
    merged = []
    index = 0
    count = len(points)
    for segment in range(window.segment_count):
        if index >= count:
            break
        segment_end = window.segment_end(segment)
        current = points[index]
        if current.time >= segment_end:
            continue
        index += 1
        while index < count and points[index].time < segment_end:
            current = swallow(current, points[index])
            index += 1
        merged.append(current)
    merged.extend(points[index:])
    return merged


class WindowedAggregator:
    """Time-windowed, downsampled store of frequency samples.

    - ``add`` inserts a sample in time order; nothing is dropped there.
    - ``update`` moves the window end to now, ages out old samples and merges
      what is left so every segment holds at most one sample.
    - ``segment_frequency`` / ``render_points`` read the result of the last update.

    The window "breathes": it starts at ``min_span`` and grows with the age of
    the oldest sample until it reaches ``max_span``.
    No timers or threads live here; a host calls ``tick`` at its own cadence.
    """

    logger = logging.getLogger("Windowed Aggregator")

    def __init__(
        self,
        min_span: float = 10.0,
        max_span: float = 60.0,
        segment_count: int = 30,
        label_count: int = 4,
        clock: Callable[[], float] = time.time,
        strict: bool = False,
    ):
        self.clock = clock
        self.strict = strict
        self.rejected_count = 0
        self.min_span = 0.0
        self.max_span = 0.0
        self.segment_count = 0
        self.label_count = 0
        self.configure(min_span, max_span, segment_count, label_count)
        self._points: list[Sample] = []
        self._end_time = self.clock()
        self._window = self._current_window()

    def configure(
        self,
        min_span: float,
        max_span: float,
        segment_count: int,
        label_count: int = 0,
    ) -> None:
        """Set window bounds and resolution; applied from the next ``update``."""
        min_span = float(min_span)
        max_span = float(max_span)
        if min_span <= 0:
            raise ValueError(f"min_span must be positive, got {min_span}")
        if max_span < min_span:
            raise ValueError(
                f"max_span ({max_span}) must not be smaller than min_span ({min_span})"
            )
        if int(segment_count) < 0:
            raise ValueError(f"segment_count must be >= 0, got {segment_count}")
        if int(label_count) < 0:
            raise ValueError(f"label_count must be >= 0, got {label_count}")
        self.min_span = min_span
        self.max_span = max_span
        self.segment_count = int(segment_count)
        self.label_count = int(label_count)
        self.logger.debug(
            "Configured min_span=%s max_span=%s segment_count=%s label_count=%s",
            self.min_span,
            self.max_span,
            self.segment_count,
            self.label_count,
        )

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Sample]:
        return iter(tuple(self._points))

    @property
    def points(self) -> tuple:
        return tuple(self._points)

    @property
    def window(self) -> Window:
        return self._window

    @property
    def graph_end_time(self) -> float:
        return self._end_time

    @property
    def graph_time_span(self) -> float:
        if not self._points:
            return self.min_span
        # full-width segment span; the live one depends on this very property
        full_segment = (
            self.max_span / self.segment_count if self.segment_count > 0 else 0.0
        )
        oldest = self._points[0].time
        if oldest < self._end_time - self.max_span + full_segment:
            return self.max_span
        return self._end_time - oldest

    @property
    def graph_start_time(self) -> float:
        return self._end_time - self.graph_time_span

    @property
    def segment_span(self) -> float:
        if self.segment_count <= 0:
            return 0.0
        return self.graph_time_span / self.segment_count

    def _current_window(self) -> Window:
        return Window(
            start=self.graph_start_time,
            end=self._end_time,
            span=self.graph_time_span,
            segment_count=self.segment_count,
        )

    def _reject(self, reason: SampleRejection, sample_time: float, frequency) -> bool:
        self.rejected_count += 1
        if self.strict:
            raise SampleRejected(reason, sample_time, frequency)
        self.logger.warning(
            "Rejected sample (time=%s, frequency=%s): %s",
            sample_time,
            frequency,
            reason,
        )
        return False

    def add(self, sample_time: Timestamp, frequency: int) -> bool:
        """Insert a sample keeping the sequence ordered by time.

        Returns False (or raises ``SampleRejected`` when strict) for samples
        with a non-finite time, stamped in the future, or carrying a
        frequency that is not a positive integer.
        """
        if isinstance(sample_time, datetime):
            sample_time = sample_time.timestamp()
        sample_time = float(sample_time)
        # NaN compares false against everything and would break the ordering
        if not math.isfinite(sample_time):
            return self._reject(SampleRejection.INVALID_TIME, sample_time, frequency)
        if sample_time > self.clock():
            return self._reject(SampleRejection.FUTURE, sample_time, frequency)
        if isinstance(frequency, bool) or not isinstance(frequency, numbers.Integral):
            return self._reject(SampleRejection.NOT_INTEGER, sample_time, frequency)
        if frequency <= 0:
            return self._reject(SampleRejection.NON_POSITIVE, sample_time, frequency)

        sample = Sample(sample_time, int(frequency))
        if not self._points or self._points[-1].time <= sample_time:
            self._points.append(sample)
            return True

        # live streams arrive nearly in order, so scan back from the tail
        index = len(self._points)
        while index > 0 and self._points[index - 1].time > sample_time:
            index -= 1
        self._points.insert(index, sample)
        return True

    def update(self) -> Window:
        """Advance the window to now, expire old samples and merge per segment."""
        self._end_time = self.clock()
        before = len(self._points)

        # the start depends on the oldest sample, so trim until it settles
        while self._points:
            kept = expire(self._points, self.graph_start_time)
            if len(kept) == len(self._points):
                break
            self._points = kept

        self._window = self._current_window()
        expired = before - len(self._points)
        if not self._points:
            if expired:
                self.logger.debug("Expired %d samples, window is empty", expired)
            return self._window

        if self._window.segment_count > 0:
            remaining = len(self._points)
            self._points = merge_segments(self._points, self._window)
            self.logger.debug(
                "Expired %d samples, merged %d into %d",
                expired,
                remaining,
                len(self._points),
            )
        return self._window

    def segment_frequency(self, segment_index: int) -> int:
        window = self._window
        if not 0 <= segment_index < window.segment_count:
            return 0
        segment_start = window.segment_start(segment_index)
        segment_end = window.segment_end(segment_index)
        for point in self._points:
            if point.time >= segment_end:
                return 0
            if point.time >= segment_start:
                return point.frequency
        return 0

    def max_frequency(self) -> int:
        if not self._points:
            return 0
        return max(point.frequency for point in self._points)

    def render_points(self) -> list[tuple[float, float]]:
        """Normalised (x, y) curve: one point per segment centre plus both edges.

        An empty list is returned when there are no segments; y is flat zero
        when there is no frequency to normalise against.
        """
        window = self._window
        count = window.segment_count
        if count <= 0:
            return []
        # one pass over the samples; the first sample seen in a bucket wins
        frequencies = np.zeros(count, dtype=float)
        filled = np.zeros(count, dtype=bool)
        for point in self._points:
            index = window.index_of(point.time)
            if index is not None and not filled[index]:
                frequencies[index] = point.frequency
                filled[index] = True
        peak = self.max_frequency()
        if peak > 0:
            ys = frequencies / peak
        else:
            ys = np.zeros(count)
        xs = (np.arange(count) + 0.5) / count

        points = [(0.0, float(ys[0]))]
        points.extend(zip(xs.tolist(), ys.tolist()))
        points.append((1.0, float(ys[-1])))
        return points

    def frequency_labels(self) -> list[tuple[float, int]]:
        """Evenly spaced (y, frequency) axis labels from zero up to the peak."""
        if self.label_count <= 0:
            return []
        if self.label_count == 1:
            return [(0.0, 0)]
        peak = self.max_frequency()
        positions = np.linspace(0.0, 1.0, self.label_count)
        return [(float(y), int(round(peak * y))) for y in positions]

    def tick(self) -> list[tuple[float, float]]:
        self.update()
        return self.render_points()

    def clear(self) -> None:
        self._points = []
        self._window = self._current_window()

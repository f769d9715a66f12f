"""Lightweight wall-clock profiling for the hatching pipeline.

Provides:
    - timer(): Context manager for a single timed block with optional sink
    - TimerAccumulator: per-stage totals across many blocks (scheduler batches)

Used to measure:
    - Intensity-map extraction per channel
    - Section tracing batches inside the scheduler
    - Path optimisation and G-code / SVG export

Without a sink, timings go to the module logger at DEBUG level.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds).
        If None, logs at DEBUG level.

    Examples
    --------
    >>> timings = {}
    >>> with timer("optimize_path", sink=timings.__setitem__):
    ...     ordered = optimize_path(segments, start)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            logger.debug(f"{name}: {elapsed:.3f} s")


class TimerAccumulator:
    """Accumulate multiple timing measurements for averaging.

    Examples
    --------
    >>> batch_timer = TimerAccumulator("trace_batch")
    >>> for batch in batches:
    ...     with batch_timer.measure():
    ...         trace(batch)
    >>> batch_timer.mean()
    """

    def __init__(self, name: str):
        self.name = name
        self.total_time = 0.0
        self.count = 0

    @contextmanager
    def measure(self):
        """Measure one block and add it to the total."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.total_time += time.perf_counter() - start
            self.count += 1

    def add(self, elapsed: float) -> None:
        """Record a measurement taken elsewhere (spans across callbacks)."""
        self.total_time += elapsed
        self.count += 1

    def mean(self) -> float:
        """Mean seconds per measurement, or 0.0 if none recorded."""
        return self.total_time / self.count if self.count > 0 else 0.0

    def reset(self) -> None:
        self.total_time = 0.0
        self.count = 0

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"

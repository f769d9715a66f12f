"""Chunked, cancellable execution of the per-channel hatching pipeline.

A single worker thread runs one job at a time. Each channel is traced
section by section; the ``checkpoint`` hook of ``trace_channel`` gives
the scheduler its suspension points:

    every section      → yield (``sleep(0)``) if the soft time budget
                         for the current slice is exhausted
    every batch_size   → check the cancel token, report progress

Edits are coalesced: ``request(target)`` (re)arms a debounce timer for
that target and cancels the target's in-flight run, so at most one run
per target is live and a burst of edits produces one recompute.
Targets are a channel name or ``ALL``.

Results are staged privately and published atomically, the whole
channel collection replaced under a lock, only when a run finishes
uncancelled. Per-channel requests leave every other channel's published
segments untouched.

Usage::

    sched = HatchScheduler(job, raster)
    status = sched.run()                 # synchronous, all channels
    sched.update_params(channels={"C": {"contrast": 1.5}})
    sched.wait_idle()                    # only C was recomputed
    sched.results()["C"].segments
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

import numpy as np

from ..utils import hashing, profiler
from ..utils.logging_config import pop_context, push_context
from ..utils.validators import HatchJobV1
from .hatch_tracer import ChannelResult, trace_channel
from .preprocess import RasterImage, extract_channel_intensity

logger = logging.getLogger(__name__)

ALL = "*"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class RunCancelled(Exception):
    """Raised inside a run when its token is cancelled."""

    pass


class CancelToken:
    """Cooperative cancellation flag shared by a run and its owner."""

    def __init__(self) -> None:
        self._flag = threading.Event()

    def cancel(self) -> None:
        self._flag.set()

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise RunCancelled()


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class RunState(Enum):
    """Outcome of one scheduler run."""

    PENDING = auto()
    RUNNING = auto()
    DONE = auto()
    CANCELLED = auto()
    SKIPPED = auto()
    ERROR = auto()


@dataclass
class RunStatus:
    """Progress / outcome snapshot of one run."""

    run_id: int
    target: str
    state: RunState = RunState.PENDING
    channels: tuple[str, ...] = ()
    channel: str = ""
    sections_done: int = 0
    sections_total: int = 0
    message: str = ""


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class HatchScheduler:
    """Debounced, cancellable, per-channel hatching runner.

    Parameters
    ----------
    job : HatchJobV1
        Initial parameter set.
    raster : RasterImage | None
        Canvas-fitted image; runs are skipped while it is ``None``.
    clock : Callable[[], float]
        Monotonic seconds, injectable for tests.
    sleep : Callable[[float], None]
        Called with 0 to yield when a slice exceeds the time budget.
    """

    def __init__(
        self,
        job: HatchJobV1,
        raster: RasterImage | None = None,
        *,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._job = job
        self._raster = raster
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._results: dict[str, ChannelResult] = {}
        self._intensity_cache: dict[str, tuple[str, np.ndarray]] = {}
        self._tokens: dict[str, CancelToken] = {}
        self._timers: dict[str, tuple[int, threading.Timer]] = {}
        self._generation = itertools.count(1)
        self._run_ids = itertools.count(1)
        self._outstanding = 0
        self._closed = False

        self._queue: queue.Queue[str | None] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._progress_cb: Callable[[RunStatus], None] | None = None
        self.history: deque[RunStatus] = deque(maxlen=64)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def job(self) -> HatchJobV1:
        return self._job

    def results(self) -> dict[str, ChannelResult]:
        """Snapshot of the published per-channel results."""
        with self._lock:
            return dict(self._results)

    def line_counts(self) -> dict[str, int]:
        with self._lock:
            return {ch: r.line_count for ch, r in self._results.items()}

    def set_progress_callback(self, fn: Callable[[RunStatus], None]) -> None:
        """Register a callback invoked at batch boundaries and on completion."""
        self._progress_cb = fn

    def _notify(self, status: RunStatus) -> None:
        if self._progress_cb is not None:
            try:
                self._progress_cb(status)
            except Exception as exc:  # noqa: BLE001
                logger.error("Progress callback error: %s", exc)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_raster(self, raster: RasterImage | None) -> None:
        """Replace the source image; cached intensity maps are dropped."""
        with self._lock:
            self._raster = raster
            self._intensity_cache.clear()

    def update_params(self, **overrides) -> list[str]:
        """Apply parameter edits and schedule the affected recomputes.

        Returns
        -------
        list[str]
            Channels that will be recomputed (empty if nothing changed).

        Raises
        ------
        ValueError
            If the edited parameter set fails validation.
        """
        new_job = self._job.with_overrides(**overrides)
        changed = changed_channels(self._job, new_job)
        with self._lock:
            self._job = new_job
            for ch in list(self._results):
                if ch not in new_job.ordered_channels():
                    del self._results[ch]

        if changed is None:
            self.request(ALL)
            return new_job.ordered_channels()
        for ch in changed:
            self.request(ch)
        return changed

    # ------------------------------------------------------------------
    # Asynchronous (debounced) API
    # ------------------------------------------------------------------

    def request(self, target: str = ALL) -> None:
        """Schedule a debounced run for ``target`` (a channel or ``ALL``).

        Any pending timer for the target is replaced and its in-flight
        run cancelled; a run for ``ALL`` also supersedes channel runs.
        """
        delay = self._job.scheduler.debounce_ms / 1000.0
        with self._lock:
            if self._closed:
                logger.debug("Scheduler shut down; request for %s ignored", target)
                return
            previous = self._timers.pop(target, None)
            if previous is not None:
                previous[1].cancel()
            else:
                self._outstanding += 1
            self._cancel_tokens_for(target)

            gen = next(self._generation)
            timer = threading.Timer(delay, self._fire, args=(target, gen))
            timer.daemon = True
            self._timers[target] = (gen, timer)
            self._ensure_worker()
        timer.start()
        logger.debug("Run for %s scheduled in %.0f ms", target, delay * 1000)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no run is pending or active. ``False`` on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout)

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Cancel everything and stop the worker thread.

        Pending timers and queued targets are dropped and live runs are
        cancelled. Requests made afterwards are ignored.
        """
        with self._lock:
            self._closed = True
            for _, timer in self._timers.values():
                timer.cancel()
            self._outstanding -= len(self._timers)
            self._timers.clear()
            while True:
                try:
                    queued = self._queue.get_nowait()
                except queue.Empty:
                    break
                if queued is not None:
                    self._outstanding -= 1
            for token in self._tokens.values():
                token.cancel()
            worker = self._worker
            self._worker = None
            self._idle.notify_all()
        if worker is not None:
            self._queue.put(None)
            worker.join(timeout)

    def _fire(self, target: str, gen: int) -> None:
        with self._lock:
            current = self._timers.get(target)
            if current is None or current[0] != gen:
                return
            del self._timers[target]
        self._queue.put(target)

    def _ensure_worker(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(
                target=self._worker_loop, name="hatch-scheduler", daemon=True
            )
            self._worker.start()

    def _worker_loop(self) -> None:
        while True:
            target = self._queue.get()
            if target is None:
                break
            try:
                if self._closed:
                    logger.info("Scheduler shut down; queued run for %s dropped", target)
                else:
                    self.run(None if target == ALL else [target], target=target)
            except Exception:  # noqa: BLE001
                logger.exception("Scheduled run for %s failed", target)
            finally:
                with self._idle:
                    self._outstanding -= 1
                    self._idle.notify_all()

    def _cancel_tokens_for(self, target: str) -> None:
        for key, token in self._tokens.items():
            if key == target or target == ALL:
                token.cancel()

    # ------------------------------------------------------------------
    # Synchronous API
    # ------------------------------------------------------------------

    def run(self, channels: list[str] | None = None, *, target: str | None = None) -> RunStatus:
        """Trace ``channels`` (default: all enabled) and publish on success.

        Never raises for missing input: without a raster or enabled
        channels the returned status is ``SKIPPED``.  A run superseded by
        a newer one for the same target ends ``CANCELLED`` with nothing
        published.

        Raises
        ------
        ValueError
            If a requested channel is not enabled.
        """
        job = self._job
        raster = self._raster
        target = target or (ALL if channels is None else ",".join(channels))
        status = RunStatus(run_id=next(self._run_ids), target=target)

        if raster is None:
            return self._finish(status, RunState.SKIPPED, "no image loaded")
        channels = job.ordered_channels() if channels is None else list(channels)
        if not channels:
            return self._finish(status, RunState.SKIPPED, "no enabled channels")
        for ch in channels:
            if ch not in job.ordered_channels():
                raise ValueError(f"Channel '{ch}' is not enabled")

        token = CancelToken()
        with self._lock:
            stale = self._tokens.get(target)
            if stale is not None:
                stale.cancel()
            if self._closed:
                token.cancel()
            self._tokens[target] = token

        status.channels = tuple(channels)
        status.state = RunState.RUNNING
        push_context(run=status.run_id)
        staged: dict[str, ChannelResult] = {}
        try:
            for ch in channels:
                token.raise_if_cancelled()
                staged[ch] = self.run_channel(ch, job=job, raster=raster,
                                              token=token, status=status)
        except RunCancelled:
            logger.info("Run %d (%s) cancelled; partial results discarded",
                        status.run_id, target)
            return self._finish(status, RunState.CANCELLED, "superseded")
        finally:
            pop_context(["run", "channel"])
            with self._lock:
                if self._tokens.get(target) is token:
                    del self._tokens[target]

        with self._lock:
            if token.cancelled:
                cancelled = True
            else:
                cancelled = False
                self._results.update(staged)
        if cancelled:
            return self._finish(status, RunState.CANCELLED, "superseded")

        total = sum(r.line_count for r in staged.values())
        for ch, result in staged.items():
            logger.debug("Channel %s fingerprint %s", ch,
                         hashing.hash_segments(result.segments)[:12])
        return self._finish(status, RunState.DONE, f"{total} lines")

    def run_channel(
        self,
        channel: str,
        *,
        job: HatchJobV1 | None = None,
        raster: RasterImage | None = None,
        token: CancelToken | None = None,
        status: RunStatus | None = None,
    ) -> ChannelResult:
        """Trace one channel in batches and return its result (unpublished).

        Raises
        ------
        RunCancelled
            If ``token`` is cancelled at a batch boundary.
        ValueError
            If no raster is available.
        """
        job = job or self._job
        raster = raster or self._raster
        if raster is None:
            raise ValueError("No raster loaded")
        token = token or CancelToken()
        status = status or RunStatus(run_id=0, target=channel)
        push_context(channel=channel)

        timings: dict[str, float] = {}
        with profiler.timer("intensity", sink=timings.__setitem__):
            intensity = self._intensity_map(job, raster, channel)

        batch_size = job.scheduler.batch_size
        budget_s = job.scheduler.time_budget_ms / 1000.0
        batch_timer = profiler.TimerAccumulator(f"trace_batch[{channel}]")
        slice_start = self._clock()
        batch_start = self._clock()
        status.channel = channel
        status.sections_done = 0

        def checkpoint(done: int) -> None:
            nonlocal slice_start, batch_start
            status.sections_done = done
            if self._clock() - slice_start > budget_s:
                self._sleep(0)
                slice_start = self._clock()
            if done % batch_size == 0:
                now = self._clock()
                batch_timer.add(now - batch_start)
                batch_start = now
                logger.debug("Channel %s: %d sections done", channel, done)
                self._notify(status)
                token.raise_if_cancelled()

        with profiler.timer("trace", sink=timings.__setitem__):
            result = trace_channel(intensity, job, channel, checkpoint=checkpoint)
        token.raise_if_cancelled()

        status.sections_total = result.n_scan_lines
        if batch_timer.count:
            timings["batch_mean"] = batch_timer.mean()
        return dataclasses.replace(result, timings=timings)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def intensity_map(self, channel: str) -> np.ndarray:
        """Current (cached) intensity map for an enabled channel.

        Raises
        ------
        ValueError
            If no raster is loaded.
        """
        if self._raster is None:
            raise ValueError("No raster loaded")
        return self._intensity_map(self._job, self._raster, channel)

    def _intensity_map(self, job: HatchJobV1, raster: RasterImage, channel: str) -> np.ndarray:
        params = job.channel_params(channel)
        key = hashing.hash_dict({
            "mode": job.mode,
            "channel": channel,
            "contrast": params.contrast,
            "white_point": params.white_point,
            "raster": hashing.sha256_array(raster.pixels),
        })
        with self._lock:
            cached = self._intensity_cache.get(channel)
        if cached is not None and cached[0] == key:
            return cached[1]
        intensity = extract_channel_intensity(
            raster, channel, contrast=params.contrast,
            white_point=params.white_point, mode=job.mode,
        )
        with self._lock:
            self._intensity_cache[channel] = (key, intensity)
        return intensity

    def _finish(self, status: RunStatus, state: RunState, message: str) -> RunStatus:
        status.state = state
        status.message = message
        self.history.append(status)
        level = logging.DEBUG if state is RunState.CANCELLED else logging.INFO
        logger.log(level, "Run %d (%s): %s, %s", status.run_id, status.target,
                   state.name, message)
        self._notify(status)
        return status


# ---------------------------------------------------------------------------
# Change detection
# ---------------------------------------------------------------------------


def changed_channels(old: HatchJobV1, new: HatchJobV1) -> list[str] | None:
    """Channels whose output differs between two parameter sets.

    Returns
    -------
    list[str] | None
        ``None`` when a shared parameter changed (every channel must be
        recomputed), otherwise the enabled channels whose own tone or
        spacing parameters changed, in drawing order.
    """
    shared = ("canvas", "hatch", "mode", "enabled_channels", "channel_order")
    if any(getattr(old, name) != getattr(new, name) for name in shared):
        return None
    return [
        ch for ch in new.ordered_channels()
        if old.channel_params(ch) != new.channel_params(ch)
    ]

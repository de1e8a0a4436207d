"""
perf.py
=======

Timing and memory statistics for the stages of a surface-array construction.

The creator runs each stage (binning, placement, completion, neighbour
registration) inside :meth:`PerfStats.step`; when profiling is disabled the
steps cost nothing but a couple of attribute checks.

Classes
-------
ProfileInfo
    Time and memory figures of one block.
PerfStats
    Collects :class:`ProfileInfo` for named steps and renders a report.

Functions
---------
profile_block
    Stand-alone context manager measuring a single block.
"""

import contextlib
import logging
import time
import tracemalloc


def _format_time(t: float | None) -> str:
    if t is None:
        return "-"
    if t < 1e-3:
        return f"{t*1e6:.1f} us"
    if t < 1:
        return f"{t*1e3:.2f} ms"
    if t < 60:
        return f"{t:.3f} s"
    return f"{t/60:.2f} min"


def _format_mem(m: int | None) -> str:
    if m is None:
        return "-"
    for unit, scale in (("GiB", 1 << 30), ("MiB", 1 << 20), ("KiB", 1 << 10)):
        if abs(m) >= scale:
            return f"{m/scale:.2f} {unit}"
    return f"{m} B"


class ProfileInfo:
    """
    Results of one profiled block.

    Attributes
    ----------
    time : float or None
        Wall-clock seconds spent in the block.
    memory_start, memory_end, memory_peak : int or None
        ``tracemalloc`` figures in bytes.
    """
    time: float | None
    memory_start: int | None
    memory_end: int | None
    memory_peak: int | None

    def __init__(self):
        self.time = None
        self.memory_start = None
        self.memory_end = None
        self.memory_peak = None

    @property
    def memory_used(self) -> int | None:
        if self.memory_start is None or self.memory_end is None:
            return None
        return self.memory_end - self.memory_start

    @property
    def max_memory_used(self) -> int | None:
        if self.memory_start is None or self.memory_peak is None:
            return None
        return self.memory_peak - self.memory_start

    def __repr__(self):
        return (f"ProfileInfo(Time={_format_time(self.time)}, "
                f"Mem={_format_mem(self.memory_used)}, "
                f"Peak={_format_mem(self.max_memory_used)})")


@contextlib.contextmanager
def _measure(info: ProfileInfo, measure_time: bool, measure_memory: bool):
    if measure_memory:
        info.memory_start, _ = tracemalloc.get_traced_memory()
        tracemalloc.reset_peak()
    t0 = time.perf_counter() if measure_time else None
    try:
        yield info
    finally:
        if t0 is not None:
            info.time = time.perf_counter() - t0
        if measure_memory:
            info.memory_end, info.memory_peak = tracemalloc.get_traced_memory()


@contextlib.contextmanager
def profile_block(measure_time=True, measure_memory=True, tracemalloc_nframe=1):
    """
    Profile one block of code.

    Examples
    --------
    >>> with profile_block(measure_memory=False) as info:
    ...     do_work()
    >>> info.time
    """
    info = ProfileInfo()
    started = False
    if measure_memory and not tracemalloc.is_tracing():
        tracemalloc.start(tracemalloc_nframe)
        started = True
    try:
        with _measure(info, measure_time, measure_memory):
            yield info
    finally:
        if started:
            tracemalloc.stop()


class PerfStats:
    """
    Profile named steps inside a ``with`` block.

    Parameters
    ----------
    time : bool, optional
        Record wall-clock time per step (default True).
    memory : bool, optional
        Record ``tracemalloc`` memory per step (default True).
    tracemalloc_nframe : int, optional
        Frames kept by ``tracemalloc`` when this object starts it.

    Examples
    --------
    >>> stats = PerfStats(time=True, memory=False)
    >>> with stats:
    ...     with stats.step("place"):
    ...         place()
    >>> stats.report(logger, title="cylinder")
    """
    def __init__(self, time=True, memory=True, tracemalloc_nframe=1):
        self.time_enabled = time
        self.memory_enabled = memory
        self.tracemalloc_nframe = tracemalloc_nframe
        self.steps: list[tuple[str, ProfileInfo]] = []
        self.total = ProfileInfo()
        self._active = False
        self._tracemalloc_started = False

    @property
    def enabled(self) -> bool:
        return bool(self.time_enabled or self.memory_enabled)

    def reset(self):
        self.steps.clear()
        self.total = ProfileInfo()

    def __enter__(self):
        self.reset()
        self._active = True
        if self.memory_enabled and not tracemalloc.is_tracing():
            tracemalloc.start(self.tracemalloc_nframe)
            self._tracemalloc_started = True
        if self.memory_enabled:
            self.total.memory_start, _ = tracemalloc.get_traced_memory()
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.time_enabled:
            self.total.time = time.perf_counter() - self._t0
        if self.memory_enabled:
            self.total.memory_end, _ = tracemalloc.get_traced_memory()
            peaks = [info.memory_peak for _, info in self.steps if info.memory_peak is not None]
            self.total.memory_peak = max(peaks) if peaks else self.total.memory_end
            if self._tracemalloc_started:
                tracemalloc.stop()
                self._tracemalloc_started = False
        self._active = False

    @contextlib.contextmanager
    def step(self, name: str):
        """
        Profile one named step; must run inside ``with stats:``.

        Raises
        ------
        RuntimeError
            If called outside the ``with`` block.
        """
        if not self._active:
            raise RuntimeError("PerfStats must be used as a context manager before calling step.")
        info = ProfileInfo()
        try:
            with _measure(info, self.time_enabled, self.memory_enabled):
                yield info
        finally:
            self.steps.append((name, info))

    def report(self, logger: logging.Logger | None = None, title: str = "") -> str:
        """
        Render the collected steps as a table, log it at info level and return it.

        Returns an empty string when profiling is disabled.
        """
        if not self.enabled:
            return ""
        header = f"{'Step':<12} | {'Time':>10} | {'Mem Used':>12} | {'Peak Mem':>12}"
        rule = "-" * len(header)
        lines = [title] if title else []
        lines += [rule, header, rule]
        for name, info in [*self.steps, ("Total", self.total)]:
            lines.append(
                f"{name:<12} | {_format_time(info.time):>10} | "
                f"{_format_mem(info.memory_used):>12} | {_format_mem(info.max_memory_used):>12}"
            )
        lines.append(rule)
        msg = "\n" + "\n".join(lines)
        if logger is not None:
            logger.info(msg)
        return msg

from collections import deque
from time import perf_counter
import math


class FpsCounter:
    def __init__(self, num_samples: int = 120) -> None:
        self._times: deque[float] = deque(maxlen=num_samples)

    def tick(self) -> None:
        self._times.append(perf_counter())

    def get_fps(self) -> int:
        if len(self._times) < 2:
            return 0
        diff: float = self._times[-1] - self._times[0]
        if diff == 0:
            return 0
        return int(math.floor((len(self._times) - 1) / diff))

    def get_min_fps(self) -> int:
        """Rate of the slowest frame in the window."""
        if len(self._times) < 2:
            return 0
        times = list(self._times)
        longest: float = max(b - a for a, b in zip(times, times[1:]))
        if longest == 0:
            return 0
        return int(math.floor(1.0 / longest))


class FrameClock:
    """Seconds elapsed between consecutive tick() calls, 0 on the first tick."""

    def __init__(self) -> None:
        self._last: float | None = None

    def tick(self) -> float:
        now: float = perf_counter()
        dt: float = 0.0 if self._last is None else now - self._last
        self._last = now
        return dt

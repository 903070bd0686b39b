import logging
import time
from typing import Callable, Dict, Optional, TypeVar

logger = logging.getLogger("launch_tracker.performance")

T = TypeVar("T")


class PerformanceMonitor:
    """구간 측정기. create_app() 에서 만들어 필요한 곳에 넘겨준다."""

    def __init__(self, enabled: bool = False, clock: Callable[[], float] = time.perf_counter):
        self.enabled = enabled
        self._clock = clock
        self._marks: Dict[str, float] = {}

    def mark(self, name: str) -> None:
        self._marks[name] = self._clock()

    def measure(self, name: str, start_mark: Optional[str] = None) -> float:
        """ms 단위 소요시간. start_mark 가 없으면 0 기준."""
        end = self._clock()
        start = self._marks.pop(start_mark, 0.0) if start_mark else 0.0
        duration = (end - start) * 1000.0
        if self.enabled:
            logger.debug("%s took %.2fms", name, duration)
        return duration

    def measure_sync(self, name: str, fn: Callable[[], T]) -> T:
        self.mark(f"{name}-start")
        try:
            return fn()
        finally:
            self.measure(name, f"{name}-start")

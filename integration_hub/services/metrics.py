"""Performance samples produced by connection tests and provider calls."""

import resource
import sys
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from pydantic import BaseModel, Field

from ..utils.logging import get_logger

logger = get_logger(__name__)


class PerformanceMetric(BaseModel):
    response_time: float  # ms
    cache_hit_rate: float = 0.0
    memory_usage: float = 0.0  # MB, peak resident set
    cpu_usage: float = 0.0  # CPU seconds / wall seconds over the call
    error_rate: float = 0.0
    throughput: float = 1.0
    integration_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def peak_memory_mb() -> float:
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes on Linux
    return usage / (1024 * 1024) if sys.platform == "darwin" else usage / 1024


class CallTimer:
    """Measures wall and CPU time of one call."""

    def __init__(self) -> None:
        self._wall = time.perf_counter()
        self._cpu = time.process_time()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._wall) * 1000

    def sample(self, error: bool, integration_id: Optional[str] = None) -> PerformanceMetric:
        wall = time.perf_counter() - self._wall
        cpu = time.process_time() - self._cpu
        return PerformanceMetric(
            response_time=wall * 1000,
            memory_usage=peak_memory_mb(),
            cpu_usage=cpu / wall if wall > 0 else 0.0,
            error_rate=1.0 if error else 0.0,
            throughput=1.0,
            integration_id=integration_id,
        )


class MetricsRecorder:
    """Bounded in-memory buffer of performance samples."""

    def __init__(self, max_samples: int = 1000) -> None:
        self._samples: Deque[PerformanceMetric] = deque(maxlen=max_samples)

    def record_metric(self, metric: PerformanceMetric) -> None:
        logger.debug(
            f"Metric recorded: {metric.response_time:.1f}ms error_rate={metric.error_rate}"
        )
        self._samples.append(metric)

    def __len__(self) -> int:
        return len(self._samples)

    def get_analytics(
        self,
        integration_id: Optional[str] = None,
        since: Optional[datetime] = None
    ) -> Dict[str, Any]:
        samples = [
            sample for sample in self._samples
            if (integration_id is None or sample.integration_id == integration_id)
            and (since is None or sample.timestamp >= since)
        ]
        total = len(samples)
        if not total:
            return {
                "total_requests": 0,
                "average_response_time": 0.0,
                "average_error_rate": 0.0,
                "throughput": 0.0,
                "last_sample_at": None,
            }

        return {
            "total_requests": total,
            "average_response_time": sum(s.response_time for s in samples) / total,
            "average_error_rate": sum(s.error_rate for s in samples) / total,
            "throughput": sum(s.throughput for s in samples),
            "last_sample_at": samples[-1].timestamp,
        }

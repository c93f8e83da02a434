"""In-process request counters reported by the ``/metrics`` endpoint."""

import threading
from collections import defaultdict
from typing import Any, Dict, List, Tuple

# Upper bounds in seconds; the last bucket catches everything slower
DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1, 2, 5)


class RequestMetrics:
    """Request and error counts plus a duration histogram per endpoint.

    Endpoints are keyed by route template (``/order/{order_id}``) rather than
    the raw path, so the number of series stays bounded.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._requests: Dict[Tuple[str, str, int], int] = defaultdict(int)
        self._durations: Dict[Tuple[str, str], List[int]] = {}
        self._duration_sums: Dict[Tuple[str, str], float] = defaultdict(float)

    def record(self, method: str, endpoint: str, status_code: int, duration_seconds: float) -> None:
        with self._lock:
            self._requests[(method, endpoint, status_code)] += 1
            buckets = self._durations.setdefault((method, endpoint), [0] * (len(DURATION_BUCKETS) + 1))
            for index, bound in enumerate(DURATION_BUCKETS):
                if duration_seconds <= bound:
                    buckets[index] += 1
                    break
            else:
                buckets[-1] += 1
            self._duration_sums[(method, endpoint)] += duration_seconds

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            requests = [
                {"method": method, "endpoint": endpoint, "status_code": code, "count": count}
                for (method, endpoint, code), count in sorted(self._requests.items())
            ]
            durations = [
                {
                    "method": method,
                    "endpoint": endpoint,
                    "buckets": dict(zip([str(b) for b in DURATION_BUCKETS] + ["+Inf"], counts)),
                    "sum_seconds": self._duration_sums[(method, endpoint)],
                }
                for (method, endpoint), counts in sorted(self._durations.items())
            ]
        return {
            "requests_total": sum(item["count"] for item in requests),
            "errors_total": sum(item["count"] for item in requests if item["status_code"] >= 400),
            "requests": requests,
            "durations": durations,
        }

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._durations.clear()
            self._duration_sums.clear()


request_metrics = RequestMetrics()

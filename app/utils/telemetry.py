from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import Dict


class Telemetry:
    """Process-local counters and timers, rendered as Prometheus text on /metrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._timers_sum: Dict[str, float] = defaultdict(float)
        self._timers_count: Dict[str, int] = defaultdict(int)
        self._started_at = time.time()

    def incr(self, name: str, value: float = 1.0) -> None:
        with self._lock:
            self._counters[name] += value

    def gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def timing(self, name: str, seconds: float) -> None:
        value = max(0.0, float(seconds))
        with self._lock:
            self._timers_sum[name] += value
            self._timers_count[name] += 1

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timers_sum.clear()
            self._timers_count.clear()
            self._started_at = time.time()

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "uptime_s": max(0, int(time.time() - self._started_at)),
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "timers": {
                    name: {
                        "count": self._timers_count.get(name, 0),
                        "sum_s": round(self._timers_sum.get(name, 0.0), 6),
                        "avg_s": round(
                            (self._timers_sum.get(name, 0.0) / self._timers_count[name]) if self._timers_count.get(name, 0) else 0.0,
                            6,
                        ),
                    }
                    for name in set(self._timers_sum) | set(self._timers_count)
                },
            }

    def aggregated_snapshot(self) -> dict:
        snap = self.snapshot()
        counters = snap.get("counters", {})
        timers = snap.get("timers", {})

        def _sum_prefix(prefix: str) -> float:
            return float(sum(float(v) for k, v in counters.items() if k.startswith(prefix)))

        http_timer = timers.get("http_request", {"count": 0, "sum_s": 0.0, "avg_s": 0.0})
        sink_timer = timers.get("sink_insert", {"count": 0, "sum_s": 0.0, "avg_s": 0.0})
        return {
            "window": {"uptime_s": snap.get("uptime_s", 0)},
            "http": {
                "requests_total": int(counters.get("http_requests_total", 0)),
                "status": {
                    "2xx": int(_sum_prefix("http_status_2")),
                    "4xx": int(_sum_prefix("http_status_4")),
                    "5xx": int(_sum_prefix("http_status_5")),
                },
                "latency": {
                    "count": int(http_timer.get("count", 0)),
                    "sum_s": float(http_timer.get("sum_s", 0.0)),
                    "avg_s": float(http_timer.get("avg_s", 0.0)),
                },
                "auth_failed_total": int(counters.get("auth_failed_total", 0)),
            },
            "ingest": {
                "requests_total": int(counters.get("ingest_requests_total", 0)),
                "rows_total": int(counters.get("ingest_rows_total", 0)),
                "invalid_total": int(counters.get("ingest_invalid_total", 0)),
                "empty_total": int(counters.get("ingest_empty_total", 0)),
                "sink_failure_total": int(counters.get("ingest_sink_failure_total", 0)),
            },
            "sink": {
                "retry_total": int(counters.get("sink_retry_total", 0)),
                "latency": {
                    "count": int(sink_timer.get("count", 0)),
                    "sum_s": float(sink_timer.get("sum_s", 0.0)),
                    "avg_s": float(sink_timer.get("avg_s", 0.0)),
                },
            },
        }

    def as_prometheus(self) -> str:
        snap = self.snapshot()
        lines: list[str] = []
        lines.append("# HELP message_ingest_uptime_seconds Process uptime in seconds")
        lines.append("# TYPE message_ingest_uptime_seconds gauge")
        lines.append(f"message_ingest_uptime_seconds {snap['uptime_s']}")
        for name, value in sorted(snap["counters"].items()):
            metric = _sanitize(name)
            lines.append(f"# TYPE {metric} counter")
            lines.append(f"{metric} {float(value)}")
        for name, value in sorted(snap["gauges"].items()):
            metric = _sanitize(name)
            lines.append(f"# TYPE {metric} gauge")
            lines.append(f"{metric} {float(value)}")
        for name, stats in sorted(snap["timers"].items()):
            metric = _sanitize(name)
            lines.append(f"# TYPE {metric}_seconds summary")
            lines.append(f"{metric}_seconds_sum {float(stats['sum_s'])}")
            lines.append(f"{metric}_seconds_count {int(stats['count'])}")
        return "\n".join(lines) + "\n"


def _sanitize(name: str) -> str:
    out = []
    for ch in name:
        out.append(ch if (ch.isalnum() or ch == '_') else '_')
    metric = ''.join(out).strip('_') or 'message_ingest_metric'
    if not metric.startswith('message_ingest_'):
        metric = f"message_ingest_{metric}"
    return metric


telemetry = Telemetry()

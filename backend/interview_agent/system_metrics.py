import threading
import time
from typing import Any


_COUNTERS = (
    "sessions_started",
    "sessions_ended",
    "turns_started",
    "turns_completed",
    "turns_rejected",
    "turns_failed",
    "turns_timed_out",
    "stale_results_discarded",
    "reports_generated",
    "reports_failed",
    "turn_latency_total_ms",
    "turn_latency_samples",
)

_lock = threading.Lock()
_metrics: dict[str, float] = {name: 0.0 for name in _COUNTERS}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def observe_turn_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["turn_latency_total_ms"] = float(_metrics.get("turn_latency_total_ms", 0.0)) + latency
        _metrics["turn_latency_samples"] = float(_metrics.get("turn_latency_samples", 0.0)) + 1.0


def reset_metrics() -> None:
    with _lock:
        _metrics.clear()
        _metrics.update({name: 0.0 for name in _COUNTERS})


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("turn_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    payload.update({name: int(data.get(name) or 0.0) for name in _COUNTERS if name != "turn_latency_total_ms"})
    payload["turn_latency_total_ms"] = float(data.get("turn_latency_total_ms") or 0.0)
    payload["avg_turn_latency_ms"] = round(float(data.get("turn_latency_total_ms") or 0.0) / latency_samples, 2)

    if extra:
        payload.update(extra)
    return payload

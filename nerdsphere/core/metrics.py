"""
In-process counters shared by the services and the /metrics endpoint.

Sync endpoints run in the threadpool, so every update takes the lock.
"""
import threading
import time
from typing import Any, Dict

_lock = threading.Lock()

# Simple in-memory metrics storage
_metrics: Dict[str, Any] = {
    "http_requests_total": {},  # {(method, path, status): count}
    "http_request_duration_seconds": {},  # {(method, path): [durations]}
    "messages_submitted_total": 0,
    "messages_rejected_total": {},  # {kind: count}
    "messages_swept_total": 0,
    "startup_time": None,
}


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record an HTTP request metric."""
    with _lock:
        key = (method, path, status_code)
        _metrics["http_requests_total"][key] = _metrics["http_requests_total"].get(key, 0) + 1

        durations = _metrics["http_request_duration_seconds"].setdefault((method, path), [])
        durations.append(duration)

        # Keep only last 1000 durations to prevent memory issues
        if len(durations) > 1000:
            del durations[:-1000]


def record_submission() -> None:
    with _lock:
        _metrics["messages_submitted_total"] += 1


def record_rejection(kind: str) -> None:
    with _lock:
        rejected = _metrics["messages_rejected_total"]
        rejected[kind] = rejected.get(kind, 0) + 1


def record_sweep(deleted_count: int) -> None:
    with _lock:
        _metrics["messages_swept_total"] += deleted_count


def set_startup_time() -> None:
    """Record application startup time."""
    with _lock:
        _metrics["startup_time"] = time.time()


def snapshot() -> Dict[str, Any]:
    """Consistent copy of every counter."""
    with _lock:
        return {
            "http_requests_total": dict(_metrics["http_requests_total"]),
            "http_request_duration_seconds": {
                key: list(durations)
                for key, durations in _metrics["http_request_duration_seconds"].items()
            },
            "messages_submitted_total": _metrics["messages_submitted_total"],
            "messages_rejected_total": dict(_metrics["messages_rejected_total"]),
            "messages_swept_total": _metrics["messages_swept_total"],
            "startup_time": _metrics["startup_time"],
        }

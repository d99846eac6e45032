"""
In-process metrics registry rendered in Prometheus text format.
"""
import threading
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

_lock = threading.Lock()

_metrics = {
    "http_requests_total": defaultdict(int),  # {(method, path, status): count}
    "http_request_duration_seconds": {},  # {(method, path): (sum, count)}
    "messages_created_total": defaultdict(int),  # {direction: count}
    "webhook_deliveries_total": defaultdict(int),  # {outcome: count}
    "websocket_connections": 0,
    "startup_time": None,
}


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record an HTTP request metric."""
    with _lock:
        _metrics["http_requests_total"][(method, path, status_code)] += 1
        total, count = _metrics["http_request_duration_seconds"].get((method, path), (0.0, 0))
        _metrics["http_request_duration_seconds"][(method, path)] = (total + duration, count + 1)


def record_message_created(direction: str) -> None:
    with _lock:
        _metrics["messages_created_total"][direction] += 1


def record_webhook_delivery(outcome: str) -> None:
    """Count a finished webhook delivery by outcome (delivered, http_error, no_response, skipped)."""
    with _lock:
        _metrics["webhook_deliveries_total"][outcome] += 1


def adjust_websocket_connections(delta: int) -> None:
    with _lock:
        _metrics["websocket_connections"] += delta


def set_startup_time(value: Optional[float] = None) -> None:
    """Record application startup time."""
    with _lock:
        _metrics["startup_time"] = value if value is not None else time.time()


def _labels(**labels) -> str:
    inner = ",".join(f'{key}="{value}"' for key, value in labels.items())
    return "{" + inner + "}"


def generate_prometheus_metrics(version: str = "1.0.0") -> str:
    """Generate Prometheus-format metrics output."""
    with _lock:
        requests: List[Tuple[Tuple[str, str, int], int]] = list(_metrics["http_requests_total"].items())
        durations: Dict[Tuple[str, str], Tuple[float, int]] = dict(_metrics["http_request_duration_seconds"])
        created = dict(_metrics["messages_created_total"])
        deliveries = dict(_metrics["webhook_deliveries_total"])
        connections = _metrics["websocket_connections"]
        startup_time = _metrics["startup_time"]
    
    lines = [
        "# HELP app_info Application information",
        "# TYPE app_info gauge",
        f"app_info{_labels(version=version)} 1",
        "",
    ]
    
    if startup_time:
        lines.append("# HELP app_start_time_seconds Unix timestamp when the app started")
        lines.append("# TYPE app_start_time_seconds gauge")
        lines.append(f"app_start_time_seconds {startup_time:.3f}")
        lines.append("")
    
    lines.append("# HELP http_requests_total Total number of HTTP requests")
    lines.append("# TYPE http_requests_total counter")
    for (method, path, status), count in requests:
        lines.append(f"http_requests_total{_labels(method=method, path=path, status=status)} {count}")
    lines.append("")
    
    lines.append("# HELP http_request_duration_seconds HTTP request duration in seconds")
    lines.append("# TYPE http_request_duration_seconds summary")
    for (method, path), (total, count) in durations.items():
        lines.append(f"http_request_duration_seconds_sum{_labels(method=method, path=path)} {total:.6f}")
        lines.append(f"http_request_duration_seconds_count{_labels(method=method, path=path)} {count}")
    lines.append("")
    
    lines.append("# HELP sms_messages_created_total Messages accepted by the simulator")
    lines.append("# TYPE sms_messages_created_total counter")
    for direction, count in created.items():
        lines.append(f"sms_messages_created_total{_labels(direction=direction)} {count}")
    lines.append("")
    
    lines.append("# HELP sms_webhook_deliveries_total Finished webhook delivery sequences")
    lines.append("# TYPE sms_webhook_deliveries_total counter")
    for outcome, count in deliveries.items():
        lines.append(f"sms_webhook_deliveries_total{_labels(outcome=outcome)} {count}")
    lines.append("")
    
    lines.append("# HELP sms_websocket_connections Currently connected real-time subscribers")
    lines.append("# TYPE sms_websocket_connections gauge")
    lines.append(f"sms_websocket_connections {connections}")
    
    return "\n".join(lines) + "\n"

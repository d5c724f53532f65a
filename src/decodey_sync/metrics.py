"""
metrics.py - Observability for reconciliation cycles.

Provides:
- In-process counters, gauges and histograms (Prometheus text export)
- Structured JSON logging
- SyncLogger with one method per reconciliation event
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# Metric Types
# =============================================================================

class MetricType(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """Single metric sample with labels."""
    name: str
    value: float
    labels: dict[str, str] = field(default_factory=dict)


class _LabelledMetric:
    metric_type: MetricType

    def __init__(self, name: str, help_text: str, labels: list[str] | None = None):
        self.name = name
        self.help = help_text
        self.labels = labels or []
        self._values: dict[tuple, float] = {}
        self._lock = threading.Lock()

    def get(self, **label_values) -> float:
        key = self._label_key(label_values)
        with self._lock:
            return self._values.get(key, 0)

    def collect(self) -> list[MetricValue]:
        with self._lock:
            return [
                MetricValue(name=self.name, value=value, labels=dict(zip(self.labels, key)))
                for key, value in self._values.items()
            ]

    def _label_key(self, label_values: dict) -> tuple:
        return tuple(str(label_values.get(label, "")) for label in self.labels)


class Counter(_LabelledMetric):
    """Monotonic counter."""
    metric_type = MetricType.COUNTER

    def inc(self, value: float = 1, **label_values) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        key = self._label_key(label_values)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value


class Gauge(_LabelledMetric):
    """Value that can go up and down."""
    metric_type = MetricType.GAUGE

    def set(self, value: float, **label_values) -> None:
        key = self._label_key(label_values)
        with self._lock:
            self._values[key] = value


class Histogram:
    """Bucketed distribution of observed values."""
    metric_type = MetricType.HISTOGRAM

    DEFAULT_BUCKETS = (
        0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, float("inf")
    )

    def __init__(
        self,
        name: str,
        help_text: str,
        labels: list[str] | None = None,
        buckets: tuple | None = None,
    ):
        self.name = name
        self.help = help_text
        self.labels = labels or []
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._values: dict[tuple, dict] = {}
        self._lock = threading.Lock()

    def observe(self, value: float, **label_values) -> None:
        key = tuple(str(label_values.get(label, "")) for label in self.labels)
        with self._lock:
            data = self._values.setdefault(
                key, {"count": 0, "sum": 0.0, "buckets": {b: 0 for b in self.buckets}}
            )
            data["count"] += 1
            data["sum"] += value
            for bucket in self.buckets:
                if value <= bucket:
                    data["buckets"][bucket] += 1

    def count(self, **label_values) -> int:
        key = tuple(str(label_values.get(label, "")) for label in self.labels)
        with self._lock:
            data = self._values.get(key)
            return data["count"] if data else 0

    def collect(self) -> list[MetricValue]:
        results = []
        with self._lock:
            for key, data in self._values.items():
                labels = dict(zip(self.labels, key))
                results.append(MetricValue(f"{self.name}_sum", data["sum"], labels))
                results.append(MetricValue(f"{self.name}_count", data["count"], labels))
                for le, count in data["buckets"].items():
                    results.append(
                        MetricValue(f"{self.name}_bucket", count, {**labels, "le": str(le)})
                    )
        return results


# =============================================================================
# Metrics Registry
# =============================================================================

class MetricsRegistry:
    """Named collection of metrics sharing a prefix."""

    def __init__(self, prefix: str = "decodey_sync"):
        self.prefix = prefix
        self._metrics: dict[str, Counter | Gauge | Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str, labels: list[str] | None = None) -> Counter:
        return self._register(name, lambda full: Counter(full, help_text, labels))

    def gauge(self, name: str, help_text: str, labels: list[str] | None = None) -> Gauge:
        return self._register(name, lambda full: Gauge(full, help_text, labels))

    def histogram(
        self,
        name: str,
        help_text: str,
        labels: list[str] | None = None,
        buckets: tuple | None = None,
    ) -> Histogram:
        return self._register(name, lambda full: Histogram(full, help_text, labels, buckets))

    def _register(self, name, factory):
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            if full_name not in self._metrics:
                self._metrics[full_name] = factory(full_name)
            return self._metrics[full_name]

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            lines.append(f"# HELP {metric.name} {metric.help}")
            lines.append(f"# TYPE {metric.name} {metric.metric_type.value}")
            for sample in metric.collect():
                if sample.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in sample.labels.items())
                    lines.append(f"{sample.name}{{{label_str}}} {sample.value}")
                else:
                    lines.append(f"{sample.name} {sample.value}")
        return "\n".join(lines)


# =============================================================================
# Reconciliation Metrics
# =============================================================================

_registry = MetricsRegistry()

reconcile_cycles_total = _registry.counter(
    "reconcile_cycles_total",
    "Reconciliation cycles by trigger and outcome",
    labels=["trigger", "outcome"],
)

plan_operations_total = _registry.counter(
    "plan_operations_total",
    "Plan operations executed",
    labels=["operation", "status"],
)

conflicts_total = _registry.counter(
    "conflicts_total",
    "Conflicts reported by the server",
    labels=["resolution"],
)

strategy_decisions_total = _registry.counter(
    "strategy_decisions_total",
    "Strategy decisions by trigger",
    labels=["trigger", "decision"],
)

reconcile_duration_seconds = _registry.histogram(
    "reconcile_duration_seconds",
    "Wall time of executed reconciliation cycles",
    labels=["sync_type"],
)

last_successful_sync_timestamp = _registry.gauge(
    "last_successful_sync_timestamp",
    "Epoch seconds of the last fully successful cycle",
    labels=["user_id"],
)


def get_registry() -> MetricsRegistry:
    return _registry


# =============================================================================
# Structured Logging
# =============================================================================

_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
})


class JSONFormatter(logging.Formatter):
    """One JSON object per log line; `extra` fields are included."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self._hostname = os.environ.get("HOSTNAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self._hostname,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if self.include_extra:
            for key, value in record.__dict__.items():
                if key not in _RESERVED_ATTRS:
                    log_data[key] = value
        return json.dumps(log_data, default=str)


class SyncLogger:
    """
    Structured logger for reconciliation events.

    Each method logs one event with machine-readable `extra` fields and
    updates the matching metric.
    """

    def __init__(self, name: str = "decodey_sync"):
        self._logger = logging.getLogger(name)

    def strategy_selected(self, trigger: str, decision: str, reason: str | None = None) -> None:
        self._logger.info(
            f"Strategy for {trigger}: {decision}" + (f" ({reason})" if reason else ""),
            extra={
                "event": "strategy_selected",
                "trigger": trigger,
                "decision": decision,
                "reason": reason,
            },
        )
        strategy_decisions_total.inc(trigger=trigger, decision=decision)

    def reconcile_started(self, user_id: str, trigger: str, sync_type: str) -> None:
        self._logger.info(
            f"Reconciliation started ({sync_type})",
            extra={
                "event": "reconcile_started",
                "user_id": user_id,
                "trigger": trigger,
                "sync_type": sync_type,
            },
        )

    def reconcile_completed(
        self,
        user_id: str,
        trigger: str,
        sync_type: str,
        outcome: str,
        succeeded: int,
        failed: int,
        duration_ms: float,
    ) -> None:
        level = logging.INFO if failed == 0 else logging.WARNING
        self._logger.log(
            level,
            f"Reconciliation completed: outcome={outcome}, succeeded={succeeded}, failed={failed}",
            extra={
                "event": "reconcile_completed",
                "user_id": user_id,
                "trigger": trigger,
                "sync_type": sync_type,
                "outcome": outcome,
                "succeeded": succeeded,
                "failed": failed,
                "duration_ms": duration_ms,
            },
        )
        reconcile_cycles_total.inc(trigger=trigger, outcome=outcome)
        reconcile_duration_seconds.observe(duration_ms / 1000, sync_type=sync_type)
        if failed == 0:
            last_successful_sync_timestamp.set(time.time(), user_id=user_id)

    def reconcile_failed(self, user_id: str, trigger: str, error: str) -> None:
        self._logger.error(
            f"Reconciliation failed: {error}",
            extra={
                "event": "reconcile_failed",
                "user_id": user_id,
                "trigger": trigger,
                "error": error,
            },
        )
        reconcile_cycles_total.inc(trigger=trigger, outcome="error")

    def conflict_resolved(
        self,
        game_id: str,
        reason: str,
        resolution: str = "server_wins",
    ) -> None:
        self._logger.warning(
            f"Conflict on {game_id} resolved {resolution}: {reason}",
            extra={
                "event": "conflict_resolved",
                "game_id": game_id,
                "reason": reason,
                "resolution": resolution,
            },
        )
        conflicts_total.inc(resolution=resolution)

    def operation_finished(self, operation: str, ok: bool) -> None:
        plan_operations_total.inc(operation=operation, status="success" if ok else "failed")


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Configure root logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting on the console
        log_file: Optional log file path, always JSON
    """
    console = logging.StreamHandler()
    if json_format:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    handlers: list[logging.Handler] = [console]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logging.basicConfig(level=getattr(logging, level.upper()), handlers=handlers)

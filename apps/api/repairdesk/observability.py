import json
import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from threading import Lock
from typing import Iterator

ORDER_LOGGER_NAME = "repairdesk.orders"
CONTEXT_FIELDS = ("order_id", "actor_id", "action")

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying the request id and order context."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None) or _request_id_ctx.get(),
        }
        for name in CONTEXT_FIELDS:
            payload[name] = getattr(record, name, None)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())


@dataclass
class TimingAggregate:
    count: int = 0
    total_s: float = 0.0
    max_s: float = 0.0

    def add(self, value_s: float) -> None:
        self.count += 1
        self.total_s += value_s
        self.max_s = max(self.max_s, value_s)

    def as_dict(self) -> dict[str, float]:
        return {"count": self.count, "avg_s": self.total_s / self.count, "max_s": self.max_s}


@dataclass
class MetricsSnapshot:
    counters: dict[str, int] = field(default_factory=dict)
    timings: dict[str, dict[str, float]] = field(default_factory=dict)


class MetricsStore:
    """Process-local counters and timing aggregates, safe to share across threads."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = {}
        self._timings: dict[str, TimingAggregate] = {}

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def observe(self, name: str, value_s: float) -> None:
        with self._lock:
            self._timings.setdefault(name, TimingAggregate()).add(value_s)

    def reset(self) -> None:
        with self._lock:
            self._counters = {}
            self._timings = {}

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                counters=dict(self._counters),
                timings={name: agg.as_dict() for name, agg in self._timings.items()},
            )


metrics_store = MetricsStore()


def set_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


def log_event(message: str, *, level: int = logging.INFO, **context: str | None) -> None:
    unknown = set(context) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
    extra = {name: context.get(name) for name in CONTEXT_FIELDS}
    extra["request_id"] = get_request_id()
    logging.getLogger(ORDER_LOGGER_NAME).log(level, message, extra=extra)


@contextmanager
def observe_timing(metric_name: str) -> Iterator[None]:
    # Failed attempts are timed too.
    start = time.perf_counter()
    try:
        yield
    finally:
        metrics_store.observe(metric_name, time.perf_counter() - start)

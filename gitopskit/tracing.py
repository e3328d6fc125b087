"""Lightweight tracing that records operation durations through logging."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any


class Span(ABC):
    """A timed operation that can carry key/value baggage."""

    @abstractmethod
    def set_baggage_item(self, key: str, value: Any) -> None:
        """Attach a key/value pair to the span."""

    @abstractmethod
    def finish(self) -> None:
        """End the span."""

    def __enter__(self) -> "Span":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish()


class Tracer(ABC):
    """Creates spans."""

    @abstractmethod
    def start_span(self, operation_name: str) -> Span:
        """Start a span for the named operation."""


class LoggingSpan(Span):
    """A span that logs its baggage and duration when finished."""

    def __init__(self, logger: logging.Logger, operation_name: str) -> None:
        self._logger = logger
        self.operation_name = operation_name
        self.baggage: dict[str, Any] = {}
        self._start = time.monotonic()

    def set_baggage_item(self, key: str, value: Any) -> None:
        self.baggage[key] = value

    def finish(self) -> None:
        values = dict(self.baggage)
        values["operation_name"] = self.operation_name
        values["time_ms"] = (time.monotonic() - self._start) * 1e3
        self._logger.info("Trace", extra={"trace": values})


class LoggingTracer(Tracer):
    """A tracer whose spans report through a :class:`logging.Logger`."""

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger

    def start_span(self, operation_name: str) -> Span:
        return LoggingSpan(self.logger, operation_name)


class NopSpan(Span):
    """A span that does nothing."""

    def set_baggage_item(self, key: str, value: Any) -> None:
        pass

    def finish(self) -> None:
        pass


class NopTracer(Tracer):
    """A tracer that produces spans doing nothing."""

    def start_span(self, operation_name: str) -> Span:
        return NopSpan()
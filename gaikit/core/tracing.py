"""Span recording for actions, flows and flow steps.

Spans nest through a context variable: a span opened while another is
current becomes its child and shares its trace. When a root span ends, the
whole trace is saved to the process-wide :class:`TraceStore`, which the
reflection API serves to developer tooling.
"""

from __future__ import annotations

import json
import threading
import time
import uuid
from collections import OrderedDict
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional

from .logger import logger
from .schema import to_jsonable

STATE_SUCCESS = "success"
STATE_ERROR = "error"

STATUS_OK = 0
STATUS_ERROR = 2


def _now_ms() -> float:
    return time.time() * 1000


def _new_id(nbytes: int) -> str:
    return uuid.uuid4().hex[: nbytes * 2]


@dataclass
class SpanData:
    span_id: str
    trace_id: str
    display_name: str
    start_time: float
    parent_span_id: Optional[str] = None
    end_time: Optional[float] = None
    attributes: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=lambda: {"code": STATUS_OK})

    def to_dict(self) -> dict[str, Any]:
        data = {
            "spanId": self.span_id,
            "traceId": self.trace_id,
            "displayName": self.display_name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "attributes": dict(self.attributes),
            "status": dict(self.status),
        }
        if self.parent_span_id:
            data["parentSpanId"] = self.parent_span_id
        return data


@dataclass
class TraceData:
    trace_id: str
    display_name: str = ""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    spans: dict[str, SpanData] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "traceId": self.trace_id,
            "displayName": self.display_name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "spans": {k: v.to_dict() for k, v in self.spans.items()},
        }


class TraceStore:
    """In-memory store of finished traces, oldest evicted first."""

    def __init__(self, max_traces: int = 1000):
        self.max_traces = max_traces
        self._traces: "OrderedDict[str, TraceData]" = OrderedDict()
        self._lock = threading.Lock()

    def save(self, trace: TraceData) -> None:
        with self._lock:
            self._traces[trace.trace_id] = trace
            self._traces.move_to_end(trace.trace_id)
            while len(self._traces) > self.max_traces:
                self._traces.popitem(last=False)

    def load(self, trace_id: str) -> Optional[TraceData]:
        with self._lock:
            return self._traces.get(trace_id)

    def list(self, limit: Optional[int] = None) -> list[TraceData]:
        """Most recent traces first."""
        with self._lock:
            traces = list(reversed(self._traces.values()))
        if limit is not None:
            traces = traces[:limit]
        return traces


_trace_store = TraceStore()


def get_trace_store() -> TraceStore:
    return _trace_store


@dataclass
class SpanHandle:
    data: SpanData
    trace: TraceData
    path: str
    ended: bool = False

    @property
    def name(self) -> str:
        return self.data.display_name

    @property
    def trace_id(self) -> str:
        return self.trace.trace_id

    @property
    def span_id(self) -> str:
        return self.data.span_id

    @property
    def attributes(self) -> dict[str, Any]:
        return self.data.attributes

    @property
    def is_root(self) -> bool:
        return self.data.parent_span_id is None

    def set_attribute(self, key: str, value: Any) -> None:
        self.data.attributes[str(key)] = value

    def set_input(self, value: Any) -> None:
        self.set_attribute("genkit:input", _encode(value))

    def set_output(self, value: Any) -> None:
        self.set_attribute("genkit:output", _encode(value))

    def record_exception(self, exc: BaseException) -> None:
        self.data.status = {"code": STATUS_ERROR, "message": str(exc)}
        self.set_attribute("genkit:state", STATE_ERROR)
        self.set_attribute("exception.type", exc.__class__.__name__)
        self.set_attribute("exception.message", str(exc))

    def end(self, output: Any = None, error: Optional[BaseException] = None) -> None:
        if self.ended:
            return
        self.ended = True
        self.data.end_time = _now_ms()
        duration_ms = int(self.data.end_time - self.data.start_time)
        if error is not None:
            self.record_exception(error)
            logger.error(f"span {self.path} failed after {duration_ms}ms: {error}")
        else:
            if output is not None:
                self.set_output(output)
            self.data.attributes.setdefault("genkit:state", STATE_SUCCESS)
            logger.debug(f"span {self.path} finished in {duration_ms}ms")
        if self.is_root:
            self.trace.end_time = self.data.end_time
            get_trace_store().save(self.trace)


def _encode(value: Any) -> str:
    return json.dumps(to_jsonable(value), default=str)


_current_span: ContextVar[Optional[SpanHandle]] = ContextVar("gaikit_current_span", default=None)


def current_span() -> Optional[SpanHandle]:
    return _current_span.get()


def open_span(
    name: str,
    *,
    attributes: Optional[Mapping[str, Any]] = None,
    inputs: Any = None,
    parent: Optional[SpanHandle] = None,
) -> SpanHandle:
    """Start a span without making it current; the caller must ``end()`` it."""

    if parent is None:
        parent = current_span()
    start = _now_ms()
    if parent is None:
        trace = TraceData(trace_id=_new_id(16), display_name=name, start_time=start)
        path = f"/{name}"
        parent_id = None
    else:
        trace = parent.trace
        path = f"{parent.path}/{name}"
        parent_id = parent.span_id

    data = SpanData(
        span_id=_new_id(8),
        trace_id=trace.trace_id,
        display_name=name,
        start_time=start,
        parent_span_id=parent_id,
        attributes=dict(attributes or {}),
    )
    data.attributes["genkit:name"] = name
    data.attributes["genkit:path"] = path
    if parent is None:
        data.attributes["genkit:isRoot"] = True
    trace.spans[data.span_id] = data

    handle = SpanHandle(data=data, trace=trace, path=path)
    if inputs is not None:
        handle.set_input(inputs)
    logger.debug(f"span {path} started")
    return handle


@contextmanager
def start_span(
    name: str,
    *,
    attributes: Optional[Mapping[str, Any]] = None,
    inputs: Any = None,
) -> Iterator[SpanHandle]:
    """Open a span, make it current for the block and end it on exit."""

    span = open_span(name, attributes=attributes, inputs=inputs)
    token = _current_span.set(span)
    try:
        yield span
    except Exception as exc:
        span.end(error=exc)
        raise
    else:
        span.end()
    finally:
        _current_span.reset(token)


def set_custom_metadata_attr(key: str, value: Any) -> None:
    """Attach ``genkit:metadata:{key}`` to the current span, if any."""
    span = current_span()
    if span is None:
        return
    span.set_attribute(f"genkit:metadata:{key}", value)

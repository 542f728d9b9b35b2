import contextvars
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from gaikit.core.errors import GaikitError

_DONE = object()


class StreamClosedError(GaikitError):
    """Raised from the callback once the reader has stopped iterating."""


@dataclass
class StreamEvent:
    """One item produced while running a callback-streaming function."""
    chunk: Any = None
    result: Any = None
    done: bool = False


def iterate_callbacks(run: Callable[[Callable[[Any], None]], Any]) -> Iterator[StreamEvent]:
    """
    Turn a callback-streaming call into an iterator.

    ``run`` receives a callback and returns the final result. It runs on a
    worker thread (with a copy of the caller's context); every callback
    value is yielded in order, then a final ``done`` event carrying the
    result. An exception raised by ``run`` is re-raised here.

    Closing the iterator early makes the next callback call raise
    StreamClosedError, which ends ``run`` at its next chunk.
    """
    events: "queue.Queue[Any]" = queue.Queue()
    failure: dict = {}
    closed = threading.Event()

    def callback(chunk: Any) -> None:
        if closed.is_set():
            raise StreamClosedError("stream reader went away")
        events.put(StreamEvent(chunk=chunk))

    def worker() -> None:
        try:
            result = run(callback)
        except BaseException as exc:
            failure["error"] = exc
            events.put(_DONE)
            return
        events.put(StreamEvent(result=result, done=True))

    ctx = contextvars.copy_context()
    thread = threading.Thread(target=ctx.run, args=(worker,), daemon=True)
    thread.start()

    try:
        while True:
            item = events.get()
            if item is _DONE:
                raise failure["error"]
            yield item
            if item.done:
                return
    finally:
        closed.set()

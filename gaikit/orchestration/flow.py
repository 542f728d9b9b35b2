from __future__ import annotations

import inspect
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Tuple, TypeVar

from gaikit.core.action import Action, ActionType
from gaikit.core.errors import AuthError, GaikitError
from gaikit.core.logger import logger
from gaikit.core.registry import get_registry
from gaikit.core.schema import coerce_input, fn_schemas, to_jsonable, validate_value
from gaikit.core.tracing import start_span

from .auth import AuthContext, FlowAuth
from .streaming import iterate_callbacks

T = TypeVar("T")

FLOW_KIND = "flow"


@dataclass
class FlowContext:
    flow_name: str
    auth_context: Optional[AuthContext] = None


_flow_context: ContextVar[Optional[FlowContext]] = ContextVar("gaikit_flow_context", default=None)
_auth_context: ContextVar[Optional[AuthContext]] = ContextVar("gaikit_auth_context", default=None)


def current_auth_context() -> Optional[AuthContext]:
    """Auth context of the running flow, or None outside of one."""
    ctx = _flow_context.get()
    if ctx is not None:
        return ctx.auth_context
    return _auth_context.get()


@dataclass
class StreamFlowValue:
    """A value from Flow.stream: a chunk, or the final output when done."""
    done: bool
    output: Any = None
    stream: Any = None


class Flow:
    def __init__(
        self,
        name: str,
        fn: Callable[..., Any],
        streaming: bool = False,
        auth: Optional[FlowAuth] = None,
    ):
        self.name = name
        self.fn = fn
        self.streaming = streaming
        self.auth = auth

        input_type, input_schema, output_schema = fn_schemas(fn)
        self.input_type = input_type
        self.action = Action(
            name=name,
            action_type=ActionType.FLOW,
            fn=self._call,
            input_schema=input_schema,
            output_schema=output_schema,
            input_type=input_type,
            metadata={
                "flow": {
                    "streaming": streaming,
                    "requiresAuth": auth is not None,
                }
            },
        )

    def check_auth(self, auth_context: Optional[AuthContext], input: Any) -> None:
        """Apply the flow's auth policy; failures raise AuthError."""
        if self.auth is None:
            return
        try:
            self.auth.check_auth_policy(auth_context, input)
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"auth policy check failed: {e}") from e

    def check_json(self, input: Any, auth_context: Optional[AuthContext] = None) -> Any:
        """
        Coerce and validate JSON input, then check auth, without running.

        Raises SchemaValidationError or AuthError; returns the typed input.
        """
        typed_input = coerce_input(input, self.input_type)
        validate_value(typed_input, self.action.input_schema)
        self.check_auth(auth_context, typed_input)
        return typed_input

    def _call(self, input: Any, callback: Optional[Callable[[Any], None]]) -> Any:
        auth_context = _auth_context.get()
        self.check_auth(auth_context, input)

        token = _flow_context.set(FlowContext(flow_name=self.name, auth_context=auth_context))
        try:
            if self.streaming:
                return self.fn(input, callback)
            return self.fn(input)
        finally:
            _flow_context.reset(token)

    def _execute(
        self,
        input: Any,
        callback: Optional[Callable[[Any], None]],
        auth_context: Optional[AuthContext],
    ) -> Tuple[Any, str]:
        if auth_context is None:
            auth_context = current_auth_context()
        token = _auth_context.set(auth_context)
        try:
            return self.action.run_with_telemetry(input, callback)
        finally:
            _auth_context.reset(token)

    def run(self, input: Any = None, auth_context: Optional[AuthContext] = None) -> Any:
        """Run the flow and return its output."""
        output, _ = self._execute(input, None, auth_context)
        return output

    def run_json(
        self,
        input: Any,
        callback: Optional[Callable[[Any], None]] = None,
        auth_context: Optional[AuthContext] = None,
    ) -> Tuple[Any, str]:
        """Run with decoded JSON input; returns JSON output and the trace id."""
        typed_input = coerce_input(input, self.input_type)
        json_callback = None
        if callback is not None:
            json_callback = lambda chunk: callback(to_jsonable(chunk))  # noqa: E731
        output, trace_id = self._execute(typed_input, json_callback, auth_context)
        return to_jsonable(output), trace_id

    def stream(self, input: Any = None, auth_context: Optional[AuthContext] = None) -> Iterator[StreamFlowValue]:
        """Run the flow, yielding each streamed chunk and then the output."""
        events = iterate_callbacks(lambda cb: self._execute(input, cb, auth_context)[0])
        for event in events:
            if event.done:
                yield StreamFlowValue(done=True, output=event.result)
            else:
                yield StreamFlowValue(done=False, stream=event.chunk)


def _register(flow: Flow) -> Flow:
    registry = get_registry()
    registry.register_action(flow.action)
    registry.register_value(FLOW_KIND, flow.name, flow)
    logger.info(f"Defined flow {flow.name}")
    return flow


def define_flow(name: str, fn: Callable[[Any], Any], auth: Optional[FlowAuth] = None) -> Flow:
    """
    Define a non-streaming flow.

    Args:
        name: Flow name, served at /{name} by the flow server
        fn: Function of one input; its annotations give the flow's schemas
        auth: Optional auth policy checked before every run

    Returns:
        Flow: The registered flow
    """
    return _register(Flow(name, fn, streaming=False, auth=auth))


def define_streaming_flow(
    name: str,
    fn: Callable[[Any, Optional[Callable[[Any], None]]], Any],
    auth: Optional[FlowAuth] = None,
) -> Flow:
    """Define a flow whose fn(input, callback) may stream chunks.

    The callback is None when the caller is not streaming.
    """
    if len(inspect.signature(fn).parameters) < 2:
        raise GaikitError(f"streaming flow {name!r} needs fn(input, callback)")
    return _register(Flow(name, fn, streaming=True, auth=auth))


def lookup_flow(name: str) -> Optional[Flow]:
    return get_registry().lookup_value(FLOW_KIND, name)


def run(name: str, fn: Callable[[], T]) -> T:
    """Run fn as a named, traced step of the current flow."""
    if _flow_context.get() is None:
        raise GaikitError(f"gaikit.run({name!r}): not called from a flow")
    with start_span(name, attributes={"genkit:type": ActionType.FLOW_STEP.value}) as span:
        output = fn()
        span.set_output(output)
        return output

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .schema import coerce_input, to_jsonable, validate_value
from .tracing import start_span

StreamCallback = Callable[[Any], None]
ActionFn = Callable[[Any, Optional[StreamCallback]], Any]


class ActionType(Enum):
    FLOW = "flow"
    FLOW_STEP = "flowStep"
    MODEL = "model"
    PROMPT = "prompt"
    TOOL = "tool"
    INDEXER = "indexer"
    RETRIEVER = "retriever"
    EMBEDDER = "embedder"
    EVALUATOR = "evaluator"
    CUSTOM = "custom"


def action_key(action_type: ActionType, name: str) -> str:
    return f"/{action_type.value}/{name}"


def qualified_name(provider: str, name: str) -> str:
    return f"{provider}/{name}" if provider else name


@dataclass
class Action:
    """A named, schema-typed function that is traced every time it runs."""
    name: str
    action_type: ActionType
    fn: ActionFn
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None
    input_type: Any = None

    @property
    def key(self) -> str:
        return action_key(self.action_type, self.name)

    def run(self, input: Any, callback: Optional[StreamCallback] = None) -> Any:
        output, _ = self.run_with_telemetry(input, callback)
        return output

    def run_with_telemetry(
        self, input: Any, callback: Optional[StreamCallback] = None
    ) -> Tuple[Any, str]:
        """Run the action and also return the id of the trace it ran in."""
        attributes = {"genkit:type": self.action_type.value}
        with start_span(self.name, attributes=attributes, inputs=input) as span:
            validate_value(input, self.input_schema)
            output = self.fn(input, callback)
            span.set_output(output)
            return output, span.trace_id

    def run_json(
        self, input: Any, callback: Optional[StreamCallback] = None
    ) -> Tuple[Any, str]:
        """Run with JSON input and JSON output, as the HTTP servers do."""
        typed_input = coerce_input(input, self.input_type)
        json_callback = None
        if callback is not None:
            json_callback = lambda chunk: callback(to_jsonable(chunk))  # noqa: E731
        output, trace_id = self.run_with_telemetry(typed_input, json_callback)
        return to_jsonable(output), trace_id

    def desc(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
            "metadata": dict(self.metadata),
        }

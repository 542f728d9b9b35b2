from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from gaikit.core.action import Action, ActionType
from gaikit.core.registry import get_registry
from gaikit.core.schema import coerce_input, fn_schemas

from .types import ToolDefinition


@dataclass
class Tool:
    action: Action

    @property
    def name(self) -> str:
        return self.action.name

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.action.name,
            description=self.action.description,
            input_schema=self.action.input_schema,
            output_schema=self.action.output_schema,
        )

    def run(self, input: Any) -> Any:
        """Run the tool with model-supplied (JSON) input."""
        return self.action.run(coerce_input(input, self.action.input_type))


def define_tool(name: str, description: str, fn: Callable[[Any], Any]) -> Tool:
    """Register fn as a tool the models can call.

    The input schema comes from the annotation of fn's single parameter.
    """
    input_type, input_schema, output_schema = fn_schemas(fn)
    action = Action(
        name=name,
        action_type=ActionType.TOOL,
        fn=lambda input, _cb: fn(input),
        description=description,
        input_schema=input_schema,
        output_schema=output_schema,
        input_type=input_type,
    )
    get_registry().register_action(action)
    return Tool(action=action)


def lookup_tool(name: str) -> Optional[Tool]:
    action = get_registry().lookup(ActionType.TOOL, name)
    if action is None:
        return None
    return Tool(action=action)

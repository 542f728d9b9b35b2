"""High-level generation: request building and the tool-calling loop.

The loop is a small LangGraph state graph::

    START -> model -> (tool requests?) -> tools -> model -> ... -> END

``model`` calls the model once; ``tools`` runs every requested tool and
appends their responses to the conversation as a ``tool`` message.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Union

from langgraph.graph import StateGraph, START, END
from typing_extensions import TypedDict

from gaikit.core.errors import GaikitError, ModelError, SchemaValidationError
from gaikit.core.logger import logger
from gaikit.core.schema import infer_json_schema, validate_value

from .model import Model, ModelStreamCallback
from .tools import Tool, lookup_tool
from .types import (
    Message,
    ModelRequest,
    ModelRequestOutput,
    ModelResponse,
    OutputFormat,
    Role,
    new_tool_response_part,
    new_user_text_message,
)

DEFAULT_MAX_TURNS = 5


class GenerateState(TypedDict):
    request: ModelRequest
    response: Optional[ModelResponse]
    turns: int


def _resolve_tools(tools: Optional[Sequence[Union[Tool, str]]]) -> Dict[str, Tool]:
    resolved = {}
    for t in tools or []:
        if isinstance(t, str):
            tool = lookup_tool(t)
            if tool is None:
                raise GaikitError(f"tool {t!r} not found")
            t = tool
        resolved[t.name] = t
    return resolved


def build_request(
    *,
    prompt: Optional[str] = None,
    messages: Optional[List[Message]] = None,
    config: Any = None,
    tools: Optional[Dict[str, Tool]] = None,
    context: Optional[List[Any]] = None,
    output_format: Optional[OutputFormat] = None,
    output_schema: Any = None,
) -> ModelRequest:
    all_messages = list(messages or [])
    if prompt is not None:
        all_messages.append(new_user_text_message(prompt))
    if not all_messages:
        raise GaikitError("generate: need a prompt or messages")

    schema = infer_json_schema(output_schema)
    if output_format is None:
        output_format = OutputFormat.JSON if schema else OutputFormat.TEXT

    return ModelRequest(
        messages=all_messages,
        config=config,
        context=context,
        output=ModelRequestOutput(format=output_format, schema=schema),
        tools=[t.definition() for t in (tools or {}).values()],
    )


def _build_tool_loop(
    model: Model,
    tools: Dict[str, Tool],
    stream_callback: Optional[ModelStreamCallback],
    return_tool_requests: bool,
    max_turns: int,
):
    def call_model(state: GenerateState):
        logger.debug(f"Calling model {model.full_name} (turn {state['turns'] + 1})")
        response = model.generate(state["request"], stream_callback)
        if response.request is None:
            response.request = state["request"]
        return {"response": response, "turns": state["turns"] + 1}

    def route(state: GenerateState):
        if return_tool_requests or not state["response"].tool_requests():
            return END
        return "tools"

    def call_tools(state: GenerateState):
        if state["turns"] >= max_turns:
            raise GaikitError(f"exceeded maximum tool call iterations ({max_turns})")
        response = state["response"]
        parts = []
        for tool_request in response.tool_requests():
            tool = tools.get(tool_request.name) or lookup_tool(tool_request.name)
            if tool is None:
                raise GaikitError(f"tool {tool_request.name!r} not found")
            logger.info(f"Running tool {tool_request.name}")
            output = tool.run(tool_request.input)
            parts.append(new_tool_response_part(tool_request.name, output, tool_request.ref))

        request = state["request"]
        next_request = ModelRequest(
            messages=response.history() + [Message(role=Role.TOOL, content=parts)],
            config=request.config,
            context=request.context,
            output=request.output,
            tools=request.tools,
        )
        return {"request": next_request}

    workflow = StateGraph(GenerateState)
    workflow.add_node("model", call_model)
    workflow.add_node("tools", call_tools)
    workflow.add_edge(START, "model")
    workflow.add_conditional_edges("model", route, {"tools": "tools", END: END})
    workflow.add_edge("tools", "model")

    return workflow.compile()


def generate(
    model: Model,
    *,
    prompt: Optional[str] = None,
    messages: Optional[List[Message]] = None,
    config: Any = None,
    tools: Optional[Sequence[Union[Tool, str]]] = None,
    context: Optional[List[Any]] = None,
    output_format: Optional[OutputFormat] = None,
    output_schema: Any = None,
    stream_callback: Optional[ModelStreamCallback] = None,
    return_tool_requests: bool = False,
    max_turns: int = DEFAULT_MAX_TURNS,
) -> ModelResponse:
    """
    Generate a response from a model, running any tools it asks for.

    Args:
        model: The model to call
        prompt: Text appended to messages as a user message
        messages: Conversation history
        config: GenerationCommonConfig or a provider-specific dict
        tools: Tools (or tool names) the model may call
        context: Documents passed to the model as context
        output_format: Requested output format; JSON when output_schema is set
        output_schema: JSON schema dict or Python type of the expected output
        stream_callback: Called with each response chunk
        return_tool_requests: Return tool requests instead of running them
        max_turns: Maximum number of model calls made while running tools

    Returns:
        ModelResponse: The final model response

    Raises:
        ModelError: If the model fails or its JSON output does not validate
        GaikitError: If a requested tool is unknown or max_turns is exceeded
    """
    if model is None:
        raise GaikitError("generate: model is required")
    tool_map = _resolve_tools(tools)
    request = build_request(
        prompt=prompt,
        messages=messages,
        config=config,
        tools=tool_map,
        context=context,
        output_format=output_format,
        output_schema=output_schema,
    )

    graph = _build_tool_loop(model, tool_map, stream_callback, return_tool_requests, max_turns)
    final_state = graph.invoke(
        {"request": request, "response": None, "turns": 0},
        config={"recursion_limit": 2 * max_turns + 2},
    )
    response = final_state["response"]

    if request.output.format == OutputFormat.JSON and not response.tool_requests():
        _validate_json_output(response, request.output.schema)
    return response


def _validate_json_output(response: ModelResponse, schema: Optional[Dict[str, Any]]) -> None:
    try:
        output = response.output()
    except json.JSONDecodeError as e:
        raise ModelError(f"model returned invalid JSON: {e}") from e
    try:
        validate_value(output, schema)
    except SchemaValidationError as e:
        raise ModelError(f"model output does not match schema: {e}") from e


def generate_text(model: Model, prompt: Optional[str] = None, **kwargs) -> str:
    """Generate and return only the response text."""
    return generate(model, prompt=prompt, **kwargs).text()


__all__ = [
    "GenerateState",
    "build_request",
    "generate",
    "generate_text",
]

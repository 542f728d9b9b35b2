from dataclasses import dataclass

import pytest

from gaikit.ai.generate import build_request, generate, generate_text
from gaikit.ai.model import define_model
from gaikit.ai.tools import define_tool, lookup_tool
from gaikit.ai.types import (
    FinishReason,
    Message,
    ModelCapabilities,
    ModelMetadata,
    ModelResponse,
    OutputFormat,
    Role,
    new_model_text_message,
    new_text_part,
    new_tool_request_part,
)
from gaikit.core.errors import GaikitError, ModelError


@dataclass
class WeatherInput:
    city: str


def _tool_model(name="tooly"):
    """Asks for the weather until it sees a tool response, then reports it."""
    calls = []

    def generate_fn(request, callback):
        calls.append(request)
        last = request.messages[-1]
        if last.role == Role.TOOL:
            output = last.content[0].tool_response.output
            return ModelResponse(message=new_model_text_message(f"it is {output}"), finish_reason=FinishReason.STOP)
        return ModelResponse(
            message=Message(role=Role.MODEL, content=[new_tool_request_part("weather", {"city": "Paris"}, ref="1")]),
            finish_reason=FinishReason.STOP,
        )

    supports = ModelCapabilities(multiturn=True, tools=True)
    model = define_model("test", name, ModelMetadata(supports=supports), generate_fn)
    return model, calls


def test_build_request_defaults():
    request = build_request(prompt="hi")

    assert request.messages[0].text() == "hi"
    assert request.output.format == OutputFormat.TEXT
    assert request.tools == []


def test_build_request_schema_implies_json():
    request = build_request(prompt="hi", output_schema=WeatherInput)

    assert request.output.format == OutputFormat.JSON
    assert request.output.schema["properties"]["city"]["type"] == "string"


def test_build_request_needs_content():
    with pytest.raises(GaikitError):
        build_request()


def test_generate_text(echo_model):
    assert generate_text(echo_model, "hello there") == "hello there"


def test_generate_streams_chunks(echo_model):
    chunks = []

    response = generate(echo_model, prompt="one two three", stream_callback=chunks.append)

    assert [c.text() for c in chunks] == ["one", "two", "three"]
    assert response.text() == "one two three"
    assert response.request.messages[0].text() == "one two three"


def _weather(input: WeatherInput) -> str:
    return f"sunny in {input.city}"


def test_tool_loop_runs_tools():
    define_tool("weather", "Gets the weather", _weather)
    model, calls = _tool_model()

    response = generate(model, prompt="weather?", tools=["weather"])

    assert response.text() == "it is sunny in Paris"
    assert len(calls) == 2
    assert calls[0].tools[0].name == "weather"
    assert calls[0].tools[0].input_schema["properties"]["city"]["type"] == "string"
    tool_message = calls[1].messages[-1]
    assert tool_message.role == Role.TOOL
    assert tool_message.content[0].tool_response.ref == "1"
    assert [m.role for m in calls[1].messages] == [Role.USER, Role.MODEL, Role.TOOL]


def test_return_tool_requests_stops_the_loop():
    tool = define_tool("weather", "Gets the weather", _weather)
    model, calls = _tool_model()

    response = generate(model, prompt="weather?", tools=[tool], return_tool_requests=True)

    assert len(calls) == 1
    assert response.tool_requests()[0].input == {"city": "Paris"}


def test_unknown_tool_name():
    model, _ = _tool_model()

    with pytest.raises(GaikitError, match="not found"):
        generate(model, prompt="weather?", tools=["missing"])


def test_max_turns():
    define_tool("weather", "Gets the weather", _weather)

    def always_asks(request, callback):
        return ModelResponse(
            message=Message(role=Role.MODEL, content=[new_tool_request_part("weather", {"city": "Oslo"})]),
        )

    supports = ModelCapabilities(multiturn=True, tools=True)
    model = define_model("test", "stubborn", ModelMetadata(supports=supports), always_asks)

    with pytest.raises(GaikitError, match="maximum tool call iterations"):
        generate(model, prompt="weather?", tools=["weather"], max_turns=2)


def test_json_output_is_validated():
    def answer(request, callback):
        return ModelResponse(message=Message(role=Role.MODEL, content=[new_text_part('{"city": 3}')]))

    model = define_model("test", "json", ModelMetadata(), answer)

    with pytest.raises(ModelError):
        generate(model, prompt="city?", output_schema=WeatherInput)


def test_tool_lookup_and_run():
    define_tool("weather", "Gets the weather", _weather)

    tool = lookup_tool("weather")

    assert tool.definition().description == "Gets the weather"
    assert tool.run({"city": "Rome"}) == "sunny in Rome"
    assert lookup_tool("nope") is None

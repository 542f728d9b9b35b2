import pytest

from gaikit.ai.types import (
    FinishReason,
    GenerationCommonConfig,
    GenerationUsage,
    Message,
    ModelRequest,
    ModelRequestOutput,
    ModelResponse,
    OutputFormat,
    Part,
    Role,
    config_from_dict,
    document_from_text,
    new_data_part,
    new_media_part,
    new_model_text_message,
    new_text_part,
    new_tool_request_part,
    new_tool_response_part,
    new_user_text_message,
)


def test_part_kinds():
    assert new_text_part("hi").is_text()
    assert new_media_part("image/png", "data:image/png;base64,AA==").is_media()
    assert new_tool_request_part("lookup", {"q": 1}).is_tool_request()
    assert not Part().is_text()


def test_message_text_joins_text_parts():
    message = Message(
        role=Role.USER,
        content=[new_text_part("a"), new_media_part("image/png", "data:,x"), new_text_part("b")],
    )
    assert message.text() == "ab"


def test_request_uses_camel_case_keys():
    request = ModelRequest(
        messages=[new_user_text_message("hi")],
        config=GenerationCommonConfig(temperature=0.5, max_output_tokens=10),
        output=ModelRequestOutput(format=OutputFormat.JSON, schema={"type": "object"}),
    )

    data = request.to_dict()

    assert data["config"] == {"temperature": 0.5, "maxOutputTokens": 10}
    assert data["output"] == {"format": "json", "schema": {"type": "object"}}
    assert "context" not in data
    parsed = ModelRequest.from_dict(data)
    assert parsed.config.max_output_tokens == 10
    assert parsed.output.format == OutputFormat.JSON


def test_config_from_dict_keeps_provider_configs():
    assert isinstance(config_from_dict({"temperature": 1}), GenerationCommonConfig)
    assert config_from_dict({"num_ctx": 4096}) == {"num_ctx": 4096}
    assert config_from_dict(None) is None


def test_response_output_and_history():
    request = ModelRequest(messages=[new_user_text_message("give me json")])
    response = ModelResponse(
        message=new_model_text_message('```json\n{"a": 1}\n```'),
        request=request,
    )

    assert response.output() == {"a": 1}
    assert [m.role for m in response.history()] == [Role.USER, Role.MODEL]


def test_tool_requests():
    response = ModelResponse(
        message=Message(role=Role.MODEL, content=[new_tool_request_part("lookup", {"q": 1}, ref="r1")])
    )

    (tool_request,) = response.tool_requests()
    assert tool_request.name == "lookup"
    assert tool_request.ref == "r1"


def test_document_from_text():
    doc = document_from_text("menu", {"price": 3})

    assert doc.text() == "menu"
    assert doc.to_dict() == {"content": [{"text": "menu"}], "metadata": {"price": 3}}


@pytest.mark.parametrize("part", [
    new_text_part("hello"),
    new_media_part("image/png", "data:image/png;base64,AAE="),
    new_media_part("", "https://example.com/menu.jpg"),
    new_tool_request_part("lookupMenu", {"dish": "soup"}, ref="call-1"),
    new_tool_response_part("lookupMenu", {"price": 6.5}, ref="call-1"),
    new_data_part({"rows": [1, 2]}),
], ids=["text", "media", "media-no-type", "tool-request", "tool-response", "data"])
def test_part_survives_dict_conversion(part):
    assert Part.from_dict(part.to_dict()) == part


def test_message_survives_dict_conversion():
    message = Message(
        role=Role.MODEL,
        content=[new_text_part("see"), new_media_part("image/png", "data:image/png;base64,AAE=")],
        metadata={"purpose": "history"},
    )

    data = message.to_dict()

    assert data["role"] == "model"
    assert Message.from_dict(data) == message


def test_response_survives_dict_conversion():
    response = ModelResponse(
        message=new_model_text_message("6.50"),
        finish_reason=FinishReason.LENGTH,
        finish_message="hit max tokens",
        request=ModelRequest(
            messages=[new_user_text_message("price of soup?")],
            config=GenerationCommonConfig(temperature=0.2),
        ),
        usage=GenerationUsage(input_tokens=4, output_tokens=2, total_tokens=6),
    )

    data = response.to_dict()

    assert data["finishReason"] == "length"
    assert data["usage"] == {"inputTokens": 4, "outputTokens": 2, "totalTokens": 6}
    assert ModelResponse.from_dict(data) == response

import pytest

from gaikit.ai.model import define_model, is_defined_model, lookup_model
from gaikit.ai.types import (
    FinishReason,
    ModelCapabilities,
    ModelMetadata,
    ModelRequest,
    ModelResponse,
    ToolDefinition,
    new_media_part,
    new_model_text_message,
    new_system_text_message,
    new_user_message,
    new_user_text_message,
)
from gaikit.core.errors import ModelError


def _fixed(text):
    def generate(request, callback):
        return ModelResponse(message=new_model_text_message(text), finish_reason=FinishReason.STOP)
    return generate


def test_define_and_lookup_model():
    model = define_model("acme", "basic", ModelMetadata(label="Basic"), _fixed("hello"))

    assert model.full_name == "acme/basic"
    assert is_defined_model("acme", "basic")
    assert not is_defined_model("acme", "other")
    looked_up = lookup_model("acme", "basic")
    assert looked_up.metadata.label == "Basic"
    response = looked_up.generate(ModelRequest(messages=[new_user_text_message("hi")]))
    assert response.text() == "hello"


def test_model_action_metadata():
    supports = ModelCapabilities(multiturn=True, system_role=True)
    model = define_model("acme", "chat", ModelMetadata(label="Chat", supports=supports), _fixed(""))

    assert model.action.metadata == {
        "model": {
            "label": "Chat",
            "supports": {"multiturn": True, "media": False, "tools": False, "systemRole": True},
        }
    }


@pytest.mark.parametrize(
    "request_, message",
    [
        (
            ModelRequest(messages=[new_user_text_message("a"), new_user_text_message("b")]),
            "does not support multiple messages",
        ),
        (
            ModelRequest(messages=[new_system_text_message("be nice")]),
            "does not support system role",
        ),
        (
            ModelRequest(messages=[new_user_message(new_media_part("image/png", "data:,x"))]),
            "does not support media",
        ),
        (
            ModelRequest(messages=[new_user_text_message("a")], tools=[ToolDefinition(name="t")]),
            "does not support tool use",
        ),
    ],
)
def test_unsupported_features_are_rejected(request_, message):
    model = define_model("acme", "plain", ModelMetadata(), _fixed("never"))

    with pytest.raises(ModelError, match=message):
        model.generate(request_)

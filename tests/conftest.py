import pytest

import gaikit.core.registry as registry_module
import gaikit.core.tracing as tracing_module
import gaikit.plugins.dotprompt.file as dotprompt_file
import gaikit.plugins.googleai.plugin as googleai_plugin
import gaikit.plugins.ollama.plugin as ollama_plugin
import gaikit.plugins.vertexai.plugin as vertexai_plugin
from gaikit.ai.model import define_model
from gaikit.ai.types import (
    FinishReason,
    ModelCapabilities,
    ModelMetadata,
    ModelResponse,
    ModelResponseChunk,
    Role,
    Message,
    new_text_part,
)


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    """Every test gets its own registry, trace store and plugin state."""
    monkeypatch.setattr(registry_module, "_registry", registry_module.Registry(env="dev"))
    monkeypatch.setattr(tracing_module, "_trace_store", tracing_module.TraceStore())
    monkeypatch.setattr(ollama_plugin, "_state", ollama_plugin._PluginState())
    monkeypatch.setattr(vertexai_plugin, "_state", vertexai_plugin._PluginState())
    monkeypatch.setattr(googleai_plugin, "_state", googleai_plugin._PluginState())
    monkeypatch.setattr(dotprompt_file, "_directory", None)


@pytest.fixture
def echo_model():
    """A model that answers with the text of the last message, streaming it word by word."""

    def generate(request, callback):
        text = request.messages[-1].text()
        if callback is not None:
            for word in text.split():
                callback(ModelResponseChunk(content=[new_text_part(word)]))
        return ModelResponse(
            message=Message(role=Role.MODEL, content=[new_text_part(text)]),
            finish_reason=FinishReason.STOP,
        )

    metadata = ModelMetadata(
        label="Echo",
        supports=ModelCapabilities(multiturn=True, system_role=True, media=True, tools=True),
    )
    return define_model("test", "echo", metadata, generate)

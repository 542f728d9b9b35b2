from types import SimpleNamespace

import pytest

import gaikit.plugins.googleai.plugin as googleai_plugin
import gaikit.plugins.vertexai.plugin as vertexai_plugin
from gaikit.ai.retriever import embed
from gaikit.ai.types import (
    FinishReason,
    GenerationCommonConfig,
    ModelRequest,
    document_from_text,
    new_media_part,
    new_system_text_message,
    new_text_part,
    new_user_message,
    new_user_text_message,
)
from gaikit.core.errors import PluginError
from gaikit.plugins import googleai, vertexai
from gaikit.plugins.internal import gemini


def _response(text, finish_reason="STOP"):
    return SimpleNamespace(
        candidates=[SimpleNamespace(
            content=SimpleNamespace(parts=[SimpleNamespace(text=text)]),
            finish_reason=SimpleNamespace(name=finish_reason),
        )],
        usage_metadata=SimpleNamespace(prompt_token_count=3, candidates_token_count=2, total_token_count=5),
    )


class FakeGenerativeModel:
    instances = []

    def __init__(self, model_name, system_instruction=None):
        self.model_name = model_name
        self.system_instruction = system_instruction
        self.calls = []
        FakeGenerativeModel.instances.append(self)

    def generate_content(self, contents, generation_config=None, stream=False):
        self.calls.append((contents, generation_config, stream))
        if stream:
            return iter([_response("Hel", "FINISH_REASON_UNSPECIFIED"), _response("lo")])
        return _response("Hello", "MAX_TOKENS")


@pytest.fixture
def fake_googleai(monkeypatch):
    FakeGenerativeModel.instances = []
    configured = {}
    monkeypatch.setattr(googleai_plugin.genai, "configure", lambda api_key: configured.update(api_key=api_key))
    monkeypatch.setattr(googleai_plugin.genai, "GenerativeModel", FakeGenerativeModel)
    monkeypatch.setattr(googleai_plugin.genai, "GenerationConfig", lambda **kwargs: kwargs)
    monkeypatch.setattr(
        googleai_plugin.genai,
        "embed_content",
        lambda model, content: {"embedding": [float(len(content)), 1.0]},
    )
    return configured


@pytest.fixture
def fake_vertexai(monkeypatch):
    FakeGenerativeModel.instances = []
    initialized = {}
    monkeypatch.setattr(vertexai_plugin.aiplatform, "init", lambda **kwargs: initialized.update(kwargs))
    monkeypatch.setattr(vertexai_plugin, "GenerativeModel", FakeGenerativeModel)
    monkeypatch.setattr(vertexai_plugin, "GenerationConfig", lambda **kwargs: kwargs)
    monkeypatch.setattr(
        vertexai_plugin,
        "Content",
        lambda role, parts: {"role": role, "parts": parts},
    )
    monkeypatch.setattr(
        vertexai_plugin,
        "Part",
        SimpleNamespace(
            from_text=lambda text: {"text": text},
            from_data=lambda data, mime_type: {"data": data, "mime_type": mime_type},
        ),
    )

    class FakeEmbeddingModel:
        @classmethod
        def from_pretrained(cls, name):
            return cls()

        def get_embeddings(self, texts):
            return [SimpleNamespace(values=[float(len(t))]) for t in texts]

    monkeypatch.setattr(vertexai_plugin, "TextEmbeddingModel", FakeEmbeddingModel)
    return initialized


def test_generation_config_kwargs():
    config = GenerationCommonConfig(temperature=0.2, max_output_tokens=64, stop_sequences=["END"])

    assert gemini.generation_config_kwargs(config) == {
        "temperature": 0.2,
        "max_output_tokens": 64,
        "stop_sequences": ["END"],
    }
    assert gemini.generation_config_kwargs(None) == {}


def test_googleai_requires_api_key(monkeypatch, fake_googleai):
    monkeypatch.delenv("GOOGLE_GENAI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    with pytest.raises(PluginError, match="need api_key"):
        googleai.init()


def test_googleai_generate(monkeypatch, fake_googleai):
    monkeypatch.setenv("GOOGLE_API_KEY", "secret")
    googleai.init()

    assert fake_googleai == {"api_key": "secret"}
    assert googleai.is_defined_model("gemini-1.5-flash")
    with pytest.raises(PluginError, match="already called"):
        googleai.init()

    model = googleai.model("gemini-1.5-flash")
    request = ModelRequest(
        messages=[
            new_system_text_message("Be terse."),
            new_user_message(new_text_part("What is this?"), new_media_part("image/png", "data:image/png;base64,AAE=")),
        ],
        config=GenerationCommonConfig(temperature=0.1),
    )

    response = model.generate(request)

    client = FakeGenerativeModel.instances[-1]
    assert client.model_name == "gemini-1.5-flash"
    assert client.system_instruction == "Be terse."
    contents, generation_config, stream = client.calls[0]
    assert contents == [{
        "role": "user",
        "parts": [
            {"text": "What is this?"},
            {"inline_data": {"mime_type": "image/png", "data": b"\x00\x01"}},
        ],
    }]
    assert generation_config == {"temperature": 0.1}
    assert stream is False
    assert response.text() == "Hello"
    assert response.finish_reason == FinishReason.LENGTH
    assert response.usage.total_tokens == 5


def test_googleai_streaming(monkeypatch, fake_googleai):
    googleai.init(api_key="secret")
    chunks = []

    response = googleai.model("gemini-1.0-pro").generate(
        ModelRequest(messages=[new_user_text_message("hi")]), chunks.append
    )

    assert [c.text() for c in chunks] == ["Hel", "lo"]
    assert response.text() == "Hello"
    assert response.finish_reason == FinishReason.STOP


def test_googleai_embedder(fake_googleai):
    googleai.init(api_key="secret")

    assert embed(googleai.embedder("embedding-001"), [document_from_text("abc")]) == [[3.0, 1.0]]


def test_vertexai_init_defaults(monkeypatch, fake_vertexai):
    monkeypatch.setenv("GCLOUD_PROJECT", "my-project")
    monkeypatch.delenv("GCLOUD_LOCATION", raising=False)

    plugin = vertexai.init()

    assert fake_vertexai == {"project": "my-project", "location": "us-central1"}
    assert plugin.location == "us-central1"
    assert vertexai.is_defined_model("gemini-1.5-pro")
    assert vertexai.embedder("textembedding-gecko@003") is not None


def test_vertexai_requires_project(monkeypatch, fake_vertexai):
    monkeypatch.delenv("GCLOUD_PROJECT", raising=False)

    with pytest.raises(PluginError, match="need project_id"):
        vertexai.init()


def test_vertexai_generate(fake_vertexai):
    vertexai.init(project_id="p", location="europe-west1")

    response = vertexai.model("gemini-1.0-pro").generate(
        ModelRequest(messages=[new_system_text_message("Be terse."), new_user_text_message("hi")])
    )

    client = FakeGenerativeModel.instances[-1]
    assert client.system_instruction == ["Be terse."]
    assert client.calls[0][0] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert response.text() == "Hello"


def test_vertexai_embedder(fake_vertexai):
    vertexai.init(project_id="p")

    assert embed(vertexai.embedder("textembedding-gecko@003"), [document_from_text("ab")]) == [[2.0]]

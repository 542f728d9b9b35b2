import base64
import json

import httpx
import pytest

import gaikit.plugins.ollama.client as ollama_client
from gaikit.ai.types import (
    FinishReason,
    Message,
    ModelRequest,
    Role,
    new_media_part,
    new_system_text_message,
    new_text_part,
    new_tool_request_part,
    new_user_message,
    new_user_text_message,
)
from gaikit.core.errors import GaikitError, ModelError, PluginError
from gaikit.plugins import ollama

IMAGE_BYTES = b"\x89PNG fake"
IMAGE_URL = "data:image/png;base64," + base64.b64encode(IMAGE_BYTES).decode()


class Recorder:
    """Answers every request with a canned response and keeps the payloads."""

    def __init__(self, status=200, body=None, lines=None):
        self.status = status
        self.body = body
        self.lines = lines
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.url.path, json.loads(request.content)))
        if self.lines is not None:
            content = "".join(line + "\n" for line in self.lines)
            return httpx.Response(self.status, content=content.encode())
        return httpx.Response(self.status, json=self.body)

    @property
    def payload(self):
        return self.requests[-1][1]


def _init(handler):
    return ollama.init(ollama.Config(server_address="http://ollama:11434"), transport=httpx.MockTransport(handler))


def test_init_requires_server_address():
    with pytest.raises(PluginError, match="need server_address"):
        ollama.init(ollama.Config())
    with pytest.raises(PluginError, match="need server_address"):
        ollama.init(None)


def test_double_init_fails():
    plugin = _init(Recorder())

    assert plugin.server_address == "http://ollama:11434"
    with pytest.raises(PluginError, match="already called"):
        _init(Recorder())


def test_define_model_requires_init():
    with pytest.raises(PluginError):
        ollama.define_model(ollama.ModelDefinition(name="llama3"))


def test_default_capabilities():
    _init(Recorder())

    llama = ollama.define_model(ollama.ModelDefinition(name="llama3", type="chat"))
    llava = ollama.define_model(ollama.ModelDefinition(name="llava", type="generate"))

    assert llama.metadata.label == "Ollama - llama3"
    assert llama.metadata.supports.multiturn and llama.metadata.supports.system_role
    assert not llama.metadata.supports.media
    assert llava.metadata.supports.media
    assert ollama.is_defined_model("llama3")
    assert ollama.model("llava").full_name == "ollama/llava"
    assert ollama.model("mistral") is None


def test_chat_request_and_response():
    recorder = Recorder(body={"model": "llama3", "created_at": "now", "message": {"role": "assistant", "content": "Paris"}})
    _init(recorder)
    model = ollama.define_model(ollama.ModelDefinition(name="llama3", type="chat"))
    request = ModelRequest(messages=[
        new_system_text_message("Be brief."),
        new_user_text_message("Capital of France?"),
    ])

    response = model.generate(request)

    path, payload = recorder.requests[0]
    assert path == "/api/chat"
    assert payload == {
        "messages": [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Capital of France?"},
        ],
        "model": "llama3",
        "stream": False,
    }
    assert response.text() == "Paris"
    assert response.message.role == Role.MODEL
    assert response.finish_reason == FinishReason.STOP
    assert response.request is request


def test_chat_images_are_base64():
    recorder = Recorder(body={"message": {"role": "assistant", "content": "a cat"}})
    _init(recorder)
    model = ollama.define_model(ollama.ModelDefinition(name="llava", type="chat"))

    model.generate(ModelRequest(messages=[
        new_user_message(new_text_part("What is "), new_text_part("this?"), new_media_part("image/png", IMAGE_URL)),
    ]))

    (message,) = recorder.payload["messages"]
    assert message["content"] == "What is this?"
    assert message["images"] == [base64.b64encode(IMAGE_BYTES).decode()]


def test_chat_rejects_unknown_parts():
    _init(Recorder(body={}))
    model = ollama.define_model(ollama.ModelDefinition(name="llama3"))
    request = ModelRequest(messages=[Message(role=Role.USER, content=[new_tool_request_part("t")])])

    with pytest.raises(ModelError, match="unknown content type"):
        model.generate(request)


def test_generate_request_and_response():
    recorder = Recorder(body={"model": "llava", "created_at": "now", "response": "a dog"})
    _init(recorder)
    model = ollama.define_model(ollama.ModelDefinition(name="llava", type="generate"))
    request = ModelRequest(messages=[
        new_system_text_message("Describe images."),
        new_user_message(new_text_part("What is this?"), new_media_part("image/png", IMAGE_URL)),
    ])

    response = model.generate(request)

    path, payload = recorder.requests[0]
    assert path == "/api/generate"
    assert payload == {
        "model": "llava",
        "prompt": "What is this?",
        "system": "Describe images.",
        "images": [base64.b64encode(IMAGE_BYTES).decode()],
        "stream": False,
    }
    assert response.text() == "a dog"
    assert response.message.role == Role.MODEL
    assert response.usage is not None
    assert response.usage.to_dict() == {}


def test_generate_omits_empty_fields():
    recorder = Recorder(body={"response": "hi"})
    _init(recorder)
    model = ollama.define_model(ollama.ModelDefinition(name="phi3", type="generate"))

    model.generate(ModelRequest(messages=[new_user_text_message("hello")]))

    assert recorder.payload == {"model": "phi3", "prompt": "hello", "stream": False}


def test_non_200_fails():
    _init(Recorder(status=500, body={"error": "model not found"}))
    model = ollama.define_model(ollama.ModelDefinition(name="llama3"))

    with pytest.raises(ModelError, match="server returned non-200 status: 500, body: .*model not found"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]))


def test_streaming_chat_merges_chunks():
    recorder = Recorder(lines=[
        json.dumps({"message": {"role": "assistant", "content": "Hel"}}),
        "",
        json.dumps({"message": {"role": "assistant", "content": "lo"}}),
    ])
    _init(recorder)
    model = ollama.define_model(ollama.ModelDefinition(name="llama3"))
    chunks = []
    request = ModelRequest(messages=[new_user_text_message("hi")])

    response = model.generate(request, chunks.append)

    assert recorder.payload["stream"] is True
    assert [c.text() for c in chunks] == ["Hel", "lo"]
    assert response.text() == "Hello"
    assert len(response.message.content) == 2
    assert response.message.role == Role.MODEL
    assert response.finish_reason == FinishReason.STOP
    assert response.request is request


def test_streaming_generate():
    _init(Recorder(lines=[json.dumps({"response": "a"}), json.dumps({"response": "b", "done": True})]))
    model = ollama.define_model(ollama.ModelDefinition(name="phi3", type="generate"))
    chunks = []

    response = model.generate(ModelRequest(messages=[new_user_text_message("hi")]), chunks.append)

    assert [c.text() for c in chunks] == ["a", "b"]
    assert response.text() == "ab"


def test_streaming_malformed_line_aborts():
    _init(Recorder(lines=[json.dumps({"response": "a"}), "{not json"]))
    model = ollama.define_model(ollama.ModelDefinition(name="phi3", type="generate"))
    chunks = []

    with pytest.raises(ModelError, match="failed to parse response JSON"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]), chunks.append)
    assert len(chunks) == 1


def test_streaming_non_200_fails_before_chunks():
    _init(Recorder(status=404, lines=["not found"]))
    model = ollama.define_model(ollama.ModelDefinition(name="llama3"))
    chunks = []

    with pytest.raises(ModelError, match="non-200 status: 404"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]), chunks.append)
    assert chunks == []


def test_callback_error_propagates():
    _init(Recorder(lines=[json.dumps({"response": "a"}), json.dumps({"response": "b"})]))
    model = ollama.define_model(ollama.ModelDefinition(name="phi3", type="generate"))

    def callback(chunk):
        raise RuntimeError("consumer gone")

    with pytest.raises(RuntimeError, match="consumer gone"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]), callback)


def test_transport_failure():
    def refuse(request):
        raise httpx.ConnectError("connection refused")

    _init(refuse)
    model = ollama.define_model(ollama.ModelDefinition(name="llama3"))

    with pytest.raises(ModelError, match="failed to send request"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]))


def test_bad_media_url():
    _init(Recorder(body={}))
    model = ollama.define_model(ollama.ModelDefinition(name="llava"))
    request = ModelRequest(messages=[new_user_message(new_media_part("image/png", "https://example.com/cat.png"))])

    with pytest.raises(GaikitError, match="unsupported media url"):
        model.generate(request)


class FakeClock:
    def __init__(self, *times):
        self.times = list(times)

    def monotonic(self):
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


def test_slow_stream_hits_total_deadline(monkeypatch):
    monkeypatch.setattr(ollama_client, "time", FakeClock(0.0, 1.0, 31.0))
    _init(Recorder(lines=[json.dumps({"response": "a"}), json.dumps({"response": "b"})]))
    model = ollama.define_model(ollama.ModelDefinition(name="phi3", type="generate"))
    chunks = []

    with pytest.raises(ModelError, match="longer than 30s"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]), chunks.append)

    assert [c.text() for c in chunks] == ["a"]


def test_slow_response_hits_total_deadline(monkeypatch):
    monkeypatch.setattr(ollama_client, "time", FakeClock(0.0, 31.0))
    _init(Recorder(body={"response": "late"}))
    model = ollama.define_model(ollama.ModelDefinition(name="phi3", type="generate"))

    with pytest.raises(ModelError, match="longer than 30s"):
        model.generate(ModelRequest(messages=[new_user_text_message("hi")]))

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import google.generativeai as genai

from gaikit.ai.model import Model, define_model as ai_define_model, is_defined_model as ai_is_defined_model, lookup_model
from gaikit.ai.retriever import EmbedRequest, Embedder, define_embedder, lookup_embedder
from gaikit.ai.types import ModelCapabilities, ModelMetadata, ModelRequest, ModelResponse
from gaikit.core.config import get_google_api_key
from gaikit.core.errors import PluginError
from gaikit.core.logger import logger
from gaikit.plugins.internal import gemini

PROVIDER = "googleai"
EMBEDDERS = ["embedding-001"]


@dataclass(frozen=True)
class GoogleAI:
    """Token returned by a successful init."""
    api_key: str


class _PluginState:
    def __init__(self):
        self.lock = threading.Lock()
        self.plugin: Optional[GoogleAI] = None


_state = _PluginState()


def _text_part(text: str) -> Dict[str, Any]:
    return {"text": text}


def _data_part(data: bytes, mime_type: str) -> Dict[str, Any]:
    return {"inline_data": {"mime_type": mime_type, "data": data}}


def _generator(model_name: str) -> Callable[..., ModelResponse]:
    def generate(request: ModelRequest, callback=None) -> ModelResponse:
        system, messages = gemini.split_system(request)
        contents = [
            {
                "role": gemini.gemini_role(m.role),
                "parts": gemini.convert_parts(m.content, _text_part, _data_part),
            }
            for m in messages
        ]
        client = genai.GenerativeModel(model_name=model_name, system_instruction=system or None)
        generation_config = genai.GenerationConfig(**gemini.generation_config_kwargs(request.config))

        logger.debug(f"Sending request to Gemini model {model_name} (stream={callback is not None})")
        if callback is None:
            response = client.generate_content(contents, generation_config=generation_config)
            return gemini.translate_response(response, request)
        responses = client.generate_content(contents, generation_config=generation_config, stream=True)
        return gemini.generate_streamed(responses, request, callback)

    return generate


def _embed_fn(model_name: str) -> Callable[[EmbedRequest], List[List[float]]]:
    def embed(request: EmbedRequest) -> List[List[float]]:
        embeddings = []
        for document in request.documents:
            result = genai.embed_content(model=f"models/{model_name}", content=document.text())
            embeddings.append(list(result["embedding"]))
        return embeddings

    return embed


def init(api_key: Optional[str] = None) -> GoogleAI:
    """
    Initialize the Google AI plugin and define its models and embedders.

    The API key defaults to GOOGLE_GENAI_API_KEY, then GOOGLE_API_KEY.
    """
    with _state.lock:
        if _state.plugin is not None:
            raise PluginError("googleai.init already called")
        api_key = api_key or get_google_api_key()
        if not api_key:
            raise PluginError("googleai: need api_key (set GOOGLE_GENAI_API_KEY or GOOGLE_API_KEY)")
        genai.configure(api_key=api_key)
        _state.plugin = GoogleAI(api_key=api_key)

    for name, capabilities in gemini.GEMINI_MODELS.items():
        define_model(name, capabilities)
    for name in EMBEDDERS:
        define_embedder(PROVIDER, name, _embed_fn(name))
    logger.info("Initialized Google AI plugin")
    return _state.plugin


def define_model(name: str, capabilities: Optional[ModelCapabilities] = None) -> Model:
    with _state.lock:
        if _state.plugin is None:
            raise PluginError("googleai.init not called")
    if capabilities is None:
        capabilities = gemini.GEMINI_MODELS.get(name, ModelCapabilities(multiturn=True, system_role=True))
    metadata = ModelMetadata(label=f"Google AI - {name}", supports=capabilities)
    return ai_define_model(PROVIDER, name, metadata, _generator(name))


def is_defined_model(name: str) -> bool:
    return ai_is_defined_model(PROVIDER, name)


def model(name: str) -> Optional[Model]:
    return lookup_model(PROVIDER, name)


def embedder(name: str) -> Optional[Embedder]:
    return lookup_embedder(PROVIDER, name)

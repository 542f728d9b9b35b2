import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from google.cloud import aiplatform
from vertexai.generative_models import Content, GenerationConfig, GenerativeModel, Part
from vertexai.language_models import TextEmbeddingModel

from gaikit.ai.model import Model, define_model as ai_define_model, is_defined_model as ai_is_defined_model, lookup_model
from gaikit.ai.retriever import EmbedRequest, Embedder, define_embedder, lookup_embedder
from gaikit.ai.types import ModelCapabilities, ModelMetadata, ModelRequest, ModelResponse, ModelResponseChunk
from gaikit.core.config import get_gcloud_location, get_gcloud_project
from gaikit.core.errors import PluginError
from gaikit.core.logger import logger
from gaikit.plugins.internal import gemini

PROVIDER = "vertexai"
EMBEDDERS = ["textembedding-gecko@003"]


@dataclass(frozen=True)
class VertexAI:
    """Token returned by a successful init."""
    project_id: str
    location: str


class _PluginState:
    def __init__(self):
        self.lock = threading.Lock()
        self.plugin: Optional[VertexAI] = None


_state = _PluginState()


def _generator(model_name: str) -> Callable[[ModelRequest, Optional[Callable[[ModelResponseChunk], None]]], ModelResponse]:
    def generate(request: ModelRequest, callback=None) -> ModelResponse:
        system, messages = gemini.split_system(request)
        contents = [
            Content(
                role=gemini.gemini_role(m.role),
                parts=gemini.convert_parts(
                    m.content,
                    Part.from_text,
                    lambda data, mime_type: Part.from_data(data=data, mime_type=mime_type),
                ),
            )
            for m in messages
        ]
        client = GenerativeModel(model_name, system_instruction=[system] if system else None)
        generation_config = GenerationConfig(**gemini.generation_config_kwargs(request.config))

        logger.debug(f"Sending request to Vertex AI model {model_name} (stream={callback is not None})")
        if callback is None:
            response = client.generate_content(contents, generation_config=generation_config)
            return gemini.translate_response(response, request)
        responses = client.generate_content(contents, generation_config=generation_config, stream=True)
        return gemini.generate_streamed(responses, request, callback)

    return generate


def _embed_fn(model_name: str) -> Callable[[EmbedRequest], List[List[float]]]:
    def embed(request: EmbedRequest) -> List[List[float]]:
        client = TextEmbeddingModel.from_pretrained(model_name)
        results = client.get_embeddings([d.text() for d in request.documents])
        return [list(r.values) for r in results]

    return embed


def init(project_id: Optional[str] = None, location: Optional[str] = None) -> VertexAI:
    """
    Initialize the Vertex AI plugin and define its models and embedders.

    Args:
        project_id: Google Cloud project (default: GCLOUD_PROJECT)
        location: Region (default: GCLOUD_LOCATION or us-central1)

    Returns:
        VertexAI: The initialized plugin
    """
    with _state.lock:
        if _state.plugin is not None:
            raise PluginError("vertexai.init already called")
        project_id = project_id or get_gcloud_project()
        location = location or get_gcloud_location()
        if not project_id:
            raise PluginError("vertexai: need project_id (set GCLOUD_PROJECT)")
        aiplatform.init(project=project_id, location=location)
        _state.plugin = VertexAI(project_id=project_id, location=location)

    for name, capabilities in gemini.GEMINI_MODELS.items():
        define_model(name, capabilities)
    for name in EMBEDDERS:
        define_embedder(PROVIDER, name, _embed_fn(name))
    logger.info(f"Initialized Vertex AI plugin for {project_id} in {location}")
    return _state.plugin


def define_model(name: str, capabilities: Optional[ModelCapabilities] = None) -> Model:
    with _state.lock:
        if _state.plugin is None:
            raise PluginError("vertexai.init not called")
    if capabilities is None:
        capabilities = gemini.GEMINI_MODELS.get(name, ModelCapabilities(multiturn=True, system_role=True))
    metadata = ModelMetadata(label=f"Vertex AI - {name}", supports=capabilities)
    return ai_define_model(PROVIDER, name, metadata, _generator(name))


def is_defined_model(name: str) -> bool:
    return ai_is_defined_model(PROVIDER, name)


def model(name: str) -> Optional[Model]:
    return lookup_model(PROVIDER, name)


def embedder(name: str) -> Optional[Embedder]:
    return lookup_embedder(PROVIDER, name)

import threading
from dataclasses import dataclass
from typing import Optional

import httpx

from gaikit.ai.model import Model, define_model as ai_define_model, is_defined_model as ai_is_defined_model, lookup_model
from gaikit.ai.types import ModelCapabilities, ModelMetadata
from gaikit.core.errors import PluginError
from gaikit.core.logger import logger

from .client import OllamaClient

PROVIDER = "ollama"
MEDIA_SUPPORTED_MODELS = ["llava"]


@dataclass
class Config:
    server_address: str = ""


@dataclass
class ModelDefinition:
    """An Ollama model; type "chat" uses /api/chat, anything else /api/generate."""
    name: str
    type: str = "chat"


@dataclass(frozen=True)
class Ollama:
    """Token returned by a successful init."""
    server_address: str


class _PluginState:
    def __init__(self):
        self.lock = threading.Lock()
        self.plugin: Optional[Ollama] = None
        self.transport: Optional[httpx.BaseTransport] = None


_state = _PluginState()


def init(config: Optional[Config], transport: Optional[httpx.BaseTransport] = None) -> Ollama:
    """
    Initialize the Ollama plugin. Only one init per process is allowed.

    Ollama models are hosted locally, so no models are defined here; call
    define_model for each model pulled onto the server.

    Args:
        config: Plugin configuration with the server address
        transport: Optional httpx transport used for every request

    Returns:
        Ollama: The initialized plugin
    """
    with _state.lock:
        if _state.plugin is not None:
            raise PluginError("ollama.init already called")
        if config is None or not config.server_address:
            raise PluginError("ollama: need server_address")
        _state.plugin = Ollama(server_address=config.server_address)
        _state.transport = transport
        logger.info(f"Initialized Ollama plugin at {config.server_address}")
        return _state.plugin


def define_model(model: ModelDefinition, capabilities: Optional[ModelCapabilities] = None) -> Model:
    """Define an Ollama model under ollama/{name}."""
    with _state.lock:
        if _state.plugin is None:
            raise PluginError("ollama.init not called")
        server_address = _state.plugin.server_address
        transport = _state.transport

    if capabilities is None:
        capabilities = ModelCapabilities(
            multiturn=True,
            system_role=True,
            media=model.name in MEDIA_SUPPORTED_MODELS,
        )
    metadata = ModelMetadata(label=f"Ollama - {model.name}", supports=capabilities)
    client = OllamaClient(server_address, model.name, model.type, transport=transport)
    return ai_define_model(PROVIDER, model.name, metadata, client.generate)


def is_defined_model(name: str) -> bool:
    return ai_is_defined_model(PROVIDER, name)


def model(name: str) -> Optional[Model]:
    """The Ollama model with the given name, or None when it was not defined."""
    return lookup_model(PROVIDER, name)

from .client import OllamaClient
from .models import OllamaMessage, OllamaResponse
from .plugin import (
    MEDIA_SUPPORTED_MODELS,
    PROVIDER,
    Config,
    ModelDefinition,
    Ollama,
    define_model,
    init,
    is_defined_model,
    model,
)

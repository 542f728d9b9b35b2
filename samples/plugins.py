from typing import Any, Dict, List, Optional

from gaikit.core.config import get_plugin_configs
from gaikit.core.logger import logger
from gaikit.plugins import dotprompt, googleai, ollama, vertexai


def init_plugins(configs: Optional[Dict[str, Dict[str, Any]]] = None) -> List[str]:
    """
    Initialize the plugins that have what they need in the configuration.

    Ollama and dotprompt always start. Vertex AI needs a project and
    Google AI needs an API key.

    Returns:
        List[str]: Names of the initialized plugins
    """
    configs = configs or get_plugin_configs()
    started = []

    ollama.init(ollama.Config(server_address=configs['ollama']['server_address']))
    started.append('ollama')

    dotprompt.set_directory(configs['dotprompt']['directory'])
    started.append('dotprompt')

    if configs['vertexai']['project_id']:
        vertexai.init(**configs['vertexai'])
        started.append('vertexai')

    if configs['googleai']['api_key']:
        googleai.init(**configs['googleai'])
        started.append('googleai')

    logger.info(f"Initialized plugins: {', '.join(started)}")
    return started

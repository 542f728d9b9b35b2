import os
from typing import Any, Dict, Optional

DEFAULT_REFLECTION_PORT = 3100
DEFAULT_FLOW_SERVER_PORT = 3400
DEFAULT_OLLAMA_HOST = 'http://localhost:11434'
DEFAULT_GCLOUD_LOCATION = 'us-central1'
DEFAULT_PROMPT_DIR = 'prompts'


def get_env() -> str:
    """
    Get the runtime environment.

    Returns:
        str: 'dev' when GENKIT_ENV is set to dev, 'prod' otherwise
    """
    env = os.getenv('GENKIT_ENV', 'prod').strip().lower()
    return 'dev' if env == 'dev' else 'prod'


def is_dev() -> bool:
    return get_env() == 'dev'


def get_reflection_port() -> int:
    return int(os.getenv('GENKIT_REFLECTION_PORT', str(DEFAULT_REFLECTION_PORT)))


def get_flow_server_port() -> int:
    return int(os.getenv('PORT', str(DEFAULT_FLOW_SERVER_PORT)))


def get_ollama_host() -> str:
    return os.getenv('OLLAMA_HOST', DEFAULT_OLLAMA_HOST)


def get_gcloud_project() -> Optional[str]:
    return os.getenv('GCLOUD_PROJECT') or None


def get_gcloud_location() -> str:
    return os.getenv('GCLOUD_LOCATION', DEFAULT_GCLOUD_LOCATION)


def get_google_api_key() -> Optional[str]:
    """Gemini API key, preferring GOOGLE_GENAI_API_KEY over GOOGLE_API_KEY."""
    return os.getenv('GOOGLE_GENAI_API_KEY') or os.getenv('GOOGLE_API_KEY') or None


def get_prompt_dir() -> str:
    return os.getenv('GAIKIT_PROMPT_DIR', DEFAULT_PROMPT_DIR)


def get_plugin_configs() -> Dict[str, Dict[str, Any]]:
    """
    Get the configuration for each plugin.

    Returns:
        Dict mapping plugin name to configuration
    """
    configs = {}

    configs['ollama'] = {
        'server_address': get_ollama_host(),
    }

    configs['vertexai'] = {
        'project_id': get_gcloud_project(),
        'location': get_gcloud_location(),
    }

    configs['googleai'] = {
        'api_key': get_google_api_key(),
    }

    configs['dotprompt'] = {
        'directory': get_prompt_dir(),
    }

    return configs

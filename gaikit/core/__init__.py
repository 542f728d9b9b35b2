from .action import Action, ActionType
from .errors import (
    ActionNotFoundError,
    AuthError,
    GaikitError,
    ModelError,
    PluginError,
    PromptError,
    SchemaValidationError,
)
from .registry import Registry, get_registry
from .tracing import current_span, get_trace_store, set_custom_metadata_attr, start_span

__all__ = [
    'Action',
    'ActionType',
    'ActionNotFoundError',
    'AuthError',
    'GaikitError',
    'ModelError',
    'PluginError',
    'PromptError',
    'SchemaValidationError',
    'Registry',
    'get_registry',
    'current_span',
    'get_trace_store',
    'set_custom_metadata_attr',
    'start_span',
]

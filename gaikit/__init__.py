from .ai import (
    Document,
    Message,
    ModelRequest,
    ModelResponse,
    Role,
    define_model,
    define_tool,
    generate,
    generate_text,
    index,
    retrieve,
)
from .core import GaikitError, get_registry
from .orchestration import (
    FlowAuth,
    current_auth_context,
    define_flow,
    define_streaming_flow,
    init,
    lookup_flow,
    run,
)

__version__ = "0.1.0"

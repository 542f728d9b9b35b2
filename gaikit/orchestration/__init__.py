from .auth import AuthContext, FlowAuth
from .flow import (
    Flow,
    StreamFlowValue,
    current_auth_context,
    define_flow,
    define_streaming_flow,
    lookup_flow,
    run,
)
from .server import create_flow_app, create_reflection_app, init
from .streaming import StreamClosedError, StreamEvent, iterate_callbacks

__all__ = [
    'AuthContext',
    'FlowAuth',
    'Flow',
    'StreamFlowValue',
    'current_auth_context',
    'define_flow',
    'define_streaming_flow',
    'lookup_flow',
    'run',
    'create_flow_app',
    'create_reflection_app',
    'init',
    'StreamClosedError',
    'StreamEvent',
    'iterate_callbacks',
]

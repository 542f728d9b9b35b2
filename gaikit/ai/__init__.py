from .evaluator import (
    BaseEvalDataPoint,
    EvalResponseItem,
    Evaluator,
    Score,
    define_evaluator,
    evaluate,
    lookup_evaluator,
)
from .generate import generate, generate_text
from .model import Model, define_model, is_defined_model, lookup_model
from .retriever import (
    Embedder,
    Indexer,
    Retriever,
    RetrieverRequest,
    RetrieverResponse,
    define_embedder,
    define_indexer,
    define_retriever,
    embed,
    index,
    lookup_embedder,
    lookup_indexer,
    lookup_retriever,
    retrieve,
)
from .tools import Tool, define_tool, lookup_tool
from .types import (
    Document,
    FinishReason,
    GenerationCommonConfig,
    GenerationUsage,
    MediaPart,
    Message,
    ModelCapabilities,
    ModelMetadata,
    ModelRequest,
    ModelRequestOutput,
    ModelResponse,
    ModelResponseChunk,
    OutputFormat,
    Part,
    Role,
    ToolDefinition,
    ToolRequest,
    ToolResponse,
    document_from_text,
    new_data_part,
    new_media_part,
    new_model_message,
    new_model_text_message,
    new_system_message,
    new_system_text_message,
    new_text_part,
    new_tool_request_part,
    new_tool_response_part,
    new_user_message,
    new_user_text_message,
)

from typing import Any, Callable, Dict, List, Optional, Tuple

from gaikit.ai.types import (
    FinishReason,
    GenerationUsage,
    Message,
    ModelCapabilities,
    ModelRequest,
    ModelResponse,
    ModelResponseChunk,
    Part,
    Role,
    config_to_dict,
    new_text_part,
)
from gaikit.core.errors import ModelError

from . import uri

GEMINI_MODELS: Dict[str, ModelCapabilities] = {
    "gemini-1.0-pro": ModelCapabilities(multiturn=True, system_role=True),
    "gemini-1.5-pro": ModelCapabilities(multiturn=True, system_role=True, media=True),
    "gemini-1.5-flash": ModelCapabilities(multiturn=True, system_role=True, media=True),
}

_FINISH_REASONS = {
    "STOP": FinishReason.STOP,
    "MAX_TOKENS": FinishReason.LENGTH,
    "SAFETY": FinishReason.BLOCKED,
    "RECITATION": FinishReason.BLOCKED,
    "BLOCKLIST": FinishReason.BLOCKED,
    "PROHIBITED_CONTENT": FinishReason.BLOCKED,
    "OTHER": FinishReason.OTHER,
}

_CONFIG_KEYS = {
    "temperature": "temperature",
    "maxOutputTokens": "max_output_tokens",
    "topK": "top_k",
    "topP": "top_p",
    "stopSequences": "stop_sequences",
}


def generation_config_kwargs(config: Any) -> Dict[str, Any]:
    """Map a request config to GenerationConfig keyword arguments."""
    data = config_to_dict(config) or {}
    return {
        _CONFIG_KEYS[key]: value
        for key, value in data.items()
        if key in _CONFIG_KEYS and value is not None
    }


def split_system(request: ModelRequest) -> Tuple[str, List[Message]]:
    """Pull the system messages out as one instruction text."""
    system = []
    rest = []
    for message in request.messages:
        if message.role == Role.SYSTEM:
            system.append(message.text())
        else:
            rest.append(message)
    return "\n".join(system), rest


def gemini_role(role: Role) -> str:
    if role == Role.MODEL:
        return "model"
    if role == Role.USER:
        return "user"
    raise ModelError(f"gemini: unsupported message role {role.value}")


def convert_parts(
    parts: List[Part],
    text_part: Callable[[str], Any],
    data_part: Callable[[bytes, str], Any],
) -> List[Any]:
    """Translate parts with SDK-specific constructors for text and inline data."""
    converted = []
    for part in parts:
        if part.is_text():
            converted.append(text_part(part.text))
        elif part.is_media():
            content_type, raw = uri.data(part)
            converted.append(data_part(raw, content_type))
        else:
            raise ModelError("gemini: unsupported part type")
    return converted


def _candidate_text(candidate: Any) -> str:
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    return "".join(getattr(p, "text", "") or "" for p in parts)


def _finish_reason(candidate: Any) -> FinishReason:
    reason = getattr(candidate, "finish_reason", None)
    name = getattr(reason, "name", reason)
    return _FINISH_REASONS.get(str(name), FinishReason.UNKNOWN) if name is not None else FinishReason.UNKNOWN


def _usage(response: Any) -> Optional[GenerationUsage]:
    metadata = getattr(response, "usage_metadata", None)
    if metadata is None:
        return None
    return GenerationUsage(
        input_tokens=getattr(metadata, "prompt_token_count", None),
        output_tokens=getattr(metadata, "candidates_token_count", None),
        total_tokens=getattr(metadata, "total_token_count", None),
    )


def translate_response(response: Any, request: ModelRequest) -> ModelResponse:
    candidates = list(getattr(response, "candidates", None) or [])
    if not candidates:
        raise ModelError("gemini: response has no candidates")
    candidate = candidates[0]
    return ModelResponse(
        message=Message(role=Role.MODEL, content=[new_text_part(_candidate_text(candidate))]),
        finish_reason=_finish_reason(candidate),
        request=request,
        usage=_usage(response),
    )


def generate_streamed(
    responses: Any,
    request: ModelRequest,
    callback: Callable[[ModelResponseChunk], None],
) -> ModelResponse:
    """Send one chunk per streamed response, then merge them."""
    texts = []
    finish_reason = FinishReason.UNKNOWN
    usage = None
    for response in responses:
        candidates = list(getattr(response, "candidates", None) or [])
        if not candidates:
            continue
        text = _candidate_text(candidates[0])
        texts.append(text)
        finish_reason = _finish_reason(candidates[0])
        usage = _usage(response) or usage
        callback(ModelResponseChunk(content=[new_text_part(text)], index=0, role=Role.MODEL))
    return ModelResponse(
        message=Message(role=Role.MODEL, content=[new_text_part("".join(texts))]),
        finish_reason=finish_reason,
        request=request,
        usage=usage,
    )

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from gaikit.core.schema import to_jsonable


class Role(Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"
    TOOL = "tool"


class OutputFormat(Enum):
    TEXT = "text"
    JSON = "json"
    MEDIA = "media"


class FinishReason(Enum):
    STOP = "stop"
    LENGTH = "length"
    BLOCKED = "blocked"
    OTHER = "other"
    UNKNOWN = "unknown"


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class MediaPart:
    url: str
    content_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"url": self.url, "contentType": self.content_type or None})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MediaPart':
        return cls(url=data["url"], content_type=data.get("contentType", ""))


@dataclass
class ToolRequest:
    name: str
    input: Any = None
    ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"name": self.name, "input": self.input, "ref": self.ref})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolRequest':
        return cls(name=data["name"], input=data.get("input"), ref=data.get("ref"))


@dataclass
class ToolResponse:
    name: str
    output: Any = None
    ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"name": self.name, "output": self.output, "ref": self.ref})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolResponse':
        return cls(name=data["name"], output=data.get("output"), ref=data.get("ref"))


@dataclass
class Part:
    """One piece of message content; exactly one field is set."""
    text: Optional[str] = None
    media: Optional[MediaPart] = None
    tool_request: Optional[ToolRequest] = None
    tool_response: Optional[ToolResponse] = None
    data: Any = None

    def is_text(self) -> bool:
        return self.text is not None

    def is_media(self) -> bool:
        return self.media is not None

    def is_tool_request(self) -> bool:
        return self.tool_request is not None

    def is_tool_response(self) -> bool:
        return self.tool_response is not None

    def is_data(self) -> bool:
        return self.data is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.is_media():
            return {"media": self.media.to_dict()}
        if self.is_tool_request():
            return {"toolRequest": self.tool_request.to_dict()}
        if self.is_tool_response():
            return {"toolResponse": self.tool_response.to_dict()}
        if self.is_data():
            return {"data": self.data}
        return {"text": self.text or ""}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Part':
        if "media" in data:
            return cls(media=MediaPart.from_dict(data["media"]))
        if "toolRequest" in data:
            return cls(tool_request=ToolRequest.from_dict(data["toolRequest"]))
        if "toolResponse" in data:
            return cls(tool_response=ToolResponse.from_dict(data["toolResponse"]))
        if "data" in data:
            return cls(data=data["data"])
        return cls(text=data.get("text", ""))


def new_text_part(text: str) -> Part:
    return Part(text=text)


def new_media_part(content_type: str, url: str) -> Part:
    return Part(media=MediaPart(url=url, content_type=content_type))


def new_tool_request_part(name: str, input: Any = None, ref: Optional[str] = None) -> Part:
    return Part(tool_request=ToolRequest(name=name, input=input, ref=ref))


def new_tool_response_part(name: str, output: Any = None, ref: Optional[str] = None) -> Part:
    return Part(tool_response=ToolResponse(name=name, output=output, ref=ref))


def new_data_part(data: Any) -> Part:
    return Part(data=data)


def _text_of(parts: List[Part]) -> str:
    return "".join(p.text for p in parts if p.is_text())


@dataclass
class Message:
    role: Role
    content: List[Part] = field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    def text(self) -> str:
        return _text_of(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "role": self.role.value,
            "content": [p.to_dict() for p in self.content],
            "metadata": self.metadata,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        return cls(
            role=Role(data["role"]),
            content=[Part.from_dict(p) for p in data.get("content", [])],
            metadata=data.get("metadata"),
        )


def new_message(role: Role, *parts: Part) -> Message:
    return Message(role=role, content=list(parts))


def new_user_message(*parts: Part) -> Message:
    return new_message(Role.USER, *parts)


def new_model_message(*parts: Part) -> Message:
    return new_message(Role.MODEL, *parts)


def new_system_message(*parts: Part) -> Message:
    return new_message(Role.SYSTEM, *parts)


def new_user_text_message(text: str) -> Message:
    return new_user_message(new_text_part(text))


def new_model_text_message(text: str) -> Message:
    return new_model_message(new_text_part(text))


def new_system_text_message(text: str) -> Message:
    return new_system_message(new_text_part(text))


@dataclass
class GenerationCommonConfig:
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    top_k: Optional[int] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
            "topK": self.top_k,
            "topP": self.top_p,
            "stopSequences": self.stop_sequences,
            "version": self.version,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GenerationCommonConfig':
        return cls(
            temperature=data.get("temperature"),
            max_output_tokens=data.get("maxOutputTokens"),
            top_k=data.get("topK"),
            top_p=data.get("topP"),
            stop_sequences=data.get("stopSequences"),
            version=data.get("version"),
        )


def config_to_dict(config: Any) -> Optional[Dict[str, Any]]:
    """Configs may be GenerationCommonConfig or a provider-specific dict."""
    if config is None:
        return None
    if isinstance(config, GenerationCommonConfig):
        return config.to_dict()
    return dict(config)


def config_from_dict(data: Optional[Dict[str, Any]]) -> Any:
    if data is None:
        return None
    known = {"temperature", "maxOutputTokens", "topK", "topP", "stopSequences", "version"}
    if set(data) <= known:
        return GenerationCommonConfig.from_dict(data)
    return dict(data)


@dataclass
class ModelRequestOutput:
    format: Optional[OutputFormat] = None
    schema: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "format": self.format.value if self.format else None,
            "schema": self.schema,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelRequestOutput':
        return cls(
            format=OutputFormat(data["format"]) if data.get("format") else None,
            schema=data.get("schema"),
        )


@dataclass
class ToolDefinition:
    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolDefinition':
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            input_schema=data.get("inputSchema"),
            output_schema=data.get("outputSchema"),
        )


@dataclass
class ModelRequest:
    messages: List[Message] = field(default_factory=list)
    config: Any = None
    context: Optional[List[Any]] = None
    output: Optional[ModelRequestOutput] = None
    tools: Optional[List[ToolDefinition]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "messages": [m.to_dict() for m in self.messages],
            "config": config_to_dict(self.config),
            "context": to_jsonable(self.context),
            "output": self.output.to_dict() if self.output else None,
            "tools": [t.to_dict() for t in self.tools] if self.tools is not None else None,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelRequest':
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            config=config_from_dict(data.get("config")),
            context=data.get("context"),
            output=ModelRequestOutput.from_dict(data["output"]) if data.get("output") else None,
            tools=[ToolDefinition.from_dict(t) for t in data["tools"]] if data.get("tools") is not None else None,
        )


@dataclass
class GenerationUsage:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    custom: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "custom": self.custom,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GenerationUsage':
        return cls(
            input_tokens=data.get("inputTokens"),
            output_tokens=data.get("outputTokens"),
            total_tokens=data.get("totalTokens"),
            custom=data.get("custom"),
        )


@dataclass
class ModelResponse:
    message: Optional[Message] = None
    finish_reason: FinishReason = FinishReason.UNKNOWN
    finish_message: Optional[str] = None
    request: Optional[ModelRequest] = None
    usage: Optional[GenerationUsage] = None
    custom: Any = None

    def text(self) -> str:
        if self.message is None:
            return ""
        return self.message.text()

    def tool_requests(self) -> List[ToolRequest]:
        if self.message is None:
            return []
        return [p.tool_request for p in self.message.content if p.is_tool_request()]

    def output(self) -> Any:
        """The response text decoded as JSON."""
        text = self.text().strip()
        # Models often fence JSON in markdown
        if text.startswith("```"):
            text = text.strip("`")
            if text.startswith("json"):
                text = text[len("json"):]
        return json.loads(text)

    def history(self) -> List[Message]:
        messages = list(self.request.messages) if self.request else []
        if self.message is not None:
            messages.append(self.message)
        return messages

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "message": self.message.to_dict() if self.message else None,
            "finishReason": self.finish_reason.value,
            "finishMessage": self.finish_message,
            "request": self.request.to_dict() if self.request else None,
            "usage": self.usage.to_dict() if self.usage else None,
            "custom": self.custom,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelResponse':
        return cls(
            message=Message.from_dict(data["message"]) if data.get("message") else None,
            finish_reason=FinishReason(data.get("finishReason", "unknown")),
            finish_message=data.get("finishMessage"),
            request=ModelRequest.from_dict(data["request"]) if data.get("request") else None,
            usage=GenerationUsage.from_dict(data["usage"]) if data.get("usage") is not None else None,
            custom=data.get("custom"),
        )


@dataclass
class ModelResponseChunk:
    content: List[Part] = field(default_factory=list)
    index: int = 0
    role: Optional[Role] = None

    def text(self) -> str:
        return _text_of(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "content": [p.to_dict() for p in self.content],
            "index": self.index,
            "role": self.role.value if self.role else None,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelResponseChunk':
        return cls(
            content=[Part.from_dict(p) for p in data.get("content", [])],
            index=data.get("index", 0),
            role=Role(data["role"]) if data.get("role") else None,
        )


@dataclass
class Document:
    content: List[Part] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def text(self) -> str:
        return _text_of(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": [p.to_dict() for p in self.content],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Document':
        return cls(
            content=[Part.from_dict(p) for p in data.get("content", [])],
            metadata=data.get("metadata") or {},
        )


def document_from_text(text: str, metadata: Optional[Dict[str, Any]] = None) -> Document:
    return Document(content=[new_text_part(text)], metadata=dict(metadata or {}))


@dataclass
class ModelCapabilities:
    multiturn: bool = False
    media: bool = False
    tools: bool = False
    system_role: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "multiturn": self.multiturn,
            "media": self.media,
            "tools": self.tools,
            "systemRole": self.system_role,
        }


@dataclass
class ModelMetadata:
    label: str = ""
    supports: ModelCapabilities = field(default_factory=ModelCapabilities)

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "supports": self.supports.to_dict()}

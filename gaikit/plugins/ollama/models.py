from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class OllamaMessage:
    role: str  # system, assistant, user or tool
    content: str
    images: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {"role": self.role, "content": self.content}
        if self.images:
            data["images"] = self.images
        return data


@dataclass
class OllamaChatRequest:
    messages: List[OllamaMessage]
    model: str
    stream: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "model": self.model,
            "stream": self.stream,
        }


@dataclass
class OllamaGenerateRequest:
    model: str
    prompt: str
    stream: bool
    system: str = ""
    images: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {"model": self.model, "prompt": self.prompt, "stream": self.stream}
        if self.system:
            data["system"] = self.system
        if self.images:
            data["images"] = self.images
        return data


@dataclass
class OllamaChatResponse:
    model: str
    created_at: str
    message: OllamaMessage

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OllamaChatResponse':
        message = data.get("message") or {}
        return cls(
            model=data.get("model", ""),
            created_at=data.get("created_at", ""),
            message=OllamaMessage(
                role=message.get("role", ""),
                content=message.get("content", ""),
            ),
        )


@dataclass
class OllamaResponse:
    model: str
    created_at: str
    response: str
    done: bool = False
    context: Optional[List[int]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OllamaResponse':
        return cls(
            model=data.get("model", ""),
            created_at=data.get("created_at", ""),
            response=data.get("response", ""),
            done=data.get("done", False),
            context=data.get("context"),
        )

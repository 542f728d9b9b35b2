import base64
import json
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from gaikit.ai.types import (
    FinishReason,
    GenerationUsage,
    Message,
    ModelRequest,
    ModelResponse,
    ModelResponseChunk,
    Part,
    Role,
    new_text_part,
)
from gaikit.core.errors import ModelError
from gaikit.core.logger import logger
from gaikit.plugins.internal import uri

from .models import (
    OllamaChatRequest,
    OllamaChatResponse,
    OllamaGenerateRequest,
    OllamaMessage,
    OllamaResponse,
)

ROLE_MAPPING = {
    Role.USER: "user",
    Role.MODEL: "assistant",
    Role.SYSTEM: "system",
    Role.TOOL: "tool",
}
_REVERSE_ROLE_MAPPING = {v: k for k, v in ROLE_MAPPING.items()}

REQUEST_TIMEOUT = 30.0


class OllamaClient:
    """
    Sends model requests to an Ollama server's chat or generate endpoint.

    A request fails with ModelError once REQUEST_TIMEOUT seconds have passed in
    total, even while the server keeps sending.
    """

    def __init__(
        self,
        server_address: str,
        model: str,
        model_type: str = "chat",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_address = server_address.rstrip("/")
        self.model = model
        self.model_type = model_type
        self.timeout = httpx.Timeout(timeout=REQUEST_TIMEOUT)
        self.transport = transport

    @property
    def is_chat_model(self) -> bool:
        return self.model_type == "chat"

    def _get_url(self) -> str:
        if self.is_chat_model:
            return self.server_address + "/api/chat"
        return self.server_address + "/api/generate"

    def _build_payload(self, request: ModelRequest, stream: bool) -> Dict[str, Any]:
        if self.is_chat_model:
            messages = [convert_message(m) for m in request.messages]
            return OllamaChatRequest(messages=messages, model=self.model, stream=stream).to_dict()
        return OllamaGenerateRequest(
            model=self.model,
            prompt=concat_messages(request, [Role.USER, Role.MODEL, Role.TOOL]),
            system=concat_messages(request, [Role.SYSTEM]),
            images=concat_images(request, [Role.USER, Role.MODEL]),
            stream=stream,
        ).to_dict()

    def generate(
        self,
        request: ModelRequest,
        callback: Optional[Callable[[ModelResponseChunk], None]] = None,
    ) -> ModelResponse:
        """
        Run one generation against the server.

        Args:
            request: The model request
            callback: When given, the response is streamed and each chunk passed here

        Returns:
            ModelResponse: The final response; for streams, all chunks merged
        """
        stream = callback is not None
        payload = self._build_payload(request, stream)
        url = self._get_url()
        logger.debug(f"Sending request to Ollama model {self.model} at {url} (stream={stream})")

        # httpx timeouts apply per read; the deadline bounds the whole exchange.
        deadline = time.monotonic() + REQUEST_TIMEOUT
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            try:
                with client.stream(
                    "POST", url, json=payload, headers={"Content-Type": "application/json"}
                ) as response:
                    if response.status_code != 200:
                        response.read()
                        _check_status(response.status_code, response.text)

                    if not stream:
                        return self._translate_response(_read_text(response, deadline), request)

                    chunks = []
                    for line in response.iter_lines():
                        _check_deadline(deadline)
                        if not line.strip():
                            continue
                        chunk = self._translate_chunk(line)
                        chunks.append(chunk)
                        callback(chunk)
            except httpx.HTTPError as e:
                raise ModelError(f"failed to send request: {e}") from e

        content: List[Part] = []
        for chunk in chunks:
            content.extend(chunk.content)
        return ModelResponse(
            message=Message(role=Role.MODEL, content=content),
            finish_reason=FinishReason.STOP,
            request=request,
        )

    def _translate_response(self, body: str, request: ModelRequest) -> ModelResponse:
        data = _decode(body)
        if self.is_chat_model:
            chat = OllamaChatResponse.from_dict(data)
            role = _REVERSE_ROLE_MAPPING.get(chat.message.role, Role.MODEL)
            return ModelResponse(
                message=Message(role=role, content=[new_text_part(chat.message.content)]),
                finish_reason=FinishReason.STOP,
                request=request,
            )
        generated = OllamaResponse.from_dict(data)
        return ModelResponse(
            message=Message(role=Role.MODEL, content=[new_text_part(generated.response)]),
            finish_reason=FinishReason.STOP,
            request=request,
            usage=GenerationUsage(),
        )

    def _translate_chunk(self, line: str) -> ModelResponseChunk:
        data = _decode(line)
        if self.is_chat_model:
            text = OllamaChatResponse.from_dict(data).message.content
        else:
            text = OllamaResponse.from_dict(data).response
        return ModelResponseChunk(content=[new_text_part(text)])


def _check_status(status_code: int, body: str) -> None:
    if status_code != 200:
        raise ModelError(f"server returned non-200 status: {status_code}, body: {body}")


def _check_deadline(deadline: float) -> None:
    if time.monotonic() > deadline:
        raise ModelError(f"request took longer than {REQUEST_TIMEOUT:g}s")


def _read_text(response: httpx.Response, deadline: float) -> str:
    body = []
    for data in response.iter_bytes():
        _check_deadline(deadline)
        body.append(data)
    return b"".join(body).decode(response.encoding or "utf-8")


def _decode(body: str) -> Dict[str, Any]:
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ModelError(f"failed to parse response JSON: {e}") from e
    if not isinstance(data, dict):
        raise ModelError(f"failed to parse response JSON: expected an object, got {type(data).__name__}")
    return data


def convert_message(message: Message) -> OllamaMessage:
    """Translate a message: text parts joined, media parts as base64 images."""
    content = []
    images = []
    for part in message.content:
        if part.is_text():
            content.append(part.text)
        elif part.is_media():
            _, raw = uri.data(part)
            images.append(base64.b64encode(raw).decode("ascii"))
        else:
            raise ModelError("unknown content type")
    return OllamaMessage(role=ROLE_MAPPING[message.role], content="".join(content), images=images)


def concat_messages(request: ModelRequest, roles: List[Role]) -> str:
    """Concatenate the text parts of every message with one of the given roles."""
    return "".join(
        part.text
        for message in request.messages
        if message.role in roles
        for part in message.content
        if part.is_text()
    )


def concat_images(request: ModelRequest, roles: List[Role]) -> List[str]:
    images = []
    for message in request.messages:
        if message.role not in roles:
            continue
        for part in message.content:
            if part.is_media():
                _, raw = uri.data(part)
                images.append(base64.b64encode(raw).decode("ascii"))
    return images

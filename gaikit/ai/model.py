from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from gaikit.core.action import Action, ActionType, qualified_name
from gaikit.core.errors import ModelError
from gaikit.core.registry import get_registry
from gaikit.core.logger import logger

from .types import (
    ModelCapabilities,
    ModelMetadata,
    ModelRequest,
    ModelResponse,
    ModelResponseChunk,
    Role,
)

ModelStreamCallback = Callable[[ModelResponseChunk], None]
ModelGenerateFn = Callable[[ModelRequest, Optional[ModelStreamCallback]], ModelResponse]


@dataclass
class Model:
    """A registered generative model.

    ``generate`` checks the request against the model's declared
    capabilities before handing it to the provider.
    """
    provider: str
    name: str
    action: Action
    metadata: ModelMetadata

    @property
    def full_name(self) -> str:
        return qualified_name(self.provider, self.name)

    def generate(
        self,
        request: ModelRequest,
        callback: Optional[ModelStreamCallback] = None,
    ) -> ModelResponse:
        validate_support(self.full_name, self.metadata.supports, request)
        return self.action.run(request, callback)


def validate_support(name: str, supports: ModelCapabilities, request: ModelRequest) -> None:
    """Raise ModelError when the request uses a feature the model lacks."""
    if not supports.multiturn and len(request.messages) > 1:
        raise ModelError(f"model {name} does not support multiple messages (has {len(request.messages)})")
    for message in request.messages:
        if not supports.system_role and message.role == Role.SYSTEM:
            raise ModelError(f"model {name} does not support system role")
        if not supports.media and any(p.is_media() for p in message.content):
            raise ModelError(f"model {name} does not support media, but media was provided")
    if not supports.tools and request.tools:
        raise ModelError(f"model {name} does not support tool use, but tools were provided")


def define_model(
    provider: str,
    name: str,
    metadata: Optional[ModelMetadata],
    generate: ModelGenerateFn,
) -> Model:
    """Register a model under /model/{provider}/{name} and return it."""
    if metadata is None:
        metadata = ModelMetadata(label=name)

    def run(request, callback):
        if isinstance(request, dict):
            request = ModelRequest.from_dict(request)
        return generate(request, callback)

    action = Action(
        name=qualified_name(provider, name),
        action_type=ActionType.MODEL,
        fn=run,
        metadata={"model": metadata.to_dict()},
        input_type=ModelRequest,
    )
    get_registry().register_action(action)
    logger.info(f"Defined model {action.name}")
    return Model(provider=provider, name=name, action=action, metadata=metadata)


def lookup_model(provider: str, name: str) -> Optional[Model]:
    """Return the model registered for provider/name, or None."""
    action = get_registry().lookup(ActionType.MODEL, qualified_name(provider, name))
    if action is None:
        return None
    metadata = _metadata_from_action(action)
    return Model(provider=provider, name=name, action=action, metadata=metadata)


def is_defined_model(provider: str, name: str) -> bool:
    return get_registry().lookup(ActionType.MODEL, qualified_name(provider, name)) is not None


def _metadata_from_action(action: Action) -> ModelMetadata:
    info = action.metadata.get("model", {})
    supports = info.get("supports", {})
    return ModelMetadata(
        label=info.get("label", ""),
        supports=ModelCapabilities(
            multiturn=supports.get("multiturn", False),
            media=supports.get("media", False),
            tools=supports.get("tools", False),
            system_role=supports.get("systemRole", False),
        ),
    )

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from gaikit.ai.model import Model, lookup_model
from gaikit.ai.tools import Tool
from gaikit.ai.types import (
    Message,
    ModelRequest,
    ModelRequestOutput,
    ModelResponse,
    ModelResponseChunk,
    OutputFormat,
)
from gaikit.core.action import Action, ActionType
from gaikit.core.errors import PromptError
from gaikit.core.logger import logger
from gaikit.core.registry import get_registry
from gaikit.core.schema import validate_value
from gaikit.core.tracing import set_custom_metadata_attr

from .template import Template, to_messages

PROVIDER = "dotprompt"
PROMPT_KIND = "prompt"


@dataclass
class Config:
    """Everything about a prompt except its template."""
    model: Optional[Model] = None
    model_name: str = ""
    input_schema: Optional[Dict[str, Any]] = None
    output_format: OutputFormat = OutputFormat.TEXT
    output_schema: Optional[Dict[str, Any]] = None
    generation_config: Any = None
    tools: List[Tool] = field(default_factory=list)
    default_input: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PromptRequest:
    """
    A request to render a prompt and pass the result to a model.

    Attributes:
        variables: Template input; a mapping, a dataclass or a pydantic model
        candidates: Number of candidates requested
        config: Generation config; overrides the prompt's when set
        context: Documents passed to the model; overrides the prompt's when set
        model: provider/name of the model; used when the prompt has no Model
    """
    variables: Any = None
    candidates: int = 0
    config: Any = None
    context: Optional[List[Any]] = None
    model: str = ""


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, complex, str, bytes)):
        return not value
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def _dataclass_variables(value: Any) -> Dict[str, Any]:
    result = {}
    for f in dataclasses.fields(value):
        if f.name.startswith("_"):
            continue
        field_value = getattr(value, f.name)
        if f.metadata.get("omitempty") and _is_zero(field_value):
            continue
        result[f.metadata.get("json", f.name)] = field_value
    return result


def _pydantic_variables(value: BaseModel) -> Dict[str, Any]:
    result = {}
    for name, info in type(value).model_fields.items():
        if name.startswith("_"):
            continue
        field_value = getattr(value, name)
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        if extra.get("omitempty") and _is_zero(field_value):
            continue
        result[info.serialization_alias or info.alias or name] = field_value
    return result


class Prompt:
    def __init__(self, name: str, template_text: str, config: Optional[Config] = None, variant: str = ""):
        self.name = name
        self.variant = variant
        self.template_text = template_text
        self.config = config or Config()
        self.template = Template(template_text)
        self.action: Optional[Action] = None

    @property
    def registered_name(self) -> str:
        if self.variant:
            return f"{self.name}.{self.variant}"
        return self.name

    def build_variables(self, variables: Any) -> Optional[Dict[str, Any]]:
        """
        Turn prompt input into template variables.

        Mappings are used as they are. Dataclasses and pydantic models are
        keyed by their serialization names; private fields and zero-valued
        omitempty fields are left out. Defaults fill in missing keys.
        """
        if variables is None:
            result = None
        elif isinstance(variables, Mapping):
            result = variables
        elif dataclasses.is_dataclass(variables) and not isinstance(variables, type):
            result = _dataclass_variables(variables)
        elif isinstance(variables, BaseModel):
            result = _pydantic_variables(variables)
        else:
            raise PromptError(
                f"dotprompt: variables not a dataclass, a pydantic model or a mapping (got {type(variables).__name__})"
            )

        if self.config.default_input:
            merged = dict(self.config.default_input)
            merged.update(result or {})
            result = merged
        if result is not None and self.config.input_schema:
            validate_value(result, self.config.input_schema)
        return result

    def render_messages(self, variables: Any, history: Optional[List[Message]] = None) -> List[Message]:
        rendered = self.template.render(self.build_variables(variables))
        return to_messages(rendered, history)

    def render_text(self, variables: Any) -> str:
        """Render a template that produces a single text message."""
        messages = self.render_messages(variables)
        if len(messages) != 1:
            raise PromptError(f"render_text: template produced {len(messages)} messages")
        parts = messages[0].content
        if any(not p.is_text() for p in parts):
            raise PromptError("render_text: template produced non-text output")
        return "".join(p.text for p in parts)

    def build_request(self, input: Any) -> ModelRequest:
        """Render the prompt into a model request."""
        return ModelRequest(
            messages=self.render_messages(input),
            config=self.config.generation_config,
            output=ModelRequestOutput(
                format=self.config.output_format,
                schema=self.config.output_schema,
            ),
            tools=[t.definition() for t in self.config.tools],
        )

    def register(self) -> None:
        """Register /prompt/dotprompt/{name}[.{variant}]; no-op when done already."""
        if self.action is not None:
            return
        if not self.name:
            raise PromptError("attempt to register unnamed prompt")

        metadata = {
            "prompt": {
                "name": self.name,
                "input": {"schema": self.config.input_schema},
                "output": {"format": self.config.output_format.value},
                "template": self.template_text,
            }
        }
        action = Action(
            name=f"{PROVIDER}/{self.registered_name}",
            action_type=ActionType.PROMPT,
            fn=lambda input, _cb: self.build_request(input),
            metadata=metadata,
            input_schema=self.config.input_schema,
        )
        registry = get_registry()
        registry.register_action(action)
        registry.register_value(PROMPT_KIND, self.registered_name, self)
        self.action = action
        logger.info(f"Registered prompt {self.registered_name}")

    def _resolve_model(self, request: PromptRequest) -> Model:
        if self.config.model is not None:
            return self.config.model
        model_name = request.model or self.config.model_name
        if not model_name:
            raise PromptError("dotprompt execution: model not specified")
        provider, sep, name = model_name.partition("/")
        if not sep:
            raise PromptError("dotprompt model not in provider/name format")
        model = lookup_model(provider, name)
        if model is None:
            raise PromptError(f"no model named {name!r} for provider {provider!r}")
        return model

    def generate(
        self,
        request: Optional[PromptRequest] = None,
        callback: Optional[Callable[[ModelResponseChunk], None]] = None,
    ) -> ModelResponse:
        """
        Render the prompt and send it to its model.

        Args:
            request: Variables plus overrides for config, context and model
            callback: Optional streaming callback passed to the model

        Returns:
            ModelResponse: The model's response
        """
        request = request or PromptRequest()
        set_custom_metadata_attr("subtype", "prompt")

        variables = self.build_variables(request.variables)
        if self.action is not None:
            model_request = self.action.run(variables)
        else:
            model_request = self.build_request(variables)

        if request.config is not None:
            model_request.config = request.config
        if request.context:
            model_request.context = request.context

        model = self._resolve_model(request)
        return model.generate(model_request, callback)


def define(name: str, template_text: str, config: Optional[Config] = None, variant: str = "") -> Prompt:
    """Create a prompt and register it."""
    prompt = Prompt(name, template_text, config, variant=variant)
    prompt.register()
    return prompt


def lookup_prompt(name: str, variant: str = "") -> Optional[Prompt]:
    key = f"{name}.{variant}" if variant else name
    return get_registry().lookup_value(PROMPT_KIND, key)

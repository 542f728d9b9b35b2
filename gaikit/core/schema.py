from __future__ import annotations

import dataclasses
import inspect
import typing
from enum import Enum
from typing import Any, Callable, Optional

from jsonschema import validate
from jsonschema.exceptions import ValidationError as _SchemaValidationError
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as _PydanticValidationError
from pydantic.errors import PydanticSchemaGenerationError

from .errors import SchemaValidationError


def infer_json_schema(type_: Any) -> Optional[dict[str, Any]]:
    """Return the JSON schema pydantic derives for ``type_``.

    ``None`` means "unconstrained": a missing annotation, ``Any``, or a type
    pydantic cannot describe.
    """

    if type_ is None or type_ is Any or type_ is inspect.Parameter.empty:
        return None
    if isinstance(type_, dict):
        return type_
    try:
        return TypeAdapter(type_).json_schema()
    except (PydanticSchemaGenerationError, TypeError):
        return None


def fn_schemas(fn: Callable[..., Any]) -> tuple[Any, Optional[dict], Optional[dict]]:
    """Input type, input schema and output schema of a single-input function."""

    try:
        hints = typing.get_type_hints(fn)
    except (NameError, TypeError):
        hints = {}
    params = list(inspect.signature(fn).parameters.values())
    input_type = hints.get(params[0].name) if params else None
    return input_type, infer_json_schema(input_type), infer_json_schema(hints.get("return"))


def coerce_input(value: Any, type_: Any) -> Any:
    """Turn decoded JSON into ``type_`` (dataclass, pydantic model, ...)."""

    if type_ is None or type_ is Any or type_ is inspect.Parameter.empty:
        return value
    from_dict = getattr(type_, "from_dict", None)
    if isinstance(value, dict) and callable(from_dict):
        return from_dict(value)
    try:
        return TypeAdapter(type_).validate_python(value)
    except (PydanticSchemaGenerationError, TypeError):
        return value
    except _PydanticValidationError as e:
        raise SchemaValidationError(f"input does not match {getattr(type_, '__name__', type_)}: {e}") from e


def validate_value(value: Any, schema: Optional[dict[str, Any]]) -> None:
    if not schema:
        return
    try:
        validate(instance=to_jsonable(value), schema=schema)
    except _SchemaValidationError as e:
        raise SchemaValidationError(f"JSON schema validation failed: {e.message}") from e


def to_jsonable(value: Any) -> Any:
    """Convert DTOs, dataclasses and pydantic models into plain JSON values."""

    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: to_jsonable(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return to_jsonable(value.value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)

from dataclasses import dataclass
from typing import Any, List

import pytest
from pydantic import BaseModel, Field

from gaikit.ai.types import Message, Role, new_text_part
from gaikit.core.errors import SchemaValidationError
from gaikit.core.schema import coerce_input, fn_schemas, infer_json_schema, to_jsonable, validate_value


@dataclass
class Point:
    x: int
    y: int = 0


class Person(BaseModel):
    full_name: str = Field(alias="fullName")


def test_infer_json_schema():
    assert infer_json_schema(str) == {"type": "string"}
    assert infer_json_schema(Any) is None
    assert infer_json_schema(None) is None
    assert infer_json_schema({"type": "object"}) == {"type": "object"}
    assert infer_json_schema(List[int]) == {"type": "array", "items": {"type": "integer"}}
    assert infer_json_schema(Point)["properties"]["x"]["type"] == "integer"


def test_fn_schemas():
    def f(p: Point) -> str:
        return ""

    input_type, input_schema, output_schema = fn_schemas(f)

    assert input_type is Point
    assert input_schema["type"] == "object"
    assert output_schema == {"type": "string"}


def test_fn_schemas_without_annotations():
    assert fn_schemas(lambda x: x) == (None, None, None)


def test_coerce_input():
    assert coerce_input({"x": 1}, Point) == Point(x=1)
    assert coerce_input("7", int) == 7
    assert coerce_input({"a": 1}, None) == {"a": 1}
    message = coerce_input({"role": "user", "content": [{"text": "hi"}]}, Message)
    assert message.role == Role.USER
    assert message.text() == "hi"


def test_coerce_input_rejects_bad_values():
    with pytest.raises(SchemaValidationError):
        coerce_input({"x": "not a number"}, Point)


def test_validate_value():
    validate_value({"x": 1}, {"type": "object", "required": ["x"]})
    validate_value("anything", None)
    with pytest.raises(SchemaValidationError):
        validate_value({}, {"type": "object", "required": ["x"]})


def test_to_jsonable():
    assert to_jsonable(Point(x=1, y=2)) == {"x": 1, "y": 2}
    assert to_jsonable(Person(fullName="Ada")) == {"fullName": "Ada"}
    assert to_jsonable(Message(role=Role.MODEL, content=[new_text_part("ok")])) == {
        "role": "model",
        "content": [{"text": "ok"}],
    }
    assert to_jsonable((1, b"x")) == [1, "x"]


@dataclass
class Turn:
    role: Role
    text: str


def test_to_jsonable_enums():
    assert to_jsonable(Role.MODEL) == "model"
    assert to_jsonable(Turn(role=Role.USER, text="hi")) == {"role": "user", "text": "hi"}
    assert to_jsonable({"roles": [Role.SYSTEM, Role.TOOL]}) == {"roles": ["system", "tool"]}

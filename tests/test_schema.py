import typing as t

import pytest
from pydantic import BaseModel

from batch_ai.models import BatchResponse
from batch_ai.schema import (
    openai_response_format,
    schema_name,
    to_json_schema,
    to_strict_json_schema,
    validate_output,
    wrapped_tool_input_schema,
)
from tests.mocks.schemas import Sentiment


class Address(BaseModel):
    city: str
    zip_code: str | None = None


class Person(BaseModel):
    name: str
    addresses: list[Address]


def test_to_json_schema_copies_dict_schemas() -> None:
    schema = {"type": "object", "properties": {"a": {"type": "integer"}}}

    converted = to_json_schema(schema)
    converted["properties"]["b"] = {"type": "string"}

    assert "b" not in schema["properties"]


def test_to_json_schema_supports_plain_types() -> None:
    assert to_json_schema(list[int]) == {"type": "array", "items": {"type": "integer"}}


@pytest.mark.parametrize(
    ("output_schema", "expected"),
    [
        (Sentiment, "Sentiment"),
        ({"title": "my schema!"}, "my_schema"),
        ({"type": "object"}, "response"),
    ],
)
def test_schema_name(output_schema: t.Any, expected: str) -> None:
    assert schema_name(output_schema) == expected


def test_strict_schema_requires_every_property_and_forbids_extras() -> None:
    schema = to_strict_json_schema(to_json_schema(Person))

    assert schema["additionalProperties"] is False
    assert schema["required"] == ["name", "addresses"]
    address = schema["$defs"]["Address"]
    assert address["additionalProperties"] is False
    assert address["required"] == ["city", "zip_code"]
    assert "default" not in address["properties"]["zip_code"]


def test_openai_response_format() -> None:
    response_format = openai_response_format(Sentiment)

    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "Sentiment"
    assert response_format["json_schema"]["strict"] is True
    assert response_format["json_schema"]["schema"]["required"] == ["sentiment", "confidence"]


def test_wrapped_tool_input_schema_hoists_definitions() -> None:
    schema = wrapped_tool_input_schema(Person)

    assert schema["type"] == "object"
    assert schema["required"] == ["response"]
    assert "$defs" not in schema["properties"]["response"]
    assert "Address" in schema["$defs"]
    assert schema["properties"]["response"]["properties"]["addresses"]["items"] == {
        "$ref": "#/$defs/Address"
    }


def test_validate_output_returns_model_instance() -> None:
    response = BatchResponse(
        custom_id="a", output={"sentiment": "positive", "confidence": 0.9}
    )

    validated = validate_output(response, Sentiment)

    assert validated.output == Sentiment(sentiment="positive", confidence=0.9)
    assert validated.error is None


def test_validate_output_reports_invalid_output() -> None:
    response = BatchResponse(custom_id="a", output={"sentiment": "positive"})

    validated = validate_output(response, Sentiment)

    assert validated.output is None
    assert validated.error is not None
    assert validated.error.code == "invalid_output"
    assert response.output == {"sentiment": "positive"}


def test_validate_output_leaves_errors_and_dict_schemas_alone() -> None:
    failed = BatchResponse(custom_id="a")
    assert validate_output(failed, Sentiment) is failed

    raw = BatchResponse(custom_id="b", output={"x": 1})
    assert validate_output(raw, {"type": "object"}) is raw

"""
Output schema helpers.

An output schema is either a pydantic model (or any type pydantic can build a
``TypeAdapter`` for) or a plain JSON schema dictionary.
"""

from __future__ import annotations

import copy
import re
import typing as t
from functools import lru_cache

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from batch_ai.decoding import INVALID_OUTPUT_CODE
from batch_ai.models import BatchResponse, ResponseError

log = structlog.get_logger(__name__)

OutputSchema = t.Union[type[BaseModel], dict[str, t.Any], t.Any]

DEFAULT_SCHEMA_NAME = "response"

_SCHEMA_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9_-]+")
_NESTED_SCHEMA_KEYS = ("anyOf", "allOf", "oneOf", "prefixItems")


def _is_model_class(output_schema: t.Any) -> bool:
    return isinstance(output_schema, type) and issubclass(output_schema, BaseModel)


@lru_cache(maxsize=64)
def _type_adapter(output_schema: t.Any) -> TypeAdapter:
    return TypeAdapter(output_schema)


def to_json_schema(output_schema: OutputSchema) -> dict[str, t.Any]:
    """
    Describe an output schema as a JSON schema dictionary.

    Parameters
    ----------
    output_schema : OutputSchema
        Pydantic model, pydantic-compatible type, or JSON schema dictionary.

    Returns
    -------
    dict[str, typing.Any]
        A fresh JSON schema dictionary, safe to mutate.
    """
    if isinstance(output_schema, dict):
        return copy.deepcopy(output_schema)
    if _is_model_class(output_schema):
        return output_schema.model_json_schema()
    return _type_adapter(output_schema).json_schema()


def schema_name(output_schema: OutputSchema) -> str:
    """Name used by providers to label the output schema."""
    if isinstance(output_schema, dict):
        raw_name = str(output_schema.get("title") or DEFAULT_SCHEMA_NAME)
    else:
        raw_name = getattr(output_schema, "__name__", DEFAULT_SCHEMA_NAME)
    name = _SCHEMA_NAME_PATTERN.sub("_", raw_name).strip("_")
    return name[:64] or DEFAULT_SCHEMA_NAME


def to_strict_json_schema(schema: dict[str, t.Any]) -> dict[str, t.Any]:
    """
    Rewrite a JSON schema in place so it satisfies OpenAI strict mode.

    Every object forbids additional properties and lists all of its
    properties as required; ``default: null`` entries are dropped.

    Parameters
    ----------
    schema : dict[str, typing.Any]
        JSON schema to rewrite.

    Returns
    -------
    dict[str, typing.Any]
        The same dictionary, rewritten.
    """
    if "default" in schema and schema["default"] is None:
        del schema["default"]

    properties = schema.get("properties")
    if schema.get("type") == "object" or isinstance(properties, dict):
        schema["additionalProperties"] = False
        if isinstance(properties, dict):
            schema["required"] = list(properties.keys())
            for property_schema in properties.values():
                if isinstance(property_schema, dict):
                    to_strict_json_schema(property_schema)

    items = schema.get("items")
    if isinstance(items, dict):
        to_strict_json_schema(items)

    for key in _NESTED_SCHEMA_KEYS:
        for variant in schema.get(key) or []:
            if isinstance(variant, dict):
                to_strict_json_schema(variant)

    for key in ("$defs", "definitions"):
        for definition in (schema.get(key) or {}).values():
            if isinstance(definition, dict):
                to_strict_json_schema(definition)

    return schema


def openai_response_format(output_schema: OutputSchema) -> dict[str, t.Any]:
    """
    Build the OpenAI ``response_format`` directive for an output schema.
    """
    return {
        "type": "json_schema",
        "json_schema": {
            "name": schema_name(output_schema),
            "schema": to_strict_json_schema(to_json_schema(output_schema)),
            "strict": True,
        },
    }


def wrapped_tool_input_schema(
    output_schema: OutputSchema,
    *,
    property_name: str = "response",
) -> dict[str, t.Any]:
    """
    Build a tool input schema holding the output under a single property.

    Tool inputs must be JSON objects, so the output schema is nested under
    ``property_name``. Schema definitions stay at the root so local
    ``#/$defs/...`` references keep resolving.
    """
    schema = to_json_schema(output_schema)
    definitions = schema.pop("$defs", None)
    wrapper: dict[str, t.Any] = {
        "type": "object",
        "properties": {property_name: schema},
        "required": [property_name],
    }
    if definitions:
        wrapper["$defs"] = definitions
    return wrapper


def validate_output(
    response: BatchResponse[t.Any],
    output_schema: OutputSchema,
) -> BatchResponse[t.Any]:
    """
    Validate a decoded output against a pydantic-compatible output schema.

    Parameters
    ----------
    response : BatchResponse
        Decoded response.
    output_schema : OutputSchema
        Schema to validate against. JSON schema dictionaries are left to the
        provider and returned unchanged.

    Returns
    -------
    BatchResponse
        A response carrying the validated output, or an ``invalid_output``
        error when validation fails.
    """
    if isinstance(output_schema, dict) or response.output is None:
        return response

    try:
        if _is_model_class(output_schema):
            output = output_schema.model_validate(response.output)
        else:
            output = _type_adapter(output_schema).validate_python(response.output)
    except ValidationError as error:
        log.warning(
            "Output failed schema validation",
            custom_id=response.custom_id,
            error_count=error.error_count(),
        )
        return response.model_copy(
            update={
                "output": None,
                "error": ResponseError(code=INVALID_OUTPUT_CODE, message=str(error)),
            }
        )
    return response.model_copy(update={"output": output})

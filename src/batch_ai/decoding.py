"""
Decode raw provider batch result records into ``BatchResponse`` envelopes.

Every decoder works on one record at a time, whether the record came from a
downloaded JSONL file or from a streamed result feed.
"""

from __future__ import annotations

import json
import typing as t

import structlog

from batch_ai.models import BatchResponse, ResponseError, Usage
from batch_ai.request import FORMAT_RESPONSE_TOOL_NAME

log = structlog.get_logger(__name__)

INVALID_OUTPUT_CODE = "invalid_output"
MISSING_TOOL_CALL_CODE = "missing_tool_call"
REFUSAL_CODE = "refusal"
NULL_OUTPUT_MESSAGE = "Response output is null"

OPENAI_FALLBACK_ERROR_CODE = "unknown_error"
OPENAI_FALLBACK_ERROR_MESSAGE = "Unknown error occurred"
ANTHROPIC_FALLBACK_ERROR_MESSAGE = "Request failed"
ANTHROPIC_SUCCEEDED = "succeeded"


def iter_jsonl_records(lines: t.Iterable[str]) -> t.Iterator[dict[str, t.Any]]:
    """
    Yield one JSON object per non-blank line.

    Parameters
    ----------
    lines : typing.Iterable[str]
        Raw lines, possibly containing blank or whitespace-only entries.

    Yields
    ------
    dict[str, typing.Any]
        Decoded record.

    Raises
    ------
    ValueError
        If a non-blank line is not a JSON object.
    """
    for line in lines:
        if not line.strip():
            continue
        record = json.loads(line)
        if not isinstance(record, dict):
            raise ValueError(f"Batch result line is not a JSON object: {line[:80]!r}")
        yield record


def _as_dict(value: t.Any) -> dict[str, t.Any]:
    return value if isinstance(value, dict) else {}


def _null_output(custom_id: str, usage: Usage | None) -> BatchResponse[t.Any]:
    return BatchResponse(
        custom_id=custom_id,
        error=ResponseError(code=INVALID_OUTPUT_CODE, message=NULL_OUTPUT_MESSAGE),
        usage=usage,
    )


def _openai_error(error: dict[str, t.Any]) -> ResponseError:
    return ResponseError(
        code=str(error.get("code") or OPENAI_FALLBACK_ERROR_CODE),
        message=str(error.get("message") or OPENAI_FALLBACK_ERROR_MESSAGE),
    )


def _openai_usage(body: dict[str, t.Any]) -> Usage | None:
    usage = body.get("usage")
    if not isinstance(usage, dict):
        return None
    return Usage.from_counts(
        usage.get("prompt_tokens"),
        usage.get("completion_tokens"),
        usage.get("total_tokens"),
    )


def decode_openai_result(record: dict[str, t.Any]) -> BatchResponse[t.Any]:
    """
    Decode one line of an OpenAI batch output or error file.

    Parameters
    ----------
    record : dict[str, typing.Any]
        ``{custom_id, response: {status_code, body}, error}`` record.

    Returns
    -------
    BatchResponse
        Normalized response. Content that is not valid JSON is reported as an
        ``invalid_output`` error on this entry.
    """
    custom_id = str(record["custom_id"])
    response = _as_dict(record.get("response"))
    body = _as_dict(response.get("body"))
    usage = _openai_usage(body)

    error = record.get("error")
    if isinstance(error, dict):
        return BatchResponse(custom_id=custom_id, error=_openai_error(error), usage=usage)

    status_code = int(response.get("status_code") or 200)
    if status_code >= 400:
        return BatchResponse(
            custom_id=custom_id,
            error=_openai_error(_as_dict(body.get("error"))),
            usage=usage,
        )

    choices = body.get("choices") or [{}]
    message = _as_dict(_as_dict(choices[0]).get("message"))
    if message.get("refusal"):
        return BatchResponse(
            custom_id=custom_id,
            error=ResponseError(code=REFUSAL_CODE, message=str(message["refusal"])),
            usage=usage,
        )

    content = message.get("content")
    if not isinstance(content, str):
        return BatchResponse(
            custom_id=custom_id,
            error=ResponseError(
                code=INVALID_OUTPUT_CODE, message="Response has no message content"
            ),
            usage=usage,
        )
    try:
        output = json.loads(content)
    except json.JSONDecodeError as decode_error:
        log.warning(
            "Batch result content is not valid JSON",
            custom_id=custom_id,
            error=str(decode_error),
        )
        return BatchResponse(
            custom_id=custom_id,
            error=ResponseError(
                code=INVALID_OUTPUT_CODE,
                message=f"Response content is not valid JSON: {decode_error}",
            ),
            usage=usage,
        )
    if output is None:
        return _null_output(custom_id, usage)
    return BatchResponse(custom_id=custom_id, output=output, usage=usage)


def _anthropic_error_message(error: dict[str, t.Any]) -> str:
    # errored results nest the API error: {"type": "error", "error": {"type", "message"}}
    nested = _as_dict(error.get("error"))
    message = nested.get("message") or error.get("message")
    return str(message) if message else ANTHROPIC_FALLBACK_ERROR_MESSAGE


def _anthropic_usage(message: dict[str, t.Any]) -> Usage | None:
    usage = message.get("usage")
    if not isinstance(usage, dict):
        return None
    return Usage.from_counts(usage.get("input_tokens"), usage.get("output_tokens"))


def extract_tool_output(
    content: t.Sequence[dict[str, t.Any]],
    *,
    tool_name: str = FORMAT_RESPONSE_TOOL_NAME,
) -> tuple[bool, t.Any]:
    """
    Find the forced tool call in a message and return its output value.

    Returns
    -------
    tuple[bool, typing.Any]
        ``(found, output)``. The output is the tool input's ``response``
        property, or the whole input when it has no such property.
    """
    for block in content:
        if not isinstance(block, dict):
            continue
        if block.get("type") != "tool_use" or block.get("name") != tool_name:
            continue
        tool_input = block.get("input")
        if isinstance(tool_input, dict) and "response" in tool_input:
            return True, tool_input["response"]
        return True, tool_input
    return False, None


def decode_anthropic_result(record: dict[str, t.Any]) -> BatchResponse[t.Any]:
    """
    Decode one entry of an Anthropic message batch result feed.

    Parameters
    ----------
    record : dict[str, typing.Any]
        ``{custom_id, result: {type, message?, error?}}`` record.

    Returns
    -------
    BatchResponse
        Normalized response. Non-succeeded results carry the result type as
        the error code.
    """
    custom_id = str(record["custom_id"])
    result = _as_dict(record.get("result"))
    result_type = str(result.get("type") or "unknown")

    if result_type != ANTHROPIC_SUCCEEDED:
        return BatchResponse(
            custom_id=custom_id,
            error=ResponseError(
                code=result_type,
                message=_anthropic_error_message(_as_dict(result.get("error"))),
            ),
        )

    message = _as_dict(result.get("message"))
    usage = _anthropic_usage(message)
    found, output = extract_tool_output(message.get("content") or [])
    if not found:
        return BatchResponse(
            custom_id=custom_id,
            error=ResponseError(
                code=MISSING_TOOL_CALL_CODE,
                message=f"Response has no {FORMAT_RESPONSE_TOOL_NAME} tool call",
            ),
            usage=usage,
        )
    if output is None:
        return _null_output(custom_id, usage)
    return BatchResponse(custom_id=custom_id, output=output, usage=usage)

import json
import typing as t

from pydantic import BaseModel, Field

from batch_ai.models import BatchRequest

OPENAI_COMPLETIONS_ENDPOINT = "/v1/chat/completions"
FORMAT_RESPONSE_TOOL_NAME = "format_response"


class ProcessedMessage(BaseModel):
    role: t.Literal["system", "user", "assistant"]
    content: str | list[dict]


def user_content(value: t.Any) -> str | list[dict]:
    """Render a request input as user message content.

    Strings and content-part lists are sent as they are, anything else is
    serialized to JSON text.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(part, dict) for part in value):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value)


class OpenAIBody(BaseModel):
    model: str
    messages: list[ProcessedMessage]
    response_format: dict


class OpenAIRequest(BaseModel):
    custom_id: str
    method: t.Literal["POST"] = "POST"
    url: str = OPENAI_COMPLETIONS_ENDPOINT
    body: OpenAIBody

    @classmethod
    def from_batch_request(
        cls,
        request: BatchRequest,
        *,
        model: str,
        response_format: dict,
    ) -> "OpenAIRequest":
        messages: list[ProcessedMessage] = []
        if request.system_prompt is not None:
            messages.append(ProcessedMessage(role="system", content=request.system_prompt))
        messages.append(ProcessedMessage(role="user", content=user_content(request.input)))
        return cls(
            custom_id=request.custom_id,
            body=OpenAIBody(
                model=model,
                messages=messages,
                response_format=response_format,
            ),
        )


class AnthropicPart(BaseModel):
    type: t.Literal["text"] = "text"
    text: str


class AnthropicTool(BaseModel):
    name: str = FORMAT_RESPONSE_TOOL_NAME
    description: str = "Respond with a value matching the required output format"
    input_schema: dict


class AnthropicToolChoice(BaseModel):
    type: t.Literal["tool"] = "tool"
    name: str = FORMAT_RESPONSE_TOOL_NAME
    disable_parallel_tool_use: bool = True


class AnthropicParams(BaseModel):
    model: str
    max_tokens: int = Field(gt=0)
    messages: list[ProcessedMessage]
    system: list[AnthropicPart] | None = None
    tools: list[AnthropicTool]
    tool_choice: AnthropicToolChoice = Field(default_factory=AnthropicToolChoice)


class AnthropicRequest(BaseModel):
    custom_id: str
    params: AnthropicParams

    @classmethod
    def from_batch_request(
        cls,
        request: BatchRequest,
        *,
        model: str,
        max_tokens: int,
        input_schema: dict,
    ) -> "AnthropicRequest":
        system = None
        if request.system_prompt is not None:
            system = [AnthropicPart(text=request.system_prompt)]
        return cls(
            custom_id=request.custom_id,
            params=AnthropicParams(
                model=model,
                max_tokens=max_tokens,
                messages=[ProcessedMessage(role="user", content=user_content(request.input))],
                system=system,
                tools=[AnthropicTool(input_schema=input_schema)],
            ),
        )

"""
Main endpoints for users.
Exposes provider constructors and the `create_object_batch` / `get_object_batch`
functions that sequence a language model's batch operations.
"""

import typing as t

import httpx
import structlog

from batch_ai.models import BatchRequest, ObjectBatch, ObjectBatchResult
from batch_ai.providers.anthropic import AnthropicLanguageModel
from batch_ai.providers.base import LanguageModel, LanguageModelConfig
from batch_ai.providers.openai import OpenAILanguageModel
from batch_ai.schema import OutputSchema, validate_output
from batch_ai.status import BatchStatus

log = structlog.get_logger(__name__)


def openai(
    model_id: str,
    config: LanguageModelConfig | dict[str, t.Any] | None = None,
    *,
    client_factory: t.Callable[[], httpx.AsyncClient] | None = None,
) -> OpenAILanguageModel:
    """
    Create an OpenAI language model.

    Parameters
    ----------
    model_id : str
        OpenAI model id, e.g. ``gpt-4o-mini``.
    config : LanguageModelConfig | dict | None, optional
        Model configuration. ``OPENAI_API_KEY`` takes precedence over ``api_key``.
    client_factory : typing.Callable[[], httpx.AsyncClient] | None, optional
        Factory for the HTTP clients used by provider calls.

    Returns
    -------
    OpenAILanguageModel
        Configured language model.
    """
    return OpenAILanguageModel(model_id, config, client_factory=client_factory)


def anthropic(
    model_id: str,
    config: LanguageModelConfig | dict[str, t.Any] | None = None,
    *,
    client_factory: t.Callable[[], httpx.AsyncClient] | None = None,
) -> AnthropicLanguageModel:
    """
    Create an Anthropic language model.

    Parameters
    ----------
    model_id : str
        Anthropic model id, e.g. ``claude-3-5-haiku-latest``.
    config : LanguageModelConfig | dict | None, optional
        Model configuration. ``ANTHROPIC_API_KEY`` takes precedence over ``api_key``.
    client_factory : typing.Callable[[], httpx.AsyncClient] | None, optional
        Factory for the HTTP clients used by provider calls.

    Returns
    -------
    AnthropicLanguageModel
        Configured language model.
    """
    return AnthropicLanguageModel(model_id, config, client_factory=client_factory)


async def create_object_batch(
    *,
    model: LanguageModel,
    requests: t.Sequence[BatchRequest | dict[str, t.Any]],
    output_schema: OutputSchema,
) -> ObjectBatch:
    """
    Submit a batch of structured-output requests.

    Parameters
    ----------
    model : LanguageModel
        Language model that runs the batch.
    requests : typing.Sequence[BatchRequest | dict]
        Labeled inputs, each with a unique ``custom_id``.
    output_schema : OutputSchema
        Pydantic model, pydantic-compatible type, or JSON schema describing
        each output.

    Returns
    -------
    ObjectBatch
        Holder of the provider batch id.

    Raises
    ------
    BatchError
        With code ``batch_creation_failed`` when submission fails.
    """
    batch_id = await model.create_batch(requests, output_schema)
    return ObjectBatch(batch_id=batch_id)


async def get_object_batch(
    *,
    model: LanguageModel,
    batch_id: str,
    output_schema: OutputSchema | None = None,
) -> ObjectBatchResult:
    """
    Get the status of a batch, and its results once it is completed.

    Results are fetched only when the batch status is ``completed``; any other
    status returns the batch snapshot alone.

    Parameters
    ----------
    model : LanguageModel
        Language model that created the batch.
    batch_id : str
        Provider batch id.
    output_schema : OutputSchema | None, optional
        When given, each output is validated against it and replaced by the
        validated value.

    Returns
    -------
    ObjectBatchResult
        Batch snapshot and, for completed batches, the decoded results.
    """
    batch = await model.get_batch(batch_id)
    if batch.status is not BatchStatus.COMPLETED:
        log.debug("Batch not completed, skipping results", batch_id=batch_id, status=batch.status)
        return ObjectBatchResult(batch=batch)

    results = await model.get_batch_results(batch_id)
    if output_schema is not None:
        results = [validate_output(response, output_schema) for response in results]
    return ObjectBatchResult(batch=batch, results=results)

import typing as t
from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict

from batch_ai.decoding import decode_anthropic_result, iter_jsonl_records
from batch_ai.exceptions import BatchError, BatchErrorCode
from batch_ai.models import Batch, BatchRequest, BatchRequestCounts, BatchResponse
from batch_ai.providers.base import LanguageModel, wrap_batch_errors
from batch_ai.request import AnthropicRequest
from batch_ai.schema import OutputSchema, wrapped_tool_input_schema
from batch_ai.status import BatchStatus

log = structlog.get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

ANTHROPIC_STATUS_MAP: dict[str, BatchStatus] = {
    "in_progress": BatchStatus.IN_PROGRESS,
    "canceling": BatchStatus.CANCELLING,
    "ended": BatchStatus.COMPLETED,
}


def map_anthropic_status(status: str | None) -> BatchStatus:
    """Map an Anthropic ``processing_status`` onto ``BatchStatus``; unknown values are failures."""
    return ANTHROPIC_STATUS_MAP.get(status or "", BatchStatus.FAILED)


class AnthropicRequestCounts(BaseModel):
    model_config = ConfigDict(extra="allow")

    processing: int = 0
    succeeded: int = 0
    errored: int = 0
    canceled: int = 0
    expired: int = 0


class AnthropicMessageBatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    processing_status: str | None = None
    request_counts: AnthropicRequestCounts | None = None
    created_at: datetime
    ended_at: datetime | None = None
    expires_at: datetime | None = None
    results_url: str | None = None

    def to_batch(self) -> Batch:
        counts = self.request_counts or AnthropicRequestCounts()
        return Batch(
            id=self.id,
            status=map_anthropic_status(self.processing_status),
            request_counts=BatchRequestCounts.from_categories(
                completed=counts.succeeded,
                failed=counts.errored,
                processing=counts.processing,
                cancelled=counts.canceled,
                expired=counts.expired,
            ),
            created_at=self.created_at,
            completed_at=self.ended_at,
            expires_at=self.expires_at,
        )


class AnthropicLanguageModel(LanguageModel):
    """
    Anthropic Message Batches API adapter.

    Requests are sent inline in a single call. Structured output is obtained
    by forcing one ``format_response`` tool call whose input schema wraps the
    output schema, and results are streamed line by line from ``results_url``.
    """

    name = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    supports_cancellation = True

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION}

    def build_requests(
        self,
        requests: t.Sequence[BatchRequest],
        output_schema: OutputSchema,
    ) -> list[AnthropicRequest]:
        input_schema = wrapped_tool_input_schema(output_schema)
        return [
            AnthropicRequest.from_batch_request(
                request,
                model=self.model_id,
                max_tokens=self.config.max_tokens,
                input_schema=input_schema,
            )
            for request in self._validate_requests(requests)
        ]

    async def _retrieve_batch(self, batch_id: str) -> AnthropicMessageBatch:
        data = await self._http_get_json(f"/messages/batches/{batch_id}")
        return AnthropicMessageBatch.model_validate(data)

    async def create_batch(
        self,
        requests: t.Sequence[BatchRequest],
        output_schema: OutputSchema,
    ) -> str:
        with (
            self._operation_context(),
            wrap_batch_errors(code=BatchErrorCode.BATCH_CREATION_FAILED, provider=self.name),
        ):
            processed_requests = self.build_requests(requests, output_schema)
            response = await self._http_post_json(
                "/messages/batches",
                json={
                    "requests": [
                        processed_request.model_dump(exclude_none=True)
                        for processed_request in processed_requests
                    ],
                },
            )
            batch_id = AnthropicMessageBatch.model_validate(response).id
            log.info("Created batch", batch_id=batch_id, request_count=len(processed_requests))
            return batch_id

    async def get_batch(self, batch_id: str) -> Batch:
        with (
            self._operation_context(batch_id=batch_id),
            wrap_batch_errors(
                code=BatchErrorCode.BATCH_RETRIEVAL_FAILED,
                provider=self.name,
                batch_id=batch_id,
            ),
        ):
            provider_batch = await self._retrieve_batch(batch_id)
            log.debug("Retrieved batch", status=provider_batch.processing_status)
            return provider_batch.to_batch()

    async def get_batch_results(self, batch_id: str) -> list[BatchResponse[t.Any]]:
        with (
            self._operation_context(batch_id=batch_id),
            wrap_batch_errors(
                code=BatchErrorCode.RESULTS_RETRIEVAL_FAILED,
                provider=self.name,
                batch_id=batch_id,
            ),
        ):
            provider_batch = await self._retrieve_batch(batch_id)
            if not provider_batch.results_url:
                raise BatchError(
                    "Batch results not yet available",
                    BatchErrorCode.RESULTS_NOT_READY,
                    batch_id,
                )

            log.debug("Streaming batch results", results_url=provider_batch.results_url)
            lines = [line async for line in self._http_stream_lines(provider_batch.results_url)]
            results = [decode_anthropic_result(record) for record in iter_jsonl_records(lines)]
            log.info("Retrieved batch results", result_count=len(results))
            return results

    async def cancel_batch(self, batch_id: str) -> None:
        with (
            self._operation_context(batch_id=batch_id),
            wrap_batch_errors(
                code=BatchErrorCode.BATCH_CANCELLATION_FAILED,
                provider=self.name,
                batch_id=batch_id,
            ),
        ):
            await self._http_post_json(f"/messages/batches/{batch_id}/cancel")
            log.info("Requested batch cancellation")

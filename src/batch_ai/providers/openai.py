import os
import typing as t
from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict

from batch_ai.decoding import decode_openai_result, iter_jsonl_records
from batch_ai.exceptions import BatchError, BatchErrorCode
from batch_ai.models import Batch, BatchRequest, BatchRequestCounts, BatchResponse
from batch_ai.providers.base import LanguageModel, wrap_batch_errors
from batch_ai.request import OPENAI_COMPLETIONS_ENDPOINT, OpenAIRequest
from batch_ai.schema import OutputSchema, openai_response_format
from batch_ai.status import BatchStatus
from batch_ai.utils.files import temporary_jsonl_file

log = structlog.get_logger(__name__)

COMPLETION_WINDOW = "24h"

# "finalizing" is OpenAI's post-processing step before "completed".
OPENAI_STATUS_MAP: dict[str, BatchStatus] = {
    "validating": BatchStatus.VALIDATING,
    "in_progress": BatchStatus.IN_PROGRESS,
    "finalizing": BatchStatus.IN_PROGRESS,
    "completed": BatchStatus.COMPLETED,
    "failed": BatchStatus.FAILED,
    "expired": BatchStatus.EXPIRED,
    "cancelling": BatchStatus.CANCELLING,
    "cancelled": BatchStatus.CANCELLED,
}


def map_openai_status(status: str | None) -> BatchStatus:
    """Map an OpenAI batch status onto ``BatchStatus``; unknown values are failures."""
    return OPENAI_STATUS_MAP.get(status or "", BatchStatus.FAILED)


class OpenAIRequestCounts(BaseModel):
    model_config = ConfigDict(extra="allow")

    total: int | None = None
    completed: int | None = None
    failed: int | None = None


class OpenAIFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str


class OpenAIBatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    status: str | None = None
    request_counts: OpenAIRequestCounts | None = None
    created_at: datetime
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    expired_at: datetime | None = None
    cancelled_at: datetime | None = None
    expires_at: datetime | None = None
    output_file_id: str | None = None
    error_file_id: str | None = None

    def to_batch(self) -> Batch:
        counts = self.request_counts or OpenAIRequestCounts()
        return Batch(
            id=self.id,
            status=map_openai_status(self.status),
            request_counts=BatchRequestCounts(
                total=counts.total or 0,
                completed=counts.completed or 0,
                failed=counts.failed or 0,
            ),
            created_at=self.created_at,
            completed_at=self.completed_at
            or self.failed_at
            or self.expired_at
            or self.cancelled_at,
            expires_at=self.expires_at,
        )


class OpenAILanguageModel(LanguageModel):
    """
    OpenAI Batch API adapter.

    Requests are written to a JSONL file, uploaded through the Files API and
    registered as a batch on ``/v1/chat/completions``. Structured output is
    requested with a strict ``json_schema`` response format.
    """

    name = "openai"
    default_base_url = "https://api.openai.com/v1"
    supports_cancellation = True

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
        }

    def build_requests(
        self,
        requests: t.Sequence[BatchRequest],
        output_schema: OutputSchema,
    ) -> list[OpenAIRequest]:
        response_format = openai_response_format(output_schema)
        return [
            OpenAIRequest.from_batch_request(
                request,
                model=self.model_id,
                response_format=response_format,
            )
            for request in self._validate_requests(requests)
        ]

    async def _upload_batch_file(self, file_path: str) -> str:
        with open(file_path, "rb") as f:
            response = await self._http_post_json(
                "/files",
                files={"file": (os.path.basename(file_path), f, "application/jsonl")},
                data={"purpose": "batch"},
            )
        return OpenAIFile.model_validate(response).id

    async def _retrieve_batch(self, batch_id: str) -> OpenAIBatch:
        data = await self._http_get_json(f"/batches/{batch_id}")
        return OpenAIBatch.model_validate(data)

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
            lines = [
                processed_request.model_dump_json(exclude_none=True)
                for processed_request in processed_requests
            ]
            with temporary_jsonl_file(lines) as file_path:
                file_id = await self._upload_batch_file(file_path)
                log.info(
                    "Uploaded batch file",
                    file_id=file_id,
                    request_count=len(lines),
                )
                response = await self._http_post_json(
                    "/batches",
                    json={
                        "input_file_id": file_id,
                        "endpoint": OPENAI_COMPLETIONS_ENDPOINT,
                        "completion_window": COMPLETION_WINDOW,
                    },
                )
            batch_id = OpenAIBatch.model_validate(response).id
            log.info("Created batch", batch_id=batch_id, request_count=len(lines))
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
            log.debug("Retrieved batch", status=provider_batch.status)
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
            file_ids = [
                file_id
                for file_id in (provider_batch.output_file_id, provider_batch.error_file_id)
                if file_id
            ]
            if not file_ids:
                raise BatchError(
                    "Batch results not yet available",
                    BatchErrorCode.RESULTS_NOT_READY,
                    batch_id,
                )

            results: list[BatchResponse[t.Any]] = []
            for file_id in file_ids:
                log.debug("Downloading results file", file_id=file_id)
                content = await self._http_get_text(f"/files/{file_id}/content")
                results.extend(
                    decode_openai_result(record)
                    for record in iter_jsonl_records(content.splitlines())
                )
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
            await self._http_post_json(f"/batches/{batch_id}/cancel")
            log.info("Requested batch cancellation")

import typing as t
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator

from batch_ai.status import BatchStatus

InputT = t.TypeVar("InputT")
OutputT = t.TypeVar("OutputT")


class BatchRequestCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: NonNegativeInt = 0
    completed: NonNegativeInt = 0
    failed: NonNegativeInt = 0
    processing: NonNegativeInt | None = None
    cancelled: NonNegativeInt | None = None
    expired: NonNegativeInt | None = None

    @classmethod
    def from_categories(
        cls,
        *,
        completed: int | None = None,
        failed: int | None = None,
        processing: int | None = None,
        cancelled: int | None = None,
        expired: int | None = None,
    ) -> "BatchRequestCounts":
        """Build counts for providers that report categories but no total.

        Missing categories count as zero.
        """
        categories = {
            "completed": completed or 0,
            "failed": failed or 0,
            "processing": processing or 0,
            "cancelled": cancelled or 0,
            "expired": expired or 0,
        }
        return cls(total=sum(categories.values()), **categories)


class BatchRequest(BaseModel, t.Generic[InputT]):
    model_config = ConfigDict(frozen=True)

    custom_id: str = Field(min_length=1, description="caller-unique correlation key")
    input: InputT
    system_prompt: str | None = None


class ResponseError(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: NonNegativeInt
    completion_tokens: NonNegativeInt
    total_tokens: NonNegativeInt

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
    ) -> "Usage":
        prompt_tokens = prompt_tokens or 0
        completion_tokens = completion_tokens or 0
        if total_tokens is None:
            total_tokens = prompt_tokens + completion_tokens
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )


class BatchResponse(BaseModel, t.Generic[OutputT]):
    custom_id: str
    output: OutputT | None = None
    error: ResponseError | None = None
    usage: Usage | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.output is not None


class Batch(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: BatchStatus
    request_counts: BatchRequestCounts = Field(default_factory=BatchRequestCounts)
    created_at: datetime
    completed_at: datetime | None = None
    expires_at: datetime | None = None

    @field_validator("created_at", "completed_at", "expires_at", mode="after")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class ObjectBatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch_id: str


class ObjectBatchResult(BaseModel):
    batch: Batch
    results: list[BatchResponse] | None = None

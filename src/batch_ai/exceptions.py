"""
batch-ai error taxonomy.
"""

from __future__ import annotations

from enum import Enum


class BatchErrorCode(str, Enum):
    BATCH_CREATION_FAILED = "batch_creation_failed"
    BATCH_RETRIEVAL_FAILED = "batch_retrieval_failed"
    RESULTS_NOT_READY = "results_not_ready"
    RESULTS_RETRIEVAL_FAILED = "results_retrieval_failed"
    BATCH_CANCELLATION_FAILED = "batch_cancellation_failed"


class BatchError(Exception):
    """
    Failure of a provider batch operation.

    Parameters
    ----------
    message : str
        Human-readable description, usually the wrapped transport error.
    code : BatchErrorCode | str
        Machine-readable code from the closed ``BatchErrorCode`` vocabulary.
    batch_id : str | None, optional
        Provider batch identifier the operation targeted, when known.

    Notes
    -----
    ``results_not_ready`` is not a defect: the batch has not materialized its
    results yet and the caller should poll again later.
    """

    def __init__(
        self,
        message: str,
        code: BatchErrorCode | str,
        batch_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = BatchErrorCode(code)
        self.batch_id = batch_id

    @property
    def is_retryable_later(self) -> bool:
        return self.code is BatchErrorCode.RESULTS_NOT_READY

    def __str__(self) -> str:
        if self.batch_id is None:
            return f"[{self.code.value}] {self.message}"
        return f"[{self.code.value}] {self.message} (batch_id={self.batch_id})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, "
            f"code={self.code.value!r}, batch_id={self.batch_id!r})"
        )


class ConfigurationError(ValueError):
    """
    Raised when a language model cannot be constructed from its configuration.
    """


class UnsupportedOperationError(NotImplementedError):
    """
    Raised when a provider does not implement an optional batch capability.
    """

from __future__ import annotations

import typing as t
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from urllib.parse import urlparse

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from batch_ai.api_utils import resolve_api_key
from batch_ai.exceptions import (
    BatchError,
    BatchErrorCode,
    ConfigurationError,
    UnsupportedOperationError,
)
from batch_ai.models import Batch, BatchRequest, BatchResponse
from batch_ai.schema import OutputSchema
from batch_ai.utils.logging import logging_context, mask_headers

log = structlog.get_logger(__name__)


class LanguageModelConfig(BaseModel):
    """
    Per-model provider configuration.

    Parameters
    ----------
    api_key : str | None
        API key used when the provider environment variable is not set.
    base_url : str | None
        Override of the provider API base URL.
    timeout : float
        HTTP timeout in seconds for every provider call.
    max_tokens : int
        Completion token limit, for providers that require one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: str | None = Field(default=None, repr=False)
    base_url: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    max_tokens: int = Field(default=1024, gt=0)


def describe_error(error: BaseException) -> str:
    """
    Build a readable message for a wrapped provider failure.

    Parameters
    ----------
    error : BaseException
        Underlying error.

    Returns
    -------
    str
        Provider error message when the response carries one, else ``str(error)``.
    """
    if isinstance(error, httpx.HTTPStatusError):
        try:
            payload = error.response.json()
        except (ValueError, httpx.ResponseNotRead):
            payload = None
        if isinstance(payload, dict):
            provider_error = payload.get("error")
            if isinstance(provider_error, dict) and provider_error.get("message"):
                return f"{error.response.status_code}: {provider_error['message']}"
        return f"{error.response.status_code}: {error.response.reason_phrase}"
    return str(error) or error.__class__.__name__


@contextmanager
def wrap_batch_errors(
    *,
    code: BatchErrorCode,
    provider: str,
    batch_id: str | None = None,
) -> Iterator[None]:
    """
    Convert any failure raised inside the block into a ``BatchError``.

    ``BatchError`` instances raised inside the block propagate unchanged.

    Parameters
    ----------
    code : BatchErrorCode
        Code attached to wrapped failures.
    provider : str
        Provider name for observability.
    batch_id : str | None, optional
        Batch identifier attached to wrapped failures.
    """
    try:
        yield
    except BatchError:
        raise
    except Exception as error:
        message = describe_error(error)
        log.error(
            "Provider batch operation failed",
            provider=provider,
            code=code.value,
            batch_id=batch_id,
            error=message,
        )
        raise BatchError(message, code, batch_id) from error


class LanguageModel(ABC):
    """
    Standard interface for running structured-output batches on a provider.

    Providers implement:
    - create_batch: submit requests and return the provider batch id
    - get_batch: fetch a fresh ``Batch`` snapshot
    - get_batch_results: fetch and decode results of a completed batch
    - cancel_batch: request cancellation, when ``supports_cancellation`` is set
    """

    name: str = "base"
    default_base_url: str = ""
    supports_cancellation: bool = False

    def __init__(
        self,
        model_id: str,
        config: LanguageModelConfig | dict[str, t.Any] | None = None,
        *,
        client_factory: t.Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        if not isinstance(model_id, str) or not model_id.strip():
            raise ConfigurationError("model_id must be a non-empty string")
        if isinstance(config, LanguageModelConfig):
            self.config = config
        else:
            try:
                self.config = LanguageModelConfig.model_validate(config or {})
            except ValidationError as error:
                raise ConfigurationError(str(error)) from error
        self.model_id = model_id
        self._api_key = resolve_api_key(provider=self.name, api_key=self.config.api_key)
        self.base_url = self._normalize_base_url(
            url=self.config.base_url or self.default_base_url
        )
        self._client_factory = client_factory or self._default_client_factory

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model_id={self.model_id!r})"

    @property
    def provider(self) -> str:
        return self.name

    def _normalize_base_url(self, *, url: str) -> str:
        """
        Normalize provider base URL into an absolute HTTPS URL.

        Parameters
        ----------
        url : str
            Base URL or hostname.

        Returns
        -------
        str
            Absolute base URL without trailing slash.
        """
        stripped = url.strip().rstrip("/")
        if not stripped:
            raise ConfigurationError(f"{self.name} base URL cannot be empty")

        parsed = urlparse(url=stripped)
        if parsed.scheme:
            return stripped

        return f"https://{stripped}"

    def _default_client_factory(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.timeout)

    def _url(self, path: str) -> str:
        if urlparse(url=path).scheme:
            return path
        return f"{self.base_url}{path}"

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        pass

    def _operation_context(self, *, batch_id: str | None = None):
        return logging_context(provider=self.name, model=self.model_id, batch_id=batch_id)

    def _log_error_response(self, *, method: str, url: str, response: httpx.Response) -> None:
        try:
            error_body = response.json()
        except ValueError:
            error_body = response.text
        log.error(
            f"HTTP {method} request failed",
            url=url,
            status_code=response.status_code,
            error_body=error_body,
        )

    async def _http_get_json(self, path: str) -> dict:
        """GET request used to retrieve batches"""
        url = self._url(path)
        async with self._client_factory() as client:
            response = await client.get(url, headers=self._headers())
        if response.is_error:
            self._log_error_response(method="GET", url=url, response=response)
        response.raise_for_status()
        return response.json()

    async def _http_post_json(self, path: str, json: dict | None = None, **kwargs) -> dict:
        """POST request used to create files, create batches or cancel batches"""
        url = self._url(path)
        log.debug(
            "Sending POST request",
            url=url,
            headers=mask_headers(self._headers()),
        )
        async with self._client_factory() as client:
            response = await client.post(url, headers=self._headers(), json=json, **kwargs)
        if response.is_error:
            self._log_error_response(method="POST", url=url, response=response)
        response.raise_for_status()
        return response.json()

    async def _http_get_text(self, path: str) -> str:
        """GET request used to retrieve batch results or output files"""
        url = self._url(path)
        async with self._client_factory() as client:
            response = await client.get(url, headers=self._headers())
        if response.is_error:
            self._log_error_response(method="GET", url=url, response=response)
        response.raise_for_status()
        return response.text

    async def _http_stream_lines(self, path: str) -> AsyncIterator[str]:
        """Streamed GET request yielding the response body line by line"""
        url = self._url(path)
        async with self._client_factory() as client:
            async with client.stream("GET", url, headers=self._headers()) as response:
                if response.is_error:
                    await response.aread()
                    self._log_error_response(method="GET", url=url, response=response)
                response.raise_for_status()
                async for line in response.aiter_lines():
                    yield line

    @abstractmethod
    async def create_batch(
        self,
        requests: t.Sequence[BatchRequest],
        output_schema: OutputSchema,
    ) -> str:
        """Submit ``requests`` as one provider batch and return its id."""

    @abstractmethod
    async def get_batch(self, batch_id: str) -> Batch:
        """Fetch a fresh snapshot of a provider batch."""

    @abstractmethod
    async def get_batch_results(self, batch_id: str) -> list[BatchResponse[t.Any]]:
        """Fetch and decode the results of a completed provider batch."""

    async def cancel_batch(self, batch_id: str) -> None:
        """Request provider-side cancellation of a batch."""
        raise UnsupportedOperationError(f"{self.name} does not support batch cancellation")

    def _validate_requests(self, requests: t.Sequence[BatchRequest]) -> list[BatchRequest]:
        if not requests:
            raise ValueError("Cannot create an empty request batch")
        validated = [
            request if isinstance(request, BatchRequest) else BatchRequest.model_validate(request)
            for request in requests
        ]
        seen: set[str] = set()
        duplicates = []
        for request in validated:
            if request.custom_id in seen:
                duplicates.append(request.custom_id)
            seen.add(request.custom_id)
        if duplicates:
            raise ValueError(f"Duplicate custom_id values in batch: {sorted(set(duplicates))}")
        return validated

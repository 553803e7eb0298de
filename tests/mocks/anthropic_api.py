import json
import typing as t

import httpx

CREATED_AT = "2024-09-24T18:37:24.100435Z"
ENDED_AT = "2024-09-24T19:01:02.000000Z"
EXPIRES_AT = "2024-09-25T18:37:24.100435Z"
BASE_URL = "https://api.anthropic.com/v1"


def default_tool_input(request: dict[str, t.Any]) -> dict[str, t.Any]:
    """
    Build the ``format_response`` tool input returned for a request.
    """
    del request
    return {"response": {"sentiment": "positive", "confidence": 0.9}}


class FakeAnthropicAPI:
    """
    Emulate the subset of Anthropic message batches endpoints used in tests.
    """

    def __init__(self) -> None:
        self.batches: dict[str, dict[str, t.Any]] = {}
        self.batch_requests: dict[str, list[dict[str, t.Any]]] = {}
        self.results: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self._counter = 0

    def _json_response(self, *, status_code: int, payload: dict[str, t.Any]) -> httpx.Response:
        return httpx.Response(status_code=status_code, json=payload)

    def _error_response(self, *, status_code: int, message: str) -> httpx.Response:
        return self._json_response(
            status_code=status_code,
            payload={
                "type": "error",
                "error": {"type": "invalid_request_error", "message": message},
            },
        )

    def _next_id(self) -> str:
        self._counter += 1
        return f"msgbatch_{self._counter:04d}"

    def add_batch(self, **fields: t.Any) -> str:
        """
        Register a message batch object directly.

        Returns
        -------
        str
            Batch identifier.
        """
        batch_id = fields.pop("id", None) or self._next_id()
        self.batches[batch_id] = {
            "id": batch_id,
            "type": "message_batch",
            "processing_status": "in_progress",
            "request_counts": {
                "processing": 0,
                "succeeded": 0,
                "errored": 0,
                "canceled": 0,
                "expired": 0,
            },
            "created_at": CREATED_AT,
            "ended_at": None,
            "expires_at": EXPIRES_AT,
            "archived_at": None,
            "cancel_initiated_at": None,
            "results_url": None,
            **fields,
        }
        return batch_id

    def end_batch(
        self,
        batch_id: str,
        *,
        results: str | None = None,
        tool_input_for: t.Callable[[dict[str, t.Any]], dict[str, t.Any]] = default_tool_input,
    ) -> None:
        """
        Mark a batch as ended and publish its results.

        Parameters
        ----------
        batch_id : str
            Batch identifier.
        results : str | None, optional
            Raw JSONL results. Generated from submitted requests when omitted.
        tool_input_for : typing.Callable[[dict], dict], optional
            Tool input for each submitted request when results are generated.
        """
        if results is None:
            lines = [
                json.dumps(
                    {
                        "custom_id": request["custom_id"],
                        "result": {
                            "type": "succeeded",
                            "message": {
                                "id": f"msg_{index}",
                                "type": "message",
                                "role": "assistant",
                                "model": request["params"]["model"],
                                "content": [
                                    {
                                        "type": "tool_use",
                                        "id": f"toolu_{index}",
                                        "name": "format_response",
                                        "input": tool_input_for(request),
                                    }
                                ],
                                "stop_reason": "tool_use",
                                "usage": {"input_tokens": 12, "output_tokens": 8},
                            },
                        },
                    }
                )
                for index, request in enumerate(self.batch_requests.get(batch_id, []))
            ]
            results = "\n".join(lines) + "\n"
        self.results[batch_id] = results
        succeeded = len([line for line in results.splitlines() if line.strip()])
        self.batches[batch_id].update(
            processing_status="ended",
            ended_at=ENDED_AT,
            results_url=f"{BASE_URL}/messages/batches/{batch_id}/results",
            request_counts={
                "processing": 0,
                "succeeded": succeeded,
                "errored": 0,
                "canceled": 0,
                "expired": 0,
            },
        )

    def _handle_batch_create(self, *, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.read())
        requests = payload.get("requests") or []
        if not requests:
            return self._error_response(
                status_code=400, message="requests: List should have at least 1 item"
            )
        batch_id = self.add_batch(
            request_counts={
                "processing": len(requests),
                "succeeded": 0,
                "errored": 0,
                "canceled": 0,
                "expired": 0,
            }
        )
        self.batch_requests[batch_id] = requests
        return self._json_response(status_code=200, payload=self.batches[batch_id])

    def _handle_cancel(self, *, batch_id: str) -> httpx.Response:
        batch = self.batches[batch_id]
        if batch["processing_status"] == "ended":
            return self._error_response(
                status_code=400,
                message=f"Batch {batch_id} has already ended and cannot be canceled.",
            )
        batch["processing_status"] = "canceling"
        batch["cancel_initiated_at"] = ENDED_AT
        return self._json_response(status_code=200, payload=batch)

    def handler(self, request: httpx.Request) -> httpx.Response:
        """
        Dispatch incoming requests to mock handlers.

        Parameters
        ----------
        request : httpx.Request
            Incoming HTTP request.

        Returns
        -------
        httpx.Response
            Mock response.
        """
        path = request.url.path
        self.calls.append((request.method, path))
        if request.headers.get("x-api-key") != "test-key":
            return self._error_response(status_code=401, message="invalid x-api-key")
        if request.headers.get("anthropic-version") != "2023-06-01":
            return self._error_response(status_code=400, message="missing anthropic-version")

        if request.method == "POST" and path == "/v1/messages/batches":
            return self._handle_batch_create(request=request)

        parts = path.split("/")
        if path.startswith("/v1/messages/batches/"):
            batch_id = parts[4]
            if batch_id not in self.batches:
                return self._error_response(status_code=404, message="Batch not found")
            if request.method == "POST" and path.endswith("/cancel"):
                return self._handle_cancel(batch_id=batch_id)
            if request.method == "GET" and path.endswith("/results"):
                return httpx.Response(status_code=200, text=self.results[batch_id])
            if request.method == "GET":
                return self._json_response(status_code=200, payload=self.batches[batch_id])

        return self._error_response(status_code=404, message="not found")


def make_anthropic_transport(api: FakeAnthropicAPI) -> httpx.MockTransport:
    """
    Create a mock transport serving a fake Anthropic API.
    """
    return httpx.MockTransport(handler=api.handler)

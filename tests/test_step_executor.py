"""Tests for executing single request steps."""

import pytest

from rowpipe.exceptions import StepFailure
from rowpipe.exec.step_executor import RequestStepExecutor
from rowpipe.exec.transport import HttpResponse, TransportError
from rowpipe.sources import Row
from rowpipe.types import ExtractionSpec, HttpMethod, RequestStep
from rowpipe.variables.substitution import PlaceholderResolver


class StubConfirmer:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    def confirm(self, prompt):
        self.prompts.append(prompt)
        return self.answers.pop(0)


class TestRequestStepExecutor:
    """Endpoint precedence, body rules and failure capture."""

    def test_payload_resolved_and_extracted(self, transport):
        transport.queue(HttpResponse(201, {"id": 42}))
        executor = RequestStepExecutor(transport)
        step = RequestStep(
            name="create",
            endpoint="https://api.test/accounts",
            payload={"id": "$accountId", "active": "$active"},
            extractions=(ExtractionSpec("acctId", "id"),),
        )

        written = executor.execute(step, Row(1, {"accountId": "17", "active": "true"}), {})

        assert written == {"acctId": 42}
        assert transport.calls == [{
            "method": "POST",
            "url": "https://api.test/accounts",
            "body": {"id": 17, "active": True},
            "headers": None,
        }]

    def test_extracted_not_modified(self, transport):
        transport.queue(HttpResponse(200, {"id": 2}))
        executor = RequestStepExecutor(transport)
        extracted = {"acctId": 1}
        step = RequestStep(name="s", endpoint="/x", extractions=(ExtractionSpec("acctId", "id"),))

        executor.execute(step, Row(1, {}), extracted)

        assert extracted == {"acctId": 1}

    def test_global_endpoint_overrides_step(self, transport):
        executor = RequestStepExecutor(transport, endpoint_override="https://override.test/$id")
        step = RequestStep(name="s", endpoint="https://step.test/")

        executor.execute(step, Row(1, {"id": "9"}), {})

        assert transport.calls[0]["url"] == "https://override.test/9"

    @pytest.mark.parametrize("method", [HttpMethod.GET, HttpMethod.DELETE])
    def test_no_body_for_get_and_delete(self, transport, method):
        executor = RequestStepExecutor(transport)
        step = RequestStep(name="s", method=method, endpoint="/items/$id", payload={"id": "$id"})

        executor.execute(step, Row(1, {"id": "3"}), {})

        assert transport.calls[0]["method"] == method.value
        assert transport.calls[0]["url"] == "/items/3"
        assert transport.calls[0]["body"] is None

    @pytest.mark.parametrize("method", [HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH])
    def test_body_for_other_methods(self, transport, method):
        executor = RequestStepExecutor(transport)
        step = RequestStep(name="s", method=method, endpoint="/items", payload={"n": "$n"})

        executor.execute(step, Row(1, {"n": "1"}), {})

        assert transport.calls[0]["body"] == {"n": 1}

    def test_step_headers_passed(self, transport):
        executor = RequestStepExecutor(transport)
        step = RequestStep(name="s", endpoint="/x", headers={"X-Trace": "1"})

        executor.execute(step, Row(1, {}), {})

        assert transport.calls[0]["headers"] == {"X-Trace": "1"}

    def test_missing_endpoint_fails(self, transport):
        executor = RequestStepExecutor(transport)

        with pytest.raises(StepFailure) as exc_info:
            executor.execute(RequestStep(name="s"), Row(1, {}), {})

        assert exc_info.value.error.type == 'configuration'
        assert transport.calls == []

    def test_empty_resolved_endpoint_fails(self, transport):
        executor = RequestStepExecutor(transport)

        with pytest.raises(StepFailure) as exc_info:
            executor.execute(RequestStep(name="s", endpoint="   "), Row(1, {}), {})

        assert "empty" in exc_info.value.error.message

    def test_http_error_carries_status_and_body(self, transport):
        transport.queue(TransportError("HTTP 422 Unprocessable Entity", status_code=422, body={"error": "bad email"}))
        executor = RequestStepExecutor(transport)

        with pytest.raises(StepFailure) as exc_info:
            executor.execute(RequestStep(name="create", endpoint="/x"), Row(1, {}), {})

        failure = exc_info.value
        assert failure.step_name == "create"
        assert failure.error.type == 'http_error'
        assert failure.error.status_code == 422
        assert failure.error.body == {"error": "bad email"}

    def test_network_error_has_no_status(self, transport):
        transport.queue(TransportError("HTTP request failed for /x: connection refused"))
        executor = RequestStepExecutor(transport)

        with pytest.raises(StepFailure) as exc_info:
            executor.execute(RequestStep(name="s", endpoint="/x"), Row(1, {}), {})

        assert exc_info.value.error.type == 'network_error'
        assert exc_info.value.error.status_code is None
        assert "connection refused" in exc_info.value.error.body

    def test_declined_call_is_skipped(self, transport):
        confirmer = StubConfirmer(False)
        executor = RequestStepExecutor(transport, confirmer=confirmer)
        step = RequestStep(name="s", endpoint="/x", extractions=(ExtractionSpec("id", "id"),))

        written = executor.execute(step, Row(1, {}), {})

        assert written == {}
        assert transport.calls == []
        assert confirmer.prompts == ["Send POST /x?"]

    def test_array_fields_in_payload(self, transport):
        executor = RequestStepExecutor(transport, resolver=PlaceholderResolver(["ids"]))
        step = RequestStep(name="s", endpoint="/x", payload={"ids": "$ids"})

        executor.execute(step, Row(1, {"ids": "1,2,3"}), {})

        assert transport.calls[0]["body"] == {"ids": [1, 2, 3]}


class TestSecondaryRowLoop:
    """Loop steps repeat once per secondary row."""

    def test_one_call_per_secondary_row(self, transport):
        executor = RequestStepExecutor(transport)
        step = RequestStep(
            name="lines",
            endpoint="/orders/$orderId/lines",
            payload={"sku": "$sku", "order": "$orderId"},
            for_each_secondary_row=True,
        )
        secondary = [Row(1, {"sku": "A"}), Row(2, {"sku": "B"})]

        executor.execute(step, Row(1, {"sku": "primary"}), {"orderId": 5}, secondary)

        assert [call["body"] for call in transport.calls] == [
            {"sku": "A", "order": 5},
            {"sku": "B", "order": 5},
        ]
        assert all(call["url"] == "/orders/5/lines" for call in transport.calls)

    def test_repetitions_see_earlier_extractions(self, transport):
        transport.queue(HttpResponse(200, {"total": 1}), HttpResponse(200, {"total": 2}))
        executor = RequestStepExecutor(transport)
        step = RequestStep(
            name="add",
            endpoint="/cart",
            payload={"sku": "$sku", "previous": "$total"},
            for_each_secondary_row=True,
            extractions=(ExtractionSpec("total", "total"),),
        )

        written = executor.execute(step, Row(1, {"total": "0"}), {}, [Row(1, {"sku": "A"}), Row(2, {"sku": "B"})])

        assert transport.calls[0]["body"] == {"sku": "A", "previous": 0}
        assert transport.calls[1]["body"] == {"sku": "B", "previous": 1}
        assert written == {"total": 2}

    def test_failure_stops_loop(self, transport):
        transport.queue(HttpResponse(200, {}), TransportError("HTTP 500", status_code=500, body="boom"))
        executor = RequestStepExecutor(transport)
        step = RequestStep(name="lines", endpoint="/lines", for_each_secondary_row=True)
        secondary = [Row(1, {}), Row(2, {}), Row(3, {})]

        with pytest.raises(StepFailure) as exc_info:
            executor.execute(step, Row(1, {}), {}, secondary)

        assert exc_info.value.error.status_code == 500
        assert len(transport.calls) == 2

    def test_empty_secondary_table_makes_no_calls(self, transport):
        executor = RequestStepExecutor(transport)
        step = RequestStep(name="lines", endpoint="/lines", for_each_secondary_row=True)

        assert executor.execute(step, Row(1, {}), {}, []) == {}
        assert transport.calls == []

    def test_missing_secondary_table_fails(self, transport):
        executor = RequestStepExecutor(transport)
        step = RequestStep(name="lines", endpoint="/lines", for_each_secondary_row=True)

        with pytest.raises(StepFailure) as exc_info:
            executor.execute(step, Row(1, {}), {})

        assert exc_info.value.error.type == 'configuration'

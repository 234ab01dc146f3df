# tests/application/executor/test_chain_executor.py
import time

import pytest

from application.executor.chain_executor import ChainExecutor
from application.executor.resolver_registry import RequestResolverRegistry
from application.ports.transport import TransportError, TransportResponse
from application.resolvers import CollectionRequestResolver, InlineRequestResolver
from application.services.execution_deps import ExecutionDeps
from application.services.variable_extraction_service import VariableExtractionService
from domain.chain import Chain, ChainStep, RequestSpec, VariableExtraction
from domain.collection import Collection, SavedRequest
from domain.execution import ChainExecution, ExecutionStatus, StepStatus
from infrastructure.store.in_memory_document_store import InMemoryDocumentStore


class FakeLogger:
    def __init__(self, bound=None, events=None):
        self.bound = bound or {}
        self.events = [] if events is None else events

    def bind(self, **fields):
        merged = dict(self.bound)
        merged.update(fields)
        return FakeLogger(bound=merged, events=self.events)

    def _log(self, level, event, fields):
        payload = dict(self.bound)
        payload.update(fields)
        self.events.append((level, event, payload))

    def debug(self, event, **fields):
        self._log("debug", event, fields)

    def info(self, event, **fields):
        self._log("info", event, fields)

    def warning(self, event, **fields):
        self._log("warning", event, fields)

    def error(self, event, **fields):
        self._log("error", event, fields)

    def names(self):
        return [event for _level, event, _payload in self.events]


class ScriptedTransport:
    """Answers requests in order; an Exception in the script is raised instead."""

    def __init__(self, *responses, on_send=None):
        self.responses = list(responses)
        self.requests = []
        self.on_send = on_send

    def send_request(self, request):
        self.requests.append(request)
        if self.on_send is not None:
            self.on_send(request)
        response = self.responses.pop(0) if self.responses else TransportResponse(status=200, data={})
        if isinstance(response, Exception):
            raise response
        return response


def ok(data, status=200):
    return TransportResponse(status=status, data=data, headers={"content-type": "application/json"}, status_text="OK")


def inline(url, method="GET", **kwargs):
    return RequestSpec(method=method, url=url, **kwargs)


def make_chain(*steps):
    return Chain(id="chain-1", name="test chain", steps=list(steps))


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def logger():
    return FakeLogger()


def run(store, chain, transport, logger, sleep=lambda _s: None):
    registry = RequestResolverRegistry([InlineRequestResolver(), CollectionRequestResolver(store)])
    executor = ChainExecutor(registry, VariableExtractionService(), store)
    execution = ChainExecution(id="exec-1", chain_id=chain.id)
    store.chain_executions.add(execution)
    deps = ExecutionDeps(transport=transport, logger=logger, sleep=sleep)
    return executor.execute(chain, execution, deps)


class TestSuccessfulExecution:
    def test_single_step_extracts_token(self, store, logger):
        chain = make_chain(
            ChainStep(
                id="s1",
                order=0,
                request=inline("/test"),
                variable_extractions=[VariableExtraction(name="token", path="$.token")],
            )
        )
        transport = ScriptedTransport(ok({"token": "abc"}))

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.variables["token"] == "abc"
        assert execution.steps[0].status == StepStatus.SUCCESS
        assert execution.steps[0].extracted_variables == {"token": "abc"}
        assert execution.steps[0].response.data == {"token": "abc"}
        assert execution.steps[0].duration_ms is not None
        assert execution.completed_at is not None
        assert execution.error is None

    def test_final_record_is_persisted(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/test")))

        execution = run(store, chain, ScriptedTransport(ok({})), logger)

        stored = store.chain_executions.get(execution.id)
        assert stored.status == ExecutionStatus.COMPLETED
        assert stored.steps[0].status == StepStatus.SUCCESS

    def test_running_state_is_visible_during_the_request(self, store, logger):
        seen = []

        def inspect(_request):
            stored = store.chain_executions.get("exec-1")
            seen.append((stored.status, [r.status for r in stored.steps]))

        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/test")))

        run(store, chain, ScriptedTransport(ok({}), on_send=inspect), logger)

        assert seen == [(ExecutionStatus.RUNNING, [StepStatus.RUNNING])]

    def test_steps_run_in_order(self, store, logger):
        chain = make_chain(
            ChainStep(id="late", order=1, request=inline("/second")),
            ChainStep(id="early", order=0, request=inline("/first")),
        )
        transport = ScriptedTransport(ok({}), ok({}))

        execution = run(store, chain, transport, logger)

        assert [r.url for r in transport.requests] == ["/first", "/second"]
        assert [r.step_id for r in execution.steps] == ["early", "late"]

    def test_variables_flow_into_later_requests(self, store, logger):
        chain = make_chain(
            ChainStep(
                id="login",
                order=0,
                request=inline("/login", method="POST", body='{"user": "alice"}'),
                variable_extractions=[
                    VariableExtraction(name="token", path="$.token"),
                    VariableExtraction(name="user", path="$.user"),
                ],
            ),
            ChainStep(
                id="profile",
                order=1,
                request=inline(
                    "/users/{{user.id}}",
                    method="PUT",
                    headers={"Authorization": "Bearer {{token}}"},
                    params={"verbose": "{{missing}}"},
                    body='{"token": "{{token}}", "name": "{{user.name}}"}',
                ),
            ),
        )
        transport = ScriptedTransport(ok({"token": "abc", "user": {"id": 7}}), ok({"updated": True}))

        execution = run(store, chain, transport, logger)

        sent = transport.requests[1]
        assert sent.url == "/users/7"
        assert sent.headers == {"Authorization": "Bearer abc"}
        assert sent.params == {"verbose": "{{missing}}"}
        assert sent.body == '{"token": "abc", "name": "undefined"}'
        assert execution.steps[1].request == sent
        assert execution.variables == {"token": "abc", "user": {"id": 7}}

    def test_later_extraction_overwrites_variable(self, store, logger):
        extraction = [VariableExtraction(name="id", path="$.id")]
        chain = make_chain(
            ChainStep(id="a", order=0, request=inline("/a"), variable_extractions=extraction),
            ChainStep(id="b", order=1, request=inline("/b"), variable_extractions=extraction),
        )

        execution = run(store, chain, ScriptedTransport(ok({"id": 1}), ok({"other": 2})), logger)

        assert execution.variables == {"id": None}
        assert execution.steps[0].extracted_variables == {"id": 1}
        assert execution.steps[1].extracted_variables == {"id": None}

    def test_error_status_is_a_successful_step(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/boom")))

        execution = run(store, chain, ScriptedTransport(ok({"message": "Internal Error"}, status=500)), logger)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.steps[0].status == StepStatus.SUCCESS
        assert execution.steps[0].response.status == 500

    def test_saved_request_is_resolved_from_collections(self, store, logger):
        store.collections.add(
            Collection(id="col", name="auth", requests=[SavedRequest(id="r1", name="login", method="POST", url="/login")])
        )
        chain = make_chain(ChainStep(id="s1", order=0, request_id="r1"))
        transport = ScriptedTransport(ok({}))

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.COMPLETED
        assert transport.requests[0].url == "/login"
        assert transport.requests[0].method == "POST"

    def test_empty_chain_completes(self, store, logger):
        execution = run(store, make_chain(), ScriptedTransport(), logger)
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.steps == []


class TestDelay:
    def test_delay_is_passed_to_sleep(self, store, logger):
        slept = []
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x"), delay=1500))

        run(store, chain, ScriptedTransport(ok({})), logger, sleep=slept.append)

        assert slept == [1.5]
        assert "step.delay" in logger.names()

    def test_delay_holds_the_step(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x"), delay=50))

        started = time.perf_counter()
        execution = run(store, chain, ScriptedTransport(ok({})), logger, sleep=time.sleep)
        elapsed = time.perf_counter() - started

        assert execution.status == ExecutionStatus.COMPLETED
        assert elapsed >= 0.05


class TestFailures:
    def test_step_without_request(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0))
        transport = ScriptedTransport()

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "Step 1 failed: Step has no request defined"
        assert execution.steps[0].status == StepStatus.FAILED
        assert transport.requests == []

    def test_missing_saved_request(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request_id="missing"))

        execution = run(store, chain, ScriptedTransport(), logger)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.steps[0].error == "Request missing not found"
        assert execution.error == "Step 1 failed: Request missing not found"

    def test_resolution_failure_stops_even_with_continue_on_error(self, store, logger):
        chain = make_chain(
            ChainStep(id="s1", order=0, request_id="missing", continue_on_error=True),
            ChainStep(id="s2", order=1, request=inline("/next")),
        )
        transport = ScriptedTransport()

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.FAILED
        assert len(execution.steps) == 1
        assert transport.requests == []

    def test_transport_failure_stops_the_chain(self, store, logger):
        chain = make_chain(
            ChainStep(id="s1", order=0, request=inline("/ok")),
            ChainStep(id="s2", order=1, request=inline("/down")),
            ChainStep(id="s3", order=2, request=inline("/never")),
        )
        transport = ScriptedTransport(ok({}), TransportError("Network down"))

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "Step 2 failed: Network down"
        assert [r.status for r in execution.steps] == [StepStatus.SUCCESS, StepStatus.FAILED]
        assert execution.steps[1].error == "Network down"
        assert [r.url for r in transport.requests] == ["/ok", "/down"]
        assert store.chain_executions.get(execution.id).status == ExecutionStatus.FAILED

    def test_transport_failure_default_message(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/down")))

        execution = run(store, chain, ScriptedTransport(TransportError()), logger)

        assert execution.error == "Step 1 failed: Network error occurred"

    def test_continue_on_error_runs_remaining_steps(self, store, logger):
        chain = make_chain(
            ChainStep(id="s1", order=0, request=inline("/down"), continue_on_error=True),
            ChainStep(id="s2", order=1, request=inline("/ok")),
        )

        execution = run(store, chain, ScriptedTransport(TransportError("boom"), ok({})), logger)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.error is None
        assert [r.status for r in execution.steps] == [StepStatus.FAILED, StepStatus.SUCCESS]
        assert execution.steps[0].error == "boom"
        assert "step.continue_on_error" in logger.names()

    def test_unexpected_error_fails_execution_and_propagates(self, store, logger):
        class BrokenExtraction(VariableExtractionService):
            def extract_variables(self, document, extractions):
                raise RuntimeError("extractor exploded")

        registry = RequestResolverRegistry([InlineRequestResolver()])
        executor = ChainExecutor(registry, BrokenExtraction(), store)
        execution = ChainExecution(id="exec-1", chain_id="chain-1")
        store.chain_executions.add(execution)
        deps = ExecutionDeps(transport=ScriptedTransport(ok({})), logger=logger)
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x")))

        with pytest.raises(RuntimeError):
            executor.execute(chain, execution, deps)

        stored = store.chain_executions.get("exec-1")
        assert stored.status == ExecutionStatus.FAILED
        assert stored.error == "extractor exploded"
        assert "chain.execution_crashed" in logger.names()


class TestCancellation:
    def _cancel_stored(self, store):
        stored = store.chain_executions.get("exec-1")
        stored.cancel()
        store.chain_executions.put(stored)

    def test_cancel_during_request_skips_remaining_steps(self, store, logger):
        chain = make_chain(
            ChainStep(id="s1", order=0, request=inline("/slow")),
            ChainStep(id="s2", order=1, request=inline("/next")),
            ChainStep(id="s3", order=2, request=inline("/last")),
        )
        transport = ScriptedTransport(ok({"done": True}), on_send=lambda _r: self._cancel_stored(store))

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.CANCELLED
        assert len(transport.requests) == 1
        assert [r.status for r in execution.steps] == [StepStatus.SUCCESS, StepStatus.SKIPPED, StepStatus.SKIPPED]
        stored = store.chain_executions.get(execution.id)
        assert stored.status == ExecutionStatus.CANCELLED
        assert [r.step_id for r in stored.steps] == ["s1", "s2", "s3"]
        assert "chain.cancelled" in logger.names()

    def test_cancel_before_start_runs_nothing(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x")))
        transport = ScriptedTransport()
        registry = RequestResolverRegistry([InlineRequestResolver()])
        executor = ChainExecutor(registry, VariableExtractionService(), store)
        execution = ChainExecution(id="exec-1", chain_id=chain.id)
        store.chain_executions.add(execution)
        self._cancel_stored(store)

        result = executor.execute(chain, execution, ExecutionDeps(transport=transport, logger=logger))

        assert result.status == ExecutionStatus.CANCELLED
        assert transport.requests == []
        assert [r.status for r in result.steps] == [StepStatus.SKIPPED]

    def test_cancel_on_last_step_is_not_overwritten(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x")))
        transport = ScriptedTransport(ok({}), on_send=lambda _r: self._cancel_stored(store))

        execution = run(store, chain, transport, logger)

        assert execution.status == ExecutionStatus.CANCELLED
        assert store.chain_executions.get(execution.id).status == ExecutionStatus.CANCELLED

    def test_cancel_just_before_completion_is_kept(self, store, logger, monkeypatch):
        # Arrange
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x")))
        complete = ChainExecution.complete

        def cancel_then_complete(execution):
            self._cancel_stored(store)
            complete(execution)

        monkeypatch.setattr(ChainExecution, "complete", cancel_then_complete)

        # Act
        execution = run(store, chain, ScriptedTransport(ok({"done": True})), logger)

        # Assert
        assert execution.status == ExecutionStatus.CANCELLED
        stored = store.chain_executions.get(execution.id)
        assert stored.status == ExecutionStatus.CANCELLED
        assert [r.status for r in stored.steps] == [StepStatus.SUCCESS]
        assert stored.steps[0].response.data == {"done": True}
        assert "chain.cancelled" in logger.names()

    def test_cancel_just_before_failure_is_kept(self, store, logger, monkeypatch):
        # Arrange
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/down")))
        fail = ChainExecution.fail

        def cancel_then_fail(execution, error):
            self._cancel_stored(store)
            fail(execution, error)

        monkeypatch.setattr(ChainExecution, "fail", cancel_then_fail)

        # Act
        execution = run(store, chain, ScriptedTransport(TransportError("down")), logger)

        # Assert
        stored = store.chain_executions.get(execution.id)
        assert stored.status == ExecutionStatus.CANCELLED
        assert stored.error is None
        assert [r.status for r in stored.steps] == [StepStatus.FAILED]
        assert stored.steps[0].error == "down"
        assert execution.status == ExecutionStatus.CANCELLED


class TestLogging:
    def test_lifecycle_events(self, store, logger):
        chain = make_chain(
            ChainStep(
                id="s1",
                order=0,
                request=inline("/x"),
                variable_extractions=[VariableExtraction(name="token", path="$.token")],
            )
        )

        run(store, chain, ScriptedTransport(ok({"token": "abc"})), logger)

        names = logger.names()
        assert names[0] == "chain.start"
        assert names[-1] == "chain.end"
        for event in ("step.start", "step.request", "variables.extracted", "step.end"):
            assert event in names

    def test_events_are_bound_to_execution(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0, request=inline("/x")))

        run(store, chain, ScriptedTransport(ok({})), logger)

        assert all(p["execution_id"] == "exec-1" and p["chain_id"] == "chain-1" for _l, _e, p in logger.events)

    def test_request_log_masks_credentials(self, store, logger):
        chain = make_chain(
            ChainStep(id="s1", order=0, request=inline("/x", headers={"Authorization": "Bearer secret"}))
        )

        run(store, chain, ScriptedTransport(ok({})), logger)

        request_logs = [p for level, e, p in logger.events if e == "step.request"]
        assert request_logs[0]["headers"] == {"Authorization": "********"}

    def test_failures_are_logged_as_errors(self, store, logger):
        chain = make_chain(ChainStep(id="s1", order=0))

        run(store, chain, ScriptedTransport(), logger)

        assert ("error", "step.failed") in [(level, e) for level, e, _p in logger.events]

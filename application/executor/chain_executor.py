from __future__ import annotations

import time
from dataclasses import replace
from typing import Any, List, Mapping, Optional

from application.executor.resolver_registry import RequestResolverRegistry
from application.outcome import StepOutcome
from application.ports.document_store import DocumentStorePort
from application.resolvers.base import RequestResolutionError
from application.services.execution_deps import ExecutionDeps
from application.services.execution_error_builder import ExecutionErrorBuilder
from application.services.redactor import mask_dict
from application.services.variable_extraction_service import VariableExtractionService
from domain.chain import Chain, ChainStep, RequestSpec
from domain.context import ChainContext
from domain.execution import (
    ChainExecution,
    ExecutionStatus,
    StepResponse,
    StepResult,
)


class ChainExecutor:
    """
    Runs the steps of a chain one after another against a shared context.

    The execution record is persisted after every transition. Cancellation is
    cooperative: the stored record is checked before and after each step, and
    an in-flight request is never interrupted.
    """

    def __init__(
        self,
        registry: RequestResolverRegistry,
        extraction: VariableExtractionService,
        store: DocumentStorePort,
        error_builder: Optional[ExecutionErrorBuilder] = None,
    ):
        self._registry = registry
        self._extraction = extraction
        self._store = store
        self._errors = error_builder or ExecutionErrorBuilder()

    def execute(self, chain: Chain, execution: ChainExecution, deps: ExecutionDeps) -> ChainExecution:
        deps = deps.with_logger(deps.logger.bind(execution_id=execution.id, chain_id=chain.id))

        context = self._extraction.create_context()
        # the execution exposes the live variable map
        context.variables = execution.variables

        steps = chain.ordered_steps()
        deps.logger.info("chain.start", chain_name=chain.name, step_count=len(steps))
        t0 = time.perf_counter()

        try:
            self._run_steps(steps, execution, context, deps)
        except Exception as e:
            deps.logger.error("chain.execution_crashed", error=str(e))
            if not execution.status.is_terminal:
                execution.fail(self._errors.from_exception(e))
            self._save(execution, deps)
            raise

        deps.logger.info(
            "chain.end",
            status=execution.status.value,
            error=execution.error,
            elapsed_ms=int((time.perf_counter() - t0) * 1000),
        )
        return execution

    def _run_steps(
        self,
        steps: List[ChainStep],
        execution: ChainExecution,
        context: ChainContext,
        deps: ExecutionDeps,
    ) -> None:
        for i, step in enumerate(steps):
            if self._sync_cancellation(execution, deps):
                self._skip_remaining(execution, steps[i:], deps)
                return

            result = StepResult(step_id=step.id, order=step.order)
            execution.steps.append(result)
            self._save(execution, deps)
            if execution.status is ExecutionStatus.CANCELLED:
                self._skip_remaining(execution, steps[i + 1:], deps)
                return

            outcome = self._execute_step(i + 1, step, result, context, deps)

            if self._sync_cancellation(execution, deps):
                self._skip_remaining(execution, steps[i + 1:], deps)
                return

            if not outcome.ok and (outcome.fatal or not step.continue_on_error):
                execution.fail(self._errors.step_failed(i + 1, outcome.error_message))
                self._save(execution, deps)
                return

            if not outcome.ok:
                deps.logger.warning("step.continue_on_error", step_id=step.id, error=outcome.error_message)

            self._save(execution, deps)

        if not self._sync_cancellation(execution, deps):
            execution.complete()
        self._save(execution, deps)

    def _execute_step(
        self,
        step_number: int,
        step: ChainStep,
        result: StepResult,
        context: ChainContext,
        deps: ExecutionDeps,
    ) -> StepOutcome:
        deps.logger.info("step.start", step_id=step.id, step_number=step_number, order=step.order)
        t0 = time.perf_counter()
        try:
            outcome = self._dispatch(step, result, context, deps)
        finally:
            result.duration_ms = int((time.perf_counter() - t0) * 1000)

        deps.logger.info(
            "step.end",
            step_id=step.id,
            ok=outcome.ok,
            status=result.status.value,
            elapsed_ms=result.duration_ms,
        )
        return outcome

    def _dispatch(
        self,
        step: ChainStep,
        result: StepResult,
        context: ChainContext,
        deps: ExecutionDeps,
    ) -> StepOutcome:
        try:
            spec = self._registry.get_resolver(step).resolve(step)
        except RequestResolutionError as e:
            result.fail(str(e))
            deps.logger.error("step.failed", step_id=step.id, phase="resolve", error=str(e))
            return StepOutcome(ok=False, error_message=str(e), fatal=True)

        request = self._interpolate(spec, context.variables)
        result.request = request
        deps.logger.debug(
            "step.request",
            step_id=step.id,
            method=request.method,
            url=request.url,
            headers=mask_dict(request.headers),
            params=mask_dict(request.params),
        )

        if step.delay:
            deps.logger.info("step.delay", step_id=step.id, delay_ms=step.delay)
            deps.wait_ms(step.delay)

        try:
            response = deps.transport.send_request(request)
        except Exception as e:
            message = str(e) or type(e).__name__
            result.fail(message)
            deps.logger.error("step.failed", step_id=step.id, phase="send", error=message)
            return StepOutcome(ok=False, error_message=message)

        extracted = self._extraction.extract_variables(response.data, step.variable_extractions)
        self._extraction.merge_variables(context, extracted)
        self._extraction.add_response_to_context(context, step.id, response.data, response.status)
        result.succeed(
            StepResponse(
                status=response.status,
                data=response.data,
                headers=dict(response.headers or {}),
                status_text=response.status_text,
            ),
            extracted,
        )

        if extracted:
            deps.logger.info(
                "variables.extracted",
                step_id=step.id,
                names=list(extracted),
                missing=[k for k, v in extracted.items() if v is None],
            )
        return StepOutcome(ok=True)

    def _interpolate(self, spec: RequestSpec, variables: Mapping[str, Any]) -> RequestSpec:
        def render(text: str) -> str:
            return self._extraction.interpolate_variables(text, variables)

        return replace(
            spec,
            url=render(spec.url),
            headers={k: render(v) for k, v in (spec.headers or {}).items()},
            params={k: render(v) for k, v in (spec.params or {}).items()},
            body=render(spec.body) if spec.body is not None else None,
        )

    # -------------------------
    # cancellation / persistence
    # -------------------------

    def _sync_cancellation(self, execution: ChainExecution, deps: ExecutionDeps) -> bool:
        if execution.status is ExecutionStatus.CANCELLED:
            return True
        stored = self._store.chain_executions.get(execution.id)
        if stored is not None and stored.status is ExecutionStatus.CANCELLED:
            self._adopt_cancellation(execution, deps)
            return True
        return False

    def _adopt_cancellation(self, execution: ChainExecution, deps: ExecutionDeps) -> None:
        if execution.status is ExecutionStatus.CANCELLED:
            return
        execution.adopt_cancellation()
        deps.logger.info("chain.cancelled", completed_steps=len(execution.steps))

    def _skip_remaining(self, execution: ChainExecution, steps: List[ChainStep], deps: ExecutionDeps) -> None:
        for step in steps:
            skipped = StepResult(step_id=step.id, order=step.order)
            skipped.skip()
            execution.steps.append(skipped)
            deps.logger.info("step.skipped", step_id=step.id, reason="cancelled")
        self._save(execution, deps)

    def _save(self, execution: ChainExecution, deps: ExecutionDeps) -> None:
        table = self._store.chain_executions

        def cancelled_elsewhere(current: Optional[ChainExecution]) -> bool:
            return (
                current is not None
                and current.status is ExecutionStatus.CANCELLED
                and execution.status is not ExecutionStatus.CANCELLED
            )

        if not table.put_unless(execution, cancelled_elsewhere):
            # a cancel landed since the last check; it wins over a local terminal state
            self._adopt_cancellation(execution, deps)
            table.put(execution)

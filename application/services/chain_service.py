from __future__ import annotations

import copy
import json
from dataclasses import fields
from typing import Any, List, Mapping, Optional

from application.executor.chain_executor import ChainExecutor
from application.ports.document_store import DocumentStorePort
from application.ports.logger import LoggerPort
from application.services.chain_serializer import ChainSerializer
from application.services.execution_deps import ExecutionDeps
from domain.chain import Chain, ChainStep, utc_now
from domain.exceptions import (
    ChainImportError,
    ChainNotFoundError,
    ExecutionNotFoundError,
    StepNotFoundError,
    ValidationError,
)
from domain.execution import ChainExecution
from domain.ids import new_id

_CHAIN_UPDATABLE = {"name", "steps"}
_STEP_PROTECTED = {"id", "order"}
_STEP_FIELDS = {f.name for f in fields(ChainStep)}


class ChainService:
    """
    Chain CRUD, step management and execution entry points.

    Structural errors (missing chain/step, bad import payload, bad reorder
    list) are raised before anything is written.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        executor: ChainExecutor,
        deps: ExecutionDeps,
        serializer: Optional[ChainSerializer] = None,
    ):
        self._store = store
        self._executor = executor
        self._deps = deps
        self._serializer = serializer or ChainSerializer()

    @property
    def logger(self) -> LoggerPort:
        return self._deps.logger

    # -------------------------
    # chains
    # -------------------------

    def create_chain(self, name: str) -> Chain:
        chain = Chain(id=new_id(), name=name, steps=[])
        self._store.chains.add(chain)
        self.logger.info("chain.created", chain_id=chain.id, chain_name=name)
        return chain

    def get_chain(self, chain_id: str) -> Optional[Chain]:
        return self._store.chains.get(chain_id)

    def get_all_chains(self) -> List[Chain]:
        return self._store.chains.to_list()

    def update_chain(self, chain_id: str, updates: Mapping[str, Any]) -> None:
        unknown = set(updates) - _CHAIN_UPDATABLE
        if unknown:
            raise ValidationError(f"Unknown chain fields: {sorted(unknown)}")
        chain = self._require_chain(chain_id)
        if "name" in updates:
            chain.name = updates["name"]
        if "steps" in updates:
            chain.steps = sorted(updates["steps"], key=lambda s: s.order)
            chain.renumber_steps()
        self._save_chain(chain)

    def delete_chain(self, chain_id: str) -> None:
        self._store.chains.delete(chain_id)
        removed = self._store.chain_executions.where("chain_id").equals(chain_id).delete()
        self.logger.info("chain.deleted", chain_id=chain_id, executions_removed=removed)

    def save_chain(self, chain: Chain) -> Chain:
        """Store a fully built chain (e.g. loaded from a file), replacing one with the same id."""
        chain.steps = chain.ordered_steps()
        chain.renumber_steps()
        self._save_chain(chain)
        self.logger.info("chain.saved", chain_id=chain.id, step_count=len(chain.steps))
        return chain

    def duplicate_chain(self, chain_id: str) -> Chain:
        source = self._require_chain(chain_id)
        now = utc_now()
        steps = copy.deepcopy(source.ordered_steps())
        for step in steps:
            step.id = new_id()
        duplicate = Chain(
            id=new_id(),
            name=f"{source.name} (Copy)",
            steps=steps,
            created_at=now,
            updated_at=now,
        )
        duplicate.renumber_steps()
        self._store.chains.add(duplicate)
        return duplicate

    def import_chain(self, json_text: str) -> Chain:
        data = json.loads(json_text)  # JSONDecodeError propagates
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("name"), str)
            or not isinstance(data.get("steps"), list)
        ):
            raise ChainImportError("Invalid chain data")
        try:
            chain = self._serializer.chain_from_dict(data)
        except ValidationError as e:
            raise ChainImportError(f"Invalid chain data: {e}") from e

        chain.id = new_id()
        for step in chain.steps:
            if not step.id:
                step.id = new_id()
        chain.created_at = chain.updated_at = utc_now()
        self._store.chains.add(chain)
        self.logger.info("chain.imported", chain_id=chain.id, step_count=len(chain.steps))
        return chain

    def export_chain(self, chain_id: str) -> str:
        chain = self._require_chain(chain_id)
        return json.dumps(self._serializer.chain_to_dict(chain), indent=2, ensure_ascii=False)

    # -------------------------
    # steps
    # -------------------------

    def add_step(self, chain_id: str, step_data: Mapping[str, Any]) -> ChainStep:
        chain = self._require_chain(chain_id)
        data = dict(step_data)
        data["id"] = new_id()
        data["order"] = len(chain.steps)
        step = self._serializer.step_from_dict(data)
        chain.steps.append(step)
        self._save_chain(chain)
        return step

    def update_step(self, chain_id: str, step_id: str, updates: Mapping[str, Any]) -> None:
        """Merge updates into the step; an unknown step_id is ignored."""
        chain = self._require_chain(chain_id)
        bad = (set(updates) - _STEP_FIELDS) | (set(updates) & _STEP_PROTECTED)
        if bad:
            raise ValidationError(f"Step fields cannot be updated: {sorted(bad)}")

        step = chain.find_step(step_id)
        if step is None:
            return
        for name, value in updates.items():
            setattr(step, name, value)
        self._save_chain(chain)

    def remove_step(self, chain_id: str, step_id: str) -> None:
        chain = self._require_chain(chain_id)
        chain.steps = [s for s in chain.ordered_steps() if s.id != step_id]
        chain.renumber_steps()
        self._save_chain(chain)

    def reorder_steps(self, chain_id: str, ordered_ids: List[str]) -> None:
        chain = self._require_chain(chain_id)
        steps: List[ChainStep] = []
        for step_id in ordered_ids:
            step = chain.find_step(step_id)
            if step is None:
                raise StepNotFoundError(f"Step {step_id} not found")
            steps.append(step)
        if len(set(ordered_ids)) != len(ordered_ids) or len(steps) != len(chain.steps):
            raise ValidationError("Reorder must list every step exactly once")
        chain.steps = steps
        chain.renumber_steps()
        self._save_chain(chain)

    # -------------------------
    # executions
    # -------------------------

    def start_execution(self, chain_id: str) -> ChainExecution:
        self._require_chain(chain_id)
        execution = ChainExecution(id=new_id(), chain_id=chain_id)
        self._store.chain_executions.add(execution)
        return execution

    def run_execution(self, execution: ChainExecution, deps: Optional[ExecutionDeps] = None) -> ChainExecution:
        chain = self._require_chain(execution.chain_id)
        return self._executor.execute(chain, execution, deps or self._deps)

    def execute_chain(self, chain_id: str, deps: Optional[ExecutionDeps] = None) -> ChainExecution:
        execution = self.start_execution(chain_id)
        return self.run_execution(execution, deps)

    def get_execution(self, execution_id: str) -> Optional[ChainExecution]:
        return self._store.chain_executions.get(execution_id)

    def get_executions(self, chain_id: str) -> List[ChainExecution]:
        executions = self._store.chain_executions.where("chain_id").equals(chain_id).to_list()
        return sorted(executions, key=lambda e: e.started_at, reverse=True)

    def cancel_execution(self, execution_id: str) -> ChainExecution:
        """Cancel a running execution; terminal executions are returned unchanged."""
        execution = self.get_execution(execution_id)
        if execution is None:
            raise ExecutionNotFoundError("Execution not found")
        if execution.cancel():
            written = self._store.chain_executions.put_unless(
                execution,
                lambda current: current is None or current.status.is_terminal,
            )
            if written:
                self.logger.info("execution.cancel_requested", execution_id=execution_id)
                return execution
            # finished or removed since it was read
            execution = self.get_execution(execution_id)
            if execution is None:
                raise ExecutionNotFoundError("Execution not found")

        self.logger.debug(
            "execution.cancel_ignored",
            execution_id=execution_id,
            status=execution.status.value,
        )
        return execution

    # -------------------------
    # helpers
    # -------------------------

    def _require_chain(self, chain_id: str) -> Chain:
        chain = self.get_chain(chain_id)
        if chain is None:
            raise ChainNotFoundError("Chain not found")
        return chain

    def _save_chain(self, chain: Chain) -> None:
        chain.touch()
        self._store.chains.put(chain)

"""
dict <-> domain conversion for chains, executions and collections.

The dict form uses the camelCase keys of the exported chain format
(variableExtractions, continueOnError, requestId, createdAt, ...).
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from domain.chain import Chain, ChainStep, RequestSpec, VariableExtraction, utc_now
from domain.collection import Collection, SavedRequest
from domain.exceptions import ValidationError
from domain.execution import ChainExecution, StepResponse, StepResult


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_from_any(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            # "Z" suffix as produced by JavaScript's Date.toJSON()
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value}") from e
    return utc_now()


def _body_text(body: Any) -> Optional[str]:
    # structured bodies (YAML mappings, JSON objects) are sent as JSON text
    if body is None or isinstance(body, str):
        return body
    return json.dumps(body, ensure_ascii=False, default=str)


def _str_map(data: Any, label: str) -> Dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValidationError(f"{label} must be an object")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


class ChainSerializer:
    # -------------------------
    # request / extraction
    # -------------------------

    def request_to_dict(self, request: RequestSpec) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "method": request.method,
            "url": request.url,
            "headers": dict(request.headers or {}),
            "params": dict(request.params or {}),
        }
        if request.body is not None:
            out["body"] = request.body
        return out

    def request_from_dict(self, data: Mapping[str, Any]) -> RequestSpec:
        if not isinstance(data, Mapping):
            raise ValidationError("request must be an object")
        return RequestSpec(
            method=str(data.get("method") or "GET").upper(),
            url=str(data.get("url") or ""),
            headers=_str_map(data.get("headers"), "request.headers"),
            params=_str_map(data.get("params"), "request.params"),
            body=_body_text(data.get("body")),
        )

    def extraction_from_any(self, data: Any) -> VariableExtraction:
        # a bare string is shorthand for {"name": x, "path": "$.x"}
        if isinstance(data, str):
            return VariableExtraction(name=data, path=f"$.{data}")
        if not isinstance(data, Mapping) or not data.get("name"):
            raise ValidationError("variable extraction requires a name")
        return VariableExtraction(name=str(data["name"]), path=str(data.get("path") or ""))

    # -------------------------
    # step / chain
    # -------------------------

    def step_to_dict(self, step: ChainStep) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": step.id,
            "order": step.order,
            "variableExtractions": [
                {"name": e.name, "path": e.path} for e in step.variable_extractions
            ],
            "continueOnError": step.continue_on_error,
        }
        if step.name is not None:
            out["name"] = step.name
        if step.request is not None:
            out["request"] = self.request_to_dict(step.request)
        if step.request_id is not None:
            out["requestId"] = step.request_id
        if step.delay is not None:
            out["delay"] = step.delay
        return out

    def step_from_dict(self, data: Mapping[str, Any]) -> ChainStep:
        if not isinstance(data, Mapping):
            raise ValidationError("step must be an object")

        request = data.get("request")
        delay = data.get("delay")
        if delay is not None:
            if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
                raise ValidationError(f"delay must be a non-negative number of ms: {delay!r}")
            delay = int(delay)

        order = data.get("order", 0)
        if isinstance(order, bool) or not isinstance(order, int) or order < 0:
            raise ValidationError(f"order must be a non-negative integer: {order!r}")

        return ChainStep(
            id=str(data.get("id") or ""),
            order=order,
            request=self.request_from_dict(request) if request else None,
            request_id=data.get("requestId") or None,
            variable_extractions=[
                self.extraction_from_any(e) for e in (data.get("variableExtractions") or [])
            ],
            continue_on_error=bool(data.get("continueOnError", False)),
            delay=delay,
            name=data.get("name"),
        )

    def step_updates_from_dict(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """camelCase partial step -> ChainStep attribute updates; other keys pass through."""
        updates: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "request":
                updates["request"] = self.request_from_dict(value) if value else None
            elif key == "requestId":
                updates["request_id"] = value or None
            elif key == "variableExtractions":
                updates["variable_extractions"] = [self.extraction_from_any(e) for e in (value or [])]
            elif key == "continueOnError":
                updates["continue_on_error"] = bool(value)
            elif key == "delay":
                if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0):
                    raise ValidationError(f"delay must be a non-negative number of ms: {value!r}")
                updates["delay"] = None if value is None else int(value)
            else:
                updates[key] = value
        return updates

    def chain_to_dict(self, chain: Chain) -> Dict[str, Any]:
        return {
            "id": chain.id,
            "name": chain.name,
            "steps": [self.step_to_dict(s) for s in chain.ordered_steps()],
            "createdAt": _dt_to_str(chain.created_at),
            "updatedAt": _dt_to_str(chain.updated_at),
        }

    def chain_from_dict(self, data: Mapping[str, Any]) -> Chain:
        if not isinstance(data, Mapping):
            raise ValidationError("chain must be an object")
        steps = [self.step_from_dict(s) for s in (data.get("steps") or [])]
        steps.sort(key=lambda s: s.order)
        chain = Chain(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            steps=steps,
            created_at=_dt_from_any(data.get("createdAt")),
            updated_at=_dt_from_any(data.get("updatedAt")),
        )
        chain.renumber_steps()
        return chain

    # -------------------------
    # execution
    # -------------------------

    def step_result_to_dict(self, result: StepResult) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "stepId": result.step_id,
            "status": result.status.value,
            "order": result.order,
        }
        if result.response is not None:
            out["response"] = self._response_to_dict(result.response)
        if result.extracted_variables is not None:
            out["extractedVariables"] = dict(result.extracted_variables)
        if result.error is not None:
            out["error"] = result.error
        if result.request is not None:
            out["request"] = self.request_to_dict(result.request)
        if result.duration_ms is not None:
            out["durationMs"] = result.duration_ms
        return out

    def execution_to_dict(self, execution: ChainExecution) -> Dict[str, Any]:
        return {
            "id": execution.id,
            "chainId": execution.chain_id,
            "status": execution.status.value,
            "steps": [self.step_result_to_dict(r) for r in execution.steps],
            "variables": dict(execution.variables),
            "startedAt": _dt_to_str(execution.started_at),
            "completedAt": _dt_to_str(execution.completed_at),
            "error": execution.error,
        }

    def _response_to_dict(self, response: StepResponse) -> Dict[str, Any]:
        return {
            "status": response.status,
            "statusText": response.status_text,
            "headers": dict(response.headers),
            "data": response.data,
        }

    # -------------------------
    # collection
    # -------------------------

    def saved_request_from_dict(self, data: Mapping[str, Any]) -> SavedRequest:
        spec = self.request_from_dict(data)
        return SavedRequest(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            method=spec.method,
            url=spec.url,
            headers=spec.headers,
            params=spec.params,
            body=spec.body,
        )

    def collection_to_dict(self, collection: Collection) -> Dict[str, Any]:
        requests: List[Dict[str, Any]] = []
        for r in collection.requests:
            item = {"id": r.id, "name": r.name}
            item.update(self.request_to_dict(r.to_request_spec()))
            requests.append(item)
        return {
            "id": collection.id,
            "name": collection.name,
            "requests": requests,
            "createdAt": _dt_to_str(collection.created_at),
            "updatedAt": _dt_to_str(collection.updated_at),
        }

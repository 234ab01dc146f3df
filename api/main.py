"""FastAPI application - REST endpoints for chains, executions and collections"""
import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from application.executor.chain_executor import ChainExecutor
from application.executor.resolver_registry import RequestResolverRegistry
from application.ports.logger import LoggerPort
from application.resolvers import CollectionRequestResolver, InlineRequestResolver
from application.services.chain_serializer import ChainSerializer
from application.services.chain_service import ChainService
from application.services.collections_service import CollectionsService
from application.services.execution_deps import ExecutionDeps
from application.services.variable_extraction_service import VariableExtractionService
from domain.exceptions import ChainImportError, NotFoundError, ValidationError
from domain.execution import ChainExecution
from infrastructure.chain import ChainFileFinder, ChainLoaderRegistry, ChainLoadError
from infrastructure.config.settings import AppSettings
from infrastructure.http.requests_transport import RequestsTransport
from infrastructure.logging.composite_logger import CompositeLogger
from infrastructure.logging.console_logger import ConsoleLogger
from infrastructure.logging.execution_log_logger import ExecutionLogLogger
from infrastructure.logging.log_setup import setup_console_logging
from infrastructure.run.in_memory_execution_log_store import InMemoryExecutionLogStore
from infrastructure.run.in_memory_execution_scheduler import InMemoryExecutionScheduler
from infrastructure.store.in_memory_document_store import InMemoryDocumentStore


# request models
class CreateChainRequest(BaseModel):
    name: str = Field(min_length=1, description="Chain name")


class UpdateChainRequest(BaseModel):
    name: Optional[str] = Field(default=None, description="New chain name")
    steps: Optional[List[Dict[str, Any]]] = Field(default=None, description="Replacement steps")


class ReorderStepsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    step_ids: List[str] = Field(alias="stepIds", description="Every step id in the new order")


class ImportChainRequest(BaseModel):
    content: str = Field(description="Exported chain JSON text")


class CreateCollectionRequest(BaseModel):
    name: str = Field(min_length=1, description="Collection name")


class UpdateCollectionRequest(BaseModel):
    name: str = Field(min_length=1, description="New collection name")


class JsonPathRequest(BaseModel):
    path: str = Field(description="JSONPath expression")


class AutoDetectRequest(BaseModel):
    data: Any = Field(default=None, description="Response body to inspect")


class ExecutionAcceptedResponse(BaseModel):
    """Accepted response for scheduled execution"""
    execution_id: str = Field(description="Execution identifier")
    status: str = Field(description="Execution status")
    links: Dict[str, str] = Field(description="Related resources")


class ExecutionLogEntryResponse(BaseModel):
    timestamp: str = Field(description="Log timestamp (ISO 8601)")
    event: str = Field(description="Log event name")
    fields: Dict[str, Any] = Field(description="Log payload")


app = FastAPI(
    title="Chainbolt",
    description="Runs chains of HTTP requests that pass values to each other",
    version="1.0.0",
)

# settings / singletons
SETTINGS = AppSettings.from_env()
setup_console_logging(level=SETTINGS.log_level)

STORE = InMemoryDocumentStore()
EXECUTION_LOG_STORE = InMemoryExecutionLogStore()
SCHEDULER = InMemoryExecutionScheduler(max_workers=SETTINGS.scheduler_workers)
TRANSPORT = RequestsTransport(
    base_url=SETTINGS.base_url,
    timeout_sec=SETTINGS.request_timeout_sec,
)
SERIALIZER = ChainSerializer()
EXTRACTION = VariableExtractionService()


@app.get("/")
def read_root():
    """Health check"""
    return {"status": "ok", "service": "chainbolt"}


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValidationError, ChainImportError, ChainLoadError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}")


def _build_logger(execution_id: str) -> CompositeLogger:
    return CompositeLogger(
        [
            ConsoleLogger(),
            ExecutionLogLogger(execution_id=execution_id, log_store=EXECUTION_LOG_STORE),
        ]
    )


def _build_chain_service(logger: Optional[LoggerPort] = None) -> ChainService:
    registry = RequestResolverRegistry(
        [
            InlineRequestResolver(),
            CollectionRequestResolver(STORE),
        ]
    )
    executor = ChainExecutor(registry, EXTRACTION, STORE)
    deps = ExecutionDeps(transport=TRANSPORT, logger=logger or ConsoleLogger())
    return ChainService(STORE, executor, deps, SERIALIZER)


def _build_execution_links(execution_id: str) -> Dict[str, str]:
    return {
        "self": f"/executions/{execution_id}",
        "logs": f"/executions/{execution_id}/logs",
        "cancel": f"/executions/{execution_id}/cancel",
    }


def _execution_dict(execution_id: str) -> Dict[str, Any]:
    execution = STORE.chain_executions.get(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return SERIALIZER.execution_to_dict(execution)


def _run_scheduled(service: ChainService, execution: ChainExecution, deps: ExecutionDeps) -> None:
    try:
        service.run_execution(execution, deps)
    except Exception as exc:
        # the executor has already stored the failure
        deps.logger.error("execution.scheduled_failed", error=str(exc))


# -------------------------
# chains
# -------------------------


@app.get("/chains")
def list_chains() -> List[Dict[str, Any]]:
    return [SERIALIZER.chain_to_dict(c) for c in _build_chain_service().get_all_chains()]


@app.post("/chains", status_code=status.HTTP_201_CREATED)
def create_chain(request: CreateChainRequest = Body(...)) -> Dict[str, Any]:
    chain = _build_chain_service().create_chain(request.name)
    return SERIALIZER.chain_to_dict(chain)


@app.post("/chains/import", status_code=status.HTTP_201_CREATED)
def import_chain(request: ImportChainRequest = Body(...)) -> Dict[str, Any]:
    with _http_errors():
        chain = _build_chain_service().import_chain(request.content)
    return SERIALIZER.chain_to_dict(chain)


@app.post("/chains/load/{name}", status_code=status.HTTP_201_CREATED)
def load_chain_file(name: str) -> Dict[str, Any]:
    """Load a chain definition file from the configured chains directory."""
    path = ChainFileFinder(SETTINGS.chains_dir).find_by_name(name)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Chain file not found: {name}")
    with _http_errors():
        chain = ChainLoaderRegistry().get_loader(path).load_from_file(path)
        chain = _build_chain_service().save_chain(chain)
    return SERIALIZER.chain_to_dict(chain)


@app.get("/chains/{chain_id}")
def get_chain(chain_id: str) -> Dict[str, Any]:
    chain = _build_chain_service().get_chain(chain_id)
    if chain is None:
        raise HTTPException(status_code=404, detail="Chain not found")
    return SERIALIZER.chain_to_dict(chain)


@app.patch("/chains/{chain_id}")
def update_chain(chain_id: str, request: UpdateChainRequest = Body(...)) -> Dict[str, Any]:
    service = _build_chain_service()
    updates: Dict[str, Any] = {}
    with _http_errors():
        if request.name is not None:
            updates["name"] = request.name
        if request.steps is not None:
            updates["steps"] = [SERIALIZER.step_from_dict(s) for s in request.steps]
        service.update_chain(chain_id, updates)
    return get_chain(chain_id)


@app.delete("/chains/{chain_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chain(chain_id: str) -> Response:
    _build_chain_service().delete_chain(chain_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/chains/{chain_id}/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_chain(chain_id: str) -> Dict[str, Any]:
    with _http_errors():
        chain = _build_chain_service().duplicate_chain(chain_id)
    return SERIALIZER.chain_to_dict(chain)


@app.get("/chains/{chain_id}/export")
def export_chain(chain_id: str) -> Response:
    with _http_errors():
        text = _build_chain_service().export_chain(chain_id)
    return Response(content=text, media_type="application/json")


# -------------------------
# steps
# -------------------------


@app.post("/chains/{chain_id}/steps", status_code=status.HTTP_201_CREATED)
def add_step(chain_id: str, step: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    with _http_errors():
        created = _build_chain_service().add_step(chain_id, step)
    return SERIALIZER.step_to_dict(created)


@app.patch("/chains/{chain_id}/steps/{step_id}")
def update_step(chain_id: str, step_id: str, updates: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    with _http_errors():
        _build_chain_service().update_step(chain_id, step_id, SERIALIZER.step_updates_from_dict(updates))
    return get_chain(chain_id)


@app.delete("/chains/{chain_id}/steps/{step_id}")
def remove_step(chain_id: str, step_id: str) -> Dict[str, Any]:
    with _http_errors():
        _build_chain_service().remove_step(chain_id, step_id)
    return get_chain(chain_id)


@app.put("/chains/{chain_id}/steps/order")
def reorder_steps(chain_id: str, request: ReorderStepsRequest = Body(...)) -> Dict[str, Any]:
    with _http_errors():
        _build_chain_service().reorder_steps(chain_id, request.step_ids)
    return get_chain(chain_id)


# -------------------------
# executions
# -------------------------


@app.post("/chains/{chain_id}/executions")
def execute_chain(
    chain_id: str,
    wait_sec: Optional[int] = Query(default=None, ge=0),
):
    """
    Run the chain.

    Without wait_sec the request blocks until the execution ends. With
    wait_sec the execution is scheduled; when it has not ended after
    wait_sec seconds a 202 with links to poll is returned.
    """
    if wait_sec is not None and wait_sec > SETTINGS.max_wait_sec:
        raise HTTPException(
            status_code=400,
            detail=f"wait_sec must be <= {SETTINGS.max_wait_sec}",
        )

    service = _build_chain_service()
    with _http_errors():
        execution = service.start_execution(chain_id)

    logger = _build_logger(execution.id)
    deps = ExecutionDeps(transport=TRANSPORT, logger=logger)

    if wait_sec is None:
        try:
            service.run_execution(execution, deps)
        except Exception as exc:
            logger.error("execution.failed", error=str(exc))
        return _execution_dict(execution.id)

    SCHEDULER.submit(execution.id, lambda: _run_scheduled(service, execution, deps))

    if wait_sec and SCHEDULER.wait(execution.id, wait_sec):
        return _execution_dict(execution.id)

    current = STORE.chain_executions.get(execution.id) or execution
    accepted = ExecutionAcceptedResponse(
        execution_id=execution.id,
        status=current.status.value,
        links=_build_execution_links(execution.id),
    )
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=accepted.model_dump(),
    )


@app.get("/chains/{chain_id}/executions")
def list_executions(chain_id: str) -> List[Dict[str, Any]]:
    executions = _build_chain_service().get_executions(chain_id)
    return [SERIALIZER.execution_to_dict(e) for e in executions]


@app.get("/executions/{execution_id}")
def get_execution(execution_id: str) -> Dict[str, Any]:
    return _execution_dict(execution_id)


@app.post("/executions/{execution_id}/cancel")
def cancel_execution(execution_id: str) -> Dict[str, Any]:
    with _http_errors():
        execution = _build_chain_service().cancel_execution(execution_id)
    return SERIALIZER.execution_to_dict(execution)


@app.get("/executions/{execution_id}/logs", response_model=List[ExecutionLogEntryResponse])
def get_execution_logs(execution_id: str) -> List[ExecutionLogEntryResponse]:
    if STORE.chain_executions.get(execution_id) is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return [
        ExecutionLogEntryResponse(
            timestamp=entry.timestamp.isoformat(),
            event=entry.event,
            fields=json.loads(json.dumps(entry.fields, default=str)),
        )
        for entry in EXECUTION_LOG_STORE.list(execution_id)
    ]


# -------------------------
# collections
# -------------------------


@app.get("/collections")
def list_collections() -> List[Dict[str, Any]]:
    return [SERIALIZER.collection_to_dict(c) for c in CollectionsService(STORE).get_all_collections()]


@app.post("/collections", status_code=status.HTTP_201_CREATED)
def create_collection(request: CreateCollectionRequest = Body(...)) -> Dict[str, Any]:
    collection_id = CollectionsService(STORE).create_collection(request.name)
    return get_collection(collection_id)


@app.get("/collections/{collection_id}")
def get_collection(collection_id: str) -> Dict[str, Any]:
    collection = CollectionsService(STORE).get_collection(collection_id)
    if collection is None:
        raise HTTPException(status_code=404, detail="Collection not found")
    return SERIALIZER.collection_to_dict(collection)


@app.patch("/collections/{collection_id}")
def update_collection(collection_id: str, request: UpdateCollectionRequest = Body(...)) -> Dict[str, Any]:
    with _http_errors():
        CollectionsService(STORE).update_collection(collection_id, {"name": request.name})
    return get_collection(collection_id)


@app.delete("/collections/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_collection(collection_id: str) -> Response:
    CollectionsService(STORE).delete_collection(collection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/collections/{collection_id}/requests", status_code=status.HTTP_201_CREATED)
def add_saved_request(collection_id: str, request: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    with _http_errors():
        saved = SERIALIZER.saved_request_from_dict(request)
        saved = CollectionsService(STORE).add_request_to_collection(collection_id, saved)
    out = {"id": saved.id, "name": saved.name}
    out.update(SERIALIZER.request_to_dict(saved.to_request_spec()))
    return out


@app.delete("/collections/{collection_id}/requests/{request_id}")
def remove_saved_request(collection_id: str, request_id: str) -> Dict[str, Any]:
    with _http_errors():
        CollectionsService(STORE).remove_request_from_collection(collection_id, request_id)
    return get_collection(collection_id)


# -------------------------
# variable helpers
# -------------------------


@app.post("/variables/validate-path")
def validate_json_path(request: JsonPathRequest = Body(...)) -> Dict[str, Any]:
    result = EXTRACTION.validate_json_path(request.path)
    return {"valid": result.valid, "error": result.error}


@app.get("/variables/examples")
def json_path_examples() -> List[Dict[str, str]]:
    return [{"name": e.name, "path": e.path} for e in EXTRACTION.get_examples()]


@app.post("/variables/auto-detect")
def auto_detect_variables(request: AutoDetectRequest = Body(...)) -> List[Dict[str, str]]:
    return [{"name": e.name, "path": e.path} for e in EXTRACTION.auto_detect_variables(request.data)]

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional

from jsonpath_ng.ext import parse as parse_json_path

from domain.chain import VariableExtraction


class ExtractionError(Exception):
    pass


@dataclass(frozen=True)
class PathValidation:
    valid: bool
    error: Optional[str] = None


@lru_cache(maxsize=256)
def _compile(path: str):
    return parse_json_path(path)


def compile_path(path: str):
    """Parse a JSONPath expression, raising ExtractionError on bad syntax."""
    if not isinstance(path, str) or not path.strip():
        raise ExtractionError("JSONPath expression must be a non-empty string")
    try:
        return _compile(path.strip())
    except Exception as e:
        raise ExtractionError(f"Invalid JSONPath '{path}': {e}") from e


def extract_value(document: Any, path: str) -> Any:
    """
    Return the first value matched by `path`.

    Raises ExtractionError when the expression is invalid or matches nothing.
    A matched JSON null comes back as None.
    """
    expr = compile_path(path)
    try:
        matches = expr.find(document)
    except Exception as e:
        raise ExtractionError(f"JSONPath '{path}' failed: {e}") from e
    if not matches:
        raise ExtractionError(f"JSONPath '{path}' matched nothing")
    return matches[0].value


def extract_single_variable(document: Any, path: str) -> Any:
    try:
        return extract_value(document, path)
    except ExtractionError:
        return None


def extract_variables(document: Any, extractions: List[VariableExtraction]) -> Dict[str, Any]:
    # one key per extraction, a bad path never aborts the batch
    out: Dict[str, Any] = {}
    for extraction in extractions or []:
        out[extraction.name] = extract_single_variable(document, extraction.path)
    return out


def validate_json_path(path: str) -> PathValidation:
    try:
        compile_path(path)
    except ExtractionError as e:
        return PathValidation(valid=False, error=str(e))
    return PathValidation(valid=True)

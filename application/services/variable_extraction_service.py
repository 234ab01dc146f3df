from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Union

from application.services import path_extractor
from application.services.path_extractor import PathValidation
from application.services.template_interpolator import (
    UNDEFINED,
    TemplateInterpolator,
    get_nested_value,
)
from domain.chain import VariableExtraction
from domain.context import ChainContext, ContextResponse

# keys worth proposing as variables when seen in a response
AUTO_DETECT_KEYS = (
    "id",
    "uuid",
    "token",
    "access_token",
    "accessToken",
    "refresh_token",
    "refreshToken",
    "id_token",
    "auth_token",
    "authToken",
    "jwt",
    "session_id",
    "sessionId",
    "api_key",
    "apiKey",
    "user_id",
    "userId",
)

EXAMPLES: List[VariableExtraction] = [
    VariableExtraction(name="token", path="$.token"),
    VariableExtraction(name="userId", path="$.user.id"),
    VariableExtraction(name="accessToken", path="$.data.access_token"),
    VariableExtraction(name="firstItemId", path="$.items[0].id"),
    VariableExtraction(name="allItemIds", path="$.items[*].id"),
    VariableExtraction(name="total", path="$.meta.pagination.total"),
    VariableExtraction(name="anyId", path="$..id"),
]


class VariableExtractionService:
    """
    Extraction, interpolation and context bookkeeping for chain executions.

    Extraction never raises: a failing path yields None for that name.
    """

    def __init__(self, interpolator: Optional[TemplateInterpolator] = None) -> None:
        self._interpolator = interpolator or TemplateInterpolator()

    # -------------------------
    # extraction
    # -------------------------

    def extract_variables(self, document: Any, extractions: List[VariableExtraction]) -> Dict[str, Any]:
        return path_extractor.extract_variables(document, extractions)

    def extract_single_variable(self, document: Any, path: str) -> Any:
        return path_extractor.extract_single_variable(document, path)

    def validate_json_path(self, path: str) -> PathValidation:
        return path_extractor.validate_json_path(path)

    def auto_detect_variables(self, document: Any) -> List[VariableExtraction]:
        if not isinstance(document, Mapping):
            return []

        found: Dict[str, VariableExtraction] = {}

        def suggest(name: str, path: str) -> None:
            # first suggestion for a name wins
            if name not in found:
                found[name] = VariableExtraction(name=name, path=path)

        for key, value in document.items():
            if key in AUTO_DETECT_KEYS:
                suggest(key, f"$.{key}")
            if isinstance(value, Mapping):
                for nested_key in value:
                    if nested_key in AUTO_DETECT_KEYS:
                        suggest(f"{key}{nested_key[:1].upper()}{nested_key[1:]}", f"$.{key}.{nested_key}")
        return list(found.values())

    def get_examples(self) -> List[VariableExtraction]:
        return list(EXAMPLES)

    # -------------------------
    # interpolation
    # -------------------------

    def interpolate_variables(self, text: Optional[str], variables: Mapping[str, Any]) -> str:
        return self._interpolator.interpolate(text, variables)

    def get_nested_value(self, obj: Any, path: str) -> Any:
        return get_nested_value(obj, path)

    # -------------------------
    # context
    # -------------------------

    def create_context(self) -> ChainContext:
        return ChainContext()

    def add_response_to_context(
        self,
        context: ChainContext,
        step: Union[int, str],
        data: Any,
        status: int,
    ) -> None:
        context.responses.append(ContextResponse(step=step, data=data, status=status))

    def merge_variables(self, context: ChainContext, new_vars: Mapping[str, Any]) -> None:
        context.variables.update(new_vars or {})

    def get_variables(self, context: ChainContext) -> Dict[str, Any]:
        return context.variables

    def format_variable_value(self, value: Any) -> str:
        if value is None:
            return "null"
        if value is UNDEFINED:
            return "undefined"
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2, ensure_ascii=False, default=str)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

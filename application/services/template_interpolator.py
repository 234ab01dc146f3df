from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional


class _Undefined:
    """Stands for a value that does not exist (as opposed to None)."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Undefined":
        return self

    def __deepcopy__(self, _memo) -> "_Undefined":
        return self


UNDEFINED = _Undefined()

PLACEHOLDER_RE = re.compile(r"\{\{([^{}\s]+)\}\}")


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Descend `obj` one dotted segment at a time.
    Returns UNDEFINED as soon as a segment is missing.
    """
    cur = obj
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return UNDEFINED
        cur = cur[part]
    return cur


def stringify(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


class TemplateInterpolator:
    """
    {{name}} / {{name.nested.key}} placeholders are replaced from a variable map.

    - top-level name missing        -> placeholder kept as-is
    - later segment missing         -> "undefined"
    - value present (0, "", None..) -> its string form
    """

    def interpolate(self, text: Optional[str], variables: Mapping[str, Any]) -> str:
        if not text:
            return ""
        if "{{" not in text:
            return text
        return PLACEHOLDER_RE.sub(lambda m: self._replace(m, variables or {}), text)

    def _replace(self, match: "re.Match[str]", variables: Mapping[str, Any]) -> str:
        path = match.group(1)
        root = path.split(".", 1)[0]
        if root not in variables:
            return match.group(0)
        return stringify(get_nested_value(variables, path))


def interpolate_variables(text: Optional[str], variables: Mapping[str, Any]) -> str:
    return TemplateInterpolator().interpolate(text, variables)

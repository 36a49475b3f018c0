# flowguard/expression/format.py
"""
Expression prefix checks.

n8n only evaluates a parameter string as an expression when it starts with
`=`. A value like `"Hello {{ $json.name }}"` is sent literally.
"""

import re
from typing import Any, Dict, List

MAX_DEPTH = 64
PREFIX = "="
_HAS_EXPR = re.compile(r"\{\{.*?\}\}", re.S)
_ONLY_EXPR = re.compile(r"^\s*\{\{.*\}\}\s*$", re.S)

# resource locator objects: {"__rl": true, "value": "...", "mode": "..."}
RL_MODES = ("id", "url", "expression", "name", "list")


def is_resource_locator(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("__rl") is True
        and "value" in value
        and value.get("mode") in RL_MODES
    )


def check_value(value: Any, field_path: str) -> Dict[str, Any]:
    """
    Returns:
        an issue dict {fieldPath, currentValue, correctedValue, issueType, explanation}
        or an empty dict when the value is fine
    """
    if is_resource_locator(value):
        inner = value.get("value")
        if isinstance(inner, str) and _HAS_EXPR.search(inner) and not inner.startswith(PREFIX):
            fixed = dict(value)
            fixed["value"] = PREFIX + inner
            return {
                "fieldPath": field_path,
                "currentValue": value,
                "correctedValue": fixed,
                "issueType": "missing-prefix",
                "explanation": "Resource locator value: Expression requires = prefix to be evaluated",
            }
        return {}

    if not isinstance(value, str) or not _HAS_EXPR.search(value) or value.startswith(PREFIX):
        return {}

    mixed = not _ONLY_EXPR.match(value)
    return {
        "fieldPath": field_path,
        "currentValue": value,
        "correctedValue": PREFIX + value,
        "issueType": "missing-prefix",
        "explanation": (
            "Mixed literal text and expression requires = prefix for expression evaluation"
            if mixed else "Expression requires = prefix to be evaluated"
        ),
    }


def check_parameters(parameters: Any) -> List[Dict[str, Any]]:
    """Walk a parameter tree and collect missing-prefix issues with dotted paths."""
    issues: List[Dict[str, Any]] = []

    def walk(obj: Any, path: str, depth: int) -> None:
        if depth > MAX_DEPTH:
            return
        issue = check_value(obj, path)
        if issue:
            issues.append(issue)
            return
        if isinstance(obj, dict) and not is_resource_locator(obj):
            for k, v in obj.items():
                walk(v, f"{path}.{k}" if path else str(k), depth + 1)
        elif isinstance(obj, list):
            for i, v in enumerate(obj):
                walk(v, f"{path}[{i}]", depth + 1)

    walk(parameters, "", 0)
    return issues

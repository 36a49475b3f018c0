# flowguard/expression/validator.py
"""
Syntax and reference checks for n8n template expressions (`{{ ... }}`).

Only the shape of an expression is checked; nothing is evaluated.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

MAX_DEPTH = 64

EXPRESSION_RE = re.compile(r"\{\{(.+?)\}\}", re.S)
BRACES_RE = re.compile(r"\{\{|\}\}")
EMPTY_RE = re.compile(r"\{\{\s*\}\}")

_ACCESS = r"(?:\.[a-zA-Z_]\w*|\[\"[^\"]+\"\]|\['[^']+'\]|\[\d+\])*"

VARIABLE_PATTERNS = {
    "json": re.compile(r"\$json" + _ACCESS),
    "node": re.compile(r"\$node\[([\"'])(.+?)\1\]"),
    "input": re.compile(r"\$input\b"),
    "items": re.compile(r"\$items\(\s*([\"'])(.+?)\1(?:\s*,\s*(\d+))?\s*\)"),
    "parameter": re.compile(r"\$parameter\[([\"'])(.+?)\1\]"),
    "env": re.compile(r"\$env\.([a-zA-Z_]\w*)"),
    "workflow": re.compile(r"\$workflow\.(id|name|active)\b"),
    "execution": re.compile(r"\$execution\.(id|mode|resumeUrl)\b"),
    "prevNode": re.compile(r"\$prevNode\.(name|outputIndex|runIndex)\b"),
    "itemIndex": re.compile(r"\$itemIndex\b"),
    "runIndex": re.compile(r"\$runIndex\b"),
    "now": re.compile(r"\$now\b"),
    "today": re.compile(r"\$today\b"),
}

# $('Node Name') selector
SELECTOR_RE = re.compile(r"\$\(\s*([\"'])(.+?)\1\s*\)")

STRING_LITERAL_RE = re.compile(r"'(?:\\.|[^'\\])*'|\"(?:\\.|[^\"\\])*\"|`(?:\\.|[^`\\])*`")
MISSING_PREFIX_RE = re.compile(r"(?<![\w$.])(json|node|input|items|workflow|execution)\b(?!\s*:)")

MSG_UNMATCHED = "Unmatched expression brackets {{ }}"
MSG_NESTED = "Nested expressions are not supported"
MSG_EMPTY = "Empty expression found"
MSG_JSON_NO_INPUT = "Using $json but node might not have input data"
MSG_INPUT_NO_INPUT = "$input is only available when the node has input data"
MSG_MISSING_PREFIX = "Possible missing $ prefix for variable (e.g., use $json instead of json)"
MSG_BRACKET_ACCESS = "Consider using dot notation: $json.property instead of $json['property']"
MSG_OPTIONAL_CHAINING = "Optional chaining (?.) is not supported in n8n expressions"
MSG_TEMPLATE_LITERAL = "Template literals ${} are not supported. Use string concatenation instead"


@dataclass
class ExpressionContext:
    available_nodes: List[str] = field(default_factory=list)
    current_node_name: Optional[str] = None
    is_in_loop: bool = False
    has_input_data: bool = False


@dataclass
class ExpressionResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    used_variables: Set[str] = field(default_factory=set)
    used_nodes: Set[str] = field(default_factory=set)
    expressions_checked: int = 0

    def merge(self, other: "ExpressionResult", path: str = "") -> None:
        prefix = f"{path}: " if path else ""
        self.errors.extend(prefix + e for e in other.errors)
        self.warnings.extend(prefix + w for w in other.warnings)
        self.used_variables |= other.used_variables
        self.used_nodes |= other.used_nodes
        self.expressions_checked += other.expressions_checked

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "usedVariables": sorted(self.used_variables),
            "usedNodes": sorted(self.used_nodes),
        }


def _add_once(bucket: List[str], msg: str) -> None:
    if msg not in bucket:
        bucket.append(msg)


def check_syntax(text: str) -> List[str]:
    errors = []
    depth = 0
    opens = closes = 0
    nested = False
    for m in BRACES_RE.finditer(text):
        if m.group(0) == "{{":
            opens += 1
            if depth > 0:
                nested = True
            depth += 1
        else:
            closes += 1
            depth = max(0, depth - 1)
    if opens != closes:
        errors.append(MSG_UNMATCHED)
    if nested:
        errors.append(MSG_NESTED)
    if EMPTY_RE.search(text):
        errors.append(MSG_EMPTY)
    return errors


def extract_expressions(text: str) -> List[str]:
    return [m.group(1).strip() for m in EXPRESSION_RE.finditer(text) if m.group(1).strip()]


def _check_single(expr: str, context: ExpressionContext, result: ExpressionResult) -> None:
    if VARIABLE_PATTERNS["json"].search(expr):
        result.used_variables.add("$json")
        if not context.has_input_data and not context.is_in_loop:
            _add_once(result.warnings, MSG_JSON_NO_INPUT)

    for m in VARIABLE_PATTERNS["node"].finditer(expr):
        result.used_nodes.add(m.group(2))
        result.used_variables.add("$node")

    for m in SELECTOR_RE.finditer(expr):
        result.used_nodes.add(m.group(2))
        result.used_variables.add("$node")

    if VARIABLE_PATTERNS["input"].search(expr):
        result.used_variables.add("$input")
        if not context.has_input_data:
            _add_once(result.errors, MSG_INPUT_NO_INPUT)

    for m in VARIABLE_PATTERNS["items"].finditer(expr):
        result.used_nodes.add(m.group(2))
        result.used_variables.add("$items")

    for name, pattern in VARIABLE_PATTERNS.items():
        if name in ("json", "node", "input", "items"):
            continue
        if pattern.search(expr):
            result.used_variables.add(f"${name}")

    _check_common_mistakes(expr, result)


def _check_common_mistakes(expr: str, result: ExpressionResult) -> None:
    bare = STRING_LITERAL_RE.sub("''", expr)
    if MISSING_PREFIX_RE.search(bare):
        _add_once(result.warnings, MSG_MISSING_PREFIX)

    if re.search(r"\$json\['[^']+'\]", expr):
        _add_once(result.warnings, MSG_BRACKET_ACCESS)

    if "?." in bare:
        _add_once(result.errors, MSG_OPTIONAL_CHAINING)

    if "${" in expr:
        _add_once(result.errors, MSG_TEMPLATE_LITERAL)


def validate_expression(text: str, context: Optional[ExpressionContext] = None) -> ExpressionResult:
    """Validate every `{{ }}` block of one string and its node references."""
    context = context or ExpressionContext()
    result = ExpressionResult()
    result.errors.extend(check_syntax(text))

    for expr in extract_expressions(text):
        result.expressions_checked += 1
        _check_single(expr, context, result)

    available = set(context.available_nodes)
    for name in sorted(result.used_nodes):
        if name not in available:
            result.errors.append(f'Referenced node "{name}" not found in workflow')

    result.valid = not result.errors
    return result


def _scan(obj: Any, context: ExpressionContext, result: ExpressionResult, path: str, depth: int) -> None:
    if depth > MAX_DEPTH:
        return
    if isinstance(obj, str):
        if "{{" in obj or "}}" in obj:
            result.merge(validate_expression(obj, context), path)
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            _scan(item, context, result, f"{path}[{i}]", depth + 1)
    elif isinstance(obj, dict):
        for key, value in obj.items():
            _scan(value, context, result, f"{path}.{key}" if path else str(key), depth + 1)


def validate_node_expressions(parameters: Any, context: Optional[ExpressionContext] = None) -> ExpressionResult:
    """
    Recursively scan a parameter tree. Findings are prefixed with their path
    (`a.b[0].c: message`).
    """
    context = context or ExpressionContext()
    result = ExpressionResult()
    _scan(parameters, context, result, "", 0)
    result.valid = not result.errors
    return result

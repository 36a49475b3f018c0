# flowguard/structural/patterns.py
"""
Known-bad nested parameter shapes ("fixedCollection" mistakes) per node family.

n8n renders fixedCollection properties as `{collection: {itemName: [...]}}`.
Generated workflows often add one wrapper too many (`values.values`) or put the
items under the wrong key; n8n then fails at runtime with
"propertyValues[itemName] is not iterable".
"""

import copy
from typing import Dict, Any, List, Optional

from flowguard.utils.cache import TTLCache
from flowguard.utils.node_types import short_type
from flowguard.utils.paths import get_path, set_path, split_path, parent_and_key

# Bound for walking/copying configs that may contain accidental self-references.
MAX_DEPTH = 32

KNOWN_PATTERNS: List[Dict[str, Any]] = [
    {
        "nodeType": "switch",
        "nodeTypeAliases": ["switch"],
        "propertyPath": "rules",
        "expectedStructure": "rules.values array",
        "invalidPatterns": ["rules.conditions", "rules.conditions.values"],
        "autofixStrategy": "switch_rules",
        "fix": 'Use: { "rules": { "values": [{ "conditions": {...}, "outputKey": "output1" }] } }',
    },
    {
        "nodeType": "if",
        "nodeTypeAliases": ["if"],
        "propertyPath": "conditions",
        "expectedStructure": "conditions array/object",
        "invalidPatterns": ["conditions.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "conditions": {...} } or { "conditions": [...] } directly, not nested under "values"',
    },
    {
        "nodeType": "filter",
        "nodeTypeAliases": ["filter"],
        "propertyPath": "conditions",
        "expectedStructure": "conditions array/object",
        "invalidPatterns": ["conditions.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "conditions": {...} } or { "conditions": [...] } directly, not nested under "values"',
    },
    {
        "nodeType": "summarize",
        "nodeTypeAliases": ["summarize"],
        "propertyPath": "fieldsToSummarize.values",
        "expectedStructure": "fieldsToSummarize.values array",
        "invalidPatterns": ["fieldsToSummarize.values.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "fieldsToSummarize": { "values": [...] } } not nested values.values',
    },
    {
        "nodeType": "comparedatasets",
        "nodeTypeAliases": ["comparedatasets"],
        "propertyPath": "mergeByFields.values",
        "expectedStructure": "mergeByFields.values array",
        "invalidPatterns": ["mergeByFields.values.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "mergeByFields": { "values": [...] } } not nested values.values',
    },
    {
        "nodeType": "sort",
        "nodeTypeAliases": ["sort"],
        "propertyPath": "sortFieldsUi.sortField",
        "expectedStructure": "sortFieldsUi.sortField array",
        "invalidPatterns": ["sortFieldsUi.sortField.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "sortFieldsUi": { "sortField": [...] } } not sortField.values',
    },
    {
        "nodeType": "aggregate",
        "nodeTypeAliases": ["aggregate"],
        "propertyPath": "fieldsToAggregate.fieldToAggregate",
        "expectedStructure": "fieldsToAggregate.fieldToAggregate array",
        "invalidPatterns": ["fieldsToAggregate.fieldToAggregate.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "fieldsToAggregate": { "fieldToAggregate": [...] } } not fieldToAggregate.values',
    },
    {
        "nodeType": "set",
        "nodeTypeAliases": ["set"],
        "propertyPath": "fields.values",
        "expectedStructure": "fields.values array",
        "invalidPatterns": ["fields.values.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "fields": { "values": [...] } } not nested values.values',
    },
    {
        "nodeType": "html",
        "nodeTypeAliases": ["html", "htmlextract"],
        "propertyPath": "extractionValues.values",
        "expectedStructure": "extractionValues.values array",
        "invalidPatterns": ["extractionValues.values.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "extractionValues": { "values": [...] } } not nested values.values',
    },
    {
        "nodeType": "httprequest",
        "nodeTypeAliases": ["httprequest"],
        "propertyPath": "body.parameters",
        "expectedStructure": "body.parameters array",
        "invalidPatterns": ["body.parameters.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "body": { "parameters": [...] } } not parameters.values',
    },
    {
        "nodeType": "airtable",
        "nodeTypeAliases": ["airtable"],
        "propertyPath": "sort.sortField",
        "expectedStructure": "sort.sortField array",
        "invalidPatterns": ["sort.sortField.values"],
        "autofixStrategy": "unwrap",
        "fix": 'Use: { "sort": { "sortField": [...] } } not sortField.values',
    },
]


# ---------- Traversal helpers ----------

def bounded_copy(value: Any, depth: int = MAX_DEPTH) -> Any:
    """Copy nested dict/list data down to `depth` levels; deeper levels are shared."""
    if depth <= 0:
        return value
    if isinstance(value, dict):
        return {k: bounded_copy(v, depth - 1) for k, v in value.items()}
    if isinstance(value, list):
        return [bounded_copy(v, depth - 1) for v in value]
    return value


def _absent(value: Any) -> bool:
    """None, False, zero, NaN and empty strings are absent; empty containers are present."""
    if isinstance(value, (dict, list)):
        return False
    return not value or value != value


def has_invalid_structure(config: Any, pattern: str, max_depth: int = MAX_DEPTH) -> bool:
    """
    True when every segment of `pattern` resolves to a present value inside
    nested dicts. Null or non-dict intermediates end the walk quietly.
    """
    current = config
    for depth, part in enumerate(split_path(pattern)):
        if depth >= max_depth:
            return False
        if not isinstance(current, dict):
            return False
        nxt = current.get(part)
        if _absent(nxt):
            return False
        current = nxt
    return True


def _drop_covered(matched: List[str]) -> List[str]:
    """Keep only the most specific hits: `a.b` is dropped when `a.b.c` matched."""
    out = []
    for p in matched:
        if any(q != p and q.startswith(p + ".") for q in matched):
            continue
        out.append(p)
    return out


# ---------- Autofix strategies ----------

def _fix_switch_rules(config: dict, pattern: dict) -> dict:
    fixed = bounded_copy(config)
    rules = fixed.get("rules")
    if not isinstance(rules, dict):
        return fixed
    conditions = rules.get("conditions")
    if _absent(conditions):
        return fixed
    inner = conditions.get("values") if isinstance(conditions, dict) else None
    if not _absent(inner):
        branches = inner if isinstance(inner, list) else [inner]
    else:
        branches = [conditions]
    new_rules = {k: v for k, v in rules.items() if k != "conditions"}
    new_rules["values"] = [
        {"conditions": cond, "outputKey": f"output{i + 1}"}
        for i, cond in enumerate(branches)
    ]
    fixed["rules"] = new_rules
    return fixed


def _fix_unwrap(config: dict, pattern: dict) -> dict:
    """Replace the wrapper with its inner value until no invalid path remains."""
    fixed = bounded_copy(config)
    for _ in range(MAX_DEPTH):
        hits = [p for p in pattern["invalidPatterns"] if has_invalid_structure(fixed, p)]
        if not hits:
            break
        for p in hits:
            parent, _key = parent_and_key(p)
            inner = get_path(fixed, p)
            if parent:
                set_path(fixed, parent, inner)
            else:
                fixed = inner
    return fixed


AUTOFIX_STRATEGIES = {
    "switch_rules": _fix_switch_rules,
    "unwrap": _fix_unwrap,
}


# ---------- Public API ----------

class StructuralPatternValidator:
    """
    Detects known-bad nested shapes and proposes corrected configs.

    Pattern lookups are memoized in an optional caller-owned TTLCache.
    """

    def __init__(self, patterns: Optional[List[Dict[str, Any]]] = None, cache: Optional[TTLCache] = None):
        self._patterns = copy.deepcopy(patterns if patterns is not None else KNOWN_PATTERNS)
        self._cache = cache

    def _lookup(self, key: str) -> Optional[Dict[str, Any]]:
        for p in self._patterns:
            if key in p["nodeTypeAliases"]:
                return copy.deepcopy(p)
        return None

    def pattern_for(self, node_type: str) -> Optional[Dict[str, Any]]:
        key = short_type(node_type)
        if self._cache is None:
            return self._lookup(key)
        return self._cache.get_or_compute(("pattern", key), lambda: self._lookup(key))

    def is_susceptible(self, node_type: str) -> bool:
        return self.pattern_for(node_type) is not None

    def validate(self, node_type: str, config: Any) -> Dict[str, Any]:
        """
        Returns:
            {"isValid": bool, "errors": [{"pattern", "message", "fix"}], "autofix"?: dict}
        """
        pattern = self.pattern_for(node_type)
        if pattern is None or not isinstance(config, dict):
            return {"isValid": True, "errors": []}

        matched = [p for p in pattern["invalidPatterns"] if has_invalid_structure(config, p)]
        matched = _drop_covered(matched)
        if not matched:
            return {"isValid": True, "errors": []}

        errors = [
            {
                "pattern": p,
                "message": (
                    f'Invalid structure for nodes-base.{pattern["nodeType"]} node: '
                    f'found nested "{p}" but expected "{pattern["expectedStructure"]}". '
                    'This causes "propertyValues[itemName] is not iterable" error in n8n.'
                ),
                "fix": pattern["fix"],
            }
            for p in matched
        ]
        return {"isValid": False, "errors": errors, "autofix": self.apply_autofix(config, pattern)}

    def apply_autofix(self, config: dict, pattern: Dict[str, Any]) -> dict:
        strategy = AUTOFIX_STRATEGIES[pattern["autofixStrategy"]]
        return strategy(config, pattern)

    def get_all_patterns(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._patterns)


def validate_fixed_collection(node_type: str, config: Any) -> Dict[str, Any]:
    return StructuralPatternValidator().validate(node_type, config)


def get_all_patterns() -> List[Dict[str, Any]]:
    return copy.deepcopy(KNOWN_PATTERNS)

# flowguard/autofix.py
"""
Turn validation findings into diff operations.

Fixes are collected per finding, filtered by confidence and capped, and
then folded into one `updateNode` per node (dotted-path changes), plus the
connection moves an error-output fix needs. The operations are meant to be
fed to WorkflowDiffEngine.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from flowguard.utils.graph import nodes_by_name
from flowguard.utils.logger import get_logger
from flowguard.validation.report import ValidationIssue, ValidationReport

log = get_logger("autofix")

FIX_TYPES = (
    "fixed-collection",
    "expression-format",
    "typeversion-correction",
    "error-output-config",
    "node-type-correction",
)
CONFIDENCE_LEVELS = ("high", "medium", "low")
NODE_TYPE_MIN_CONFIDENCE = 0.9

_SUMMARY_NOUNS = {
    "fixed-collection": ("structure error", "structure errors"),
    "expression-format": ("expression format error", "expression format errors"),
    "typeversion-correction": ("version issue", "version issues"),
    "error-output-config": ("error output configuration", "error output configurations"),
    "node-type-correction": ("node type", "node types"),
}


@dataclass
class Fix:
    node: str
    field: str
    type: str
    before: Any
    after: Any
    confidence: str
    description: str
    changes: Dict[str, Any] = field(default_factory=dict)
    connection_ops: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node": self.node,
            "field": self.field,
            "type": self.type,
            "before": self.before,
            "after": self.after,
            "confidence": self.confidence,
            "description": self.description,
        }


@dataclass
class AutoFixResult:
    operations: List[Dict[str, Any]] = field(default_factory=list)
    fixes: List[Fix] = field(default_factory=list)
    summary: str = "No fixes available"
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operations": self.operations,
            "fixes": [f.to_dict() for f in self.fixes],
            "summary": self.summary,
            "stats": self.stats,
        }


# ---------- Per-finding fixers ----------

def _fixed_collection(issue: ValidationIssue, node: dict) -> List[Fix]:
    autofix = (issue.details or {}).get("autofix")
    if autofix is None:
        return []
    return [Fix(
        node=node["name"], field="parameters", type="fixed-collection",
        before=node.get("parameters"), after=autofix, confidence="high",
        description=f"Restructured '{issue.property_path}' into the expected shape",
        changes={"parameters": autofix},
    )]


def _expression_format(issue: ValidationIssue, node: dict) -> List[Fix]:
    details = issue.details or {}
    path = details.get("fieldPath")
    if not path:
        return []
    return [Fix(
        node=node["name"], field=path, type="expression-format",
        before=details.get("currentValue"), after=details.get("correctedValue"), confidence="high",
        description=issue.message,
        changes={f"parameters.{path}": details.get("correctedValue")},
    )]


def _type_version(issue: ValidationIssue, node: dict) -> List[Fix]:
    target = (issue.details or {}).get("suggestedVersion")
    if target is None:
        return []
    before = node.get("typeVersion")
    return [Fix(
        node=node["name"], field="typeVersion", type="typeversion-correction",
        before=before, after=target, confidence="medium",
        description=f"Corrected typeVersion from {before} to {target}",
        changes={"typeVersion": target},
    )]


def _missing_error_connections(issue: ValidationIssue, node: dict) -> List[Fix]:
    return [Fix(
        node=node["name"], field="onError", type="error-output-config",
        before=node.get("onError"), after=None, confidence="medium",
        description="Removed onError setting due to missing error output connections",
        changes={"onError": None},
    )]


def _misconfigured_error_output(issue: ValidationIssue, node: dict) -> List[Fix]:
    handlers = (issue.details or {}).get("errorTargets") or []
    if not handlers:
        return []
    name = node["name"]
    ops: List[Dict[str, Any]] = []
    for handler in handlers:
        ops.append({"type": "removeConnection", "source": name, "target": handler, "sourceIndex": 0})
        ops.append({"type": "addConnection", "source": name, "target": handler, "sourceIndex": 1})
    return [Fix(
        node=name, field="onError", type="error-output-config",
        before=node.get("onError"), after="continueErrorOutput", confidence="low",
        description="Moved " + ", ".join(f'"{h}"' for h in handlers) + " to the error output main[1]",
        changes={"onError": "continueErrorOutput"},
        connection_ops=ops,
    )]


def _node_type(issue: ValidationIssue, node: dict) -> List[Fix]:
    candidates = (issue.details or {}).get("suggestions") or []
    best = next((c for c in candidates if c.get("confidence", 0) >= NODE_TYPE_MIN_CONFIDENCE), None)
    if best is None:
        return []
    return [Fix(
        node=node["name"], field="type", type="node-type-correction",
        before=node.get("type"), after=best["nodeType"], confidence="high",
        description=f'Fix node type: "{node.get("type")}" -> "{best["nodeType"]}" ({best["reason"]})',
        changes={"type": best["nodeType"]},
    )]


FIXERS = {
    "pattern_violation": ("fixed-collection", _fixed_collection),
    "expression_format": ("expression-format", _expression_format),
    "type_version_exceeds_max": ("typeversion-correction", _type_version),
    "missing_type_version": ("typeversion-correction", _type_version),
    "invalid_type_version": ("typeversion-correction", _type_version),
    "error_output_missing_connections": ("error-output-config", _missing_error_connections),
    "error_output_misconfigured": ("error-output-config", _misconfigured_error_output),
    "unknown_node_type": ("node-type-correction", _node_type),
}


# ---------- Assembly ----------

def _passes(confidence: str, threshold: str) -> bool:
    return CONFIDENCE_LEVELS.index(confidence) <= CONFIDENCE_LEVELS.index(threshold)


def _drop_shadowed(fixes: List[Fix]) -> List[Fix]:
    """A node whose parameters get replaced wholesale keeps no per-field parameter fix."""
    replaced = {f.node for f in fixes if f.type == "fixed-collection"}
    return [f for f in fixes if not (f.type == "expression-format" and f.node in replaced)]


def _operations(fixes: List[Fix]) -> List[Dict[str, Any]]:
    per_node: Dict[str, Dict[str, Any]] = {}
    connection_ops: List[Dict[str, Any]] = []
    for fix in fixes:
        per_node.setdefault(fix.node, {}).update(fix.changes)
        connection_ops.extend(fix.connection_ops)
    ops = [{"type": "updateNode", "nodeName": name, "changes": changes} for name, changes in per_node.items() if changes]
    return ops + connection_ops


def _stats(fixes: List[Fix]) -> Dict[str, Any]:
    by_type = {t: 0 for t in FIX_TYPES}
    by_confidence = {c: 0 for c in CONFIDENCE_LEVELS}
    for fix in fixes:
        by_type[fix.type] += 1
        by_confidence[fix.confidence] += 1
    return {"total": len(fixes), "byType": by_type, "byConfidence": by_confidence}


def _summary(stats: Dict[str, Any]) -> str:
    if not stats["total"]:
        return "No fixes available"
    parts = []
    for fix_type in FIX_TYPES:
        n = stats["byType"][fix_type]
        if n:
            one, many = _SUMMARY_NOUNS[fix_type]
            parts.append(f"{n} {one if n == 1 else many}")
    return "Fixed " + ", ".join(parts)


def generate_fixes(
    workflow: Dict[str, Any],
    report: ValidationReport,
    fix_types: Optional[Iterable[str]] = None,
    confidence_threshold: str = "medium",
    max_fixes: int = 50,
) -> AutoFixResult:
    """
    Args:
        workflow: the workflow the report was produced for
        report: validation report
        fix_types: restrict to these fix types (all by default)
        confidence_threshold: lowest confidence kept ("high", "medium", "low")
        max_fixes: cap on the number of fixes kept
    """
    if confidence_threshold not in CONFIDENCE_LEVELS:
        raise ValueError(f"confidence_threshold must be one of {CONFIDENCE_LEVELS}, got {confidence_threshold!r}")
    wanted = set(fix_types) if fix_types is not None else set(FIX_TYPES)
    by_name = nodes_by_name(workflow)

    fixes: List[Fix] = []
    for issue in list(report.errors) + list(report.warnings):
        entry = FIXERS.get(issue.code)
        if entry is None or entry[0] not in wanted:
            continue
        node = by_name.get(issue.node_name) if issue.node_name else None
        if node is None:
            continue
        fixes.extend(entry[1](issue, node))

    fixes = [f for f in _drop_shadowed(fixes) if _passes(f.confidence, confidence_threshold)]
    fixes = fixes[:max(0, max_fixes)]
    stats = _stats(fixes)
    result = AutoFixResult(operations=_operations(fixes), fixes=fixes, summary=_summary(stats), stats=stats)
    log.debug("autofix: %s (%d operations)", result.summary, len(result.operations))
    return result
